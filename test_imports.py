from imports import generate_code, import_books, import_students, read_csv
from security import verify_password

BOOKS_CSV = """ISBN,title,type,author,publisher,categories,tags,bookavailable,book_shelf
111,Dune,Novel,Frank Herbert,Chilton,"Sci-Fi, Classic","space, desert",3,S1
222,Emma,Novel,Jane Austen,Murray,Classic,,2,S2
111,Dune again,Novel,Frank Herbert,,,,1,
333,,Novel,Nobody,,,,1,
444,SICP,Textbook,Abelson,MIT Press,CS,,1,T1
"""

STUDENTS_CSV = """usn,name,email,password,branch,department,batch
1AB21CS001,Asha Rao,asha@example.com,pw1,CSE,Engineering,2021
1AB21CS002,Ravi Kumar,ravi@example.com,pw2,CSE,Engineering,
1AB21CS001,Asha Again,asha2@example.com,pw3,CSE,Engineering,2021
1AB21CS003,Meera N,meera@example.com,pw4,ECE,Engineering,2022
"""


def test_generate_code_takes_lowest_free_sequence():
    used = {"NO001", "NO003"}
    assert generate_code("novel", used) == "NO002"
    assert generate_code("Novel", used) == "NO004"
    assert "NO004" in used


def test_read_csv_skips_blank_lines():
    rows = read_csv(b"ISBN,title,type\n1,A,Novel\n,,\n")
    assert rows == [{"ISBN": "1", "title": "A", "type": "Novel"}]


def test_import_books(repo, make_book):
    make_book(isbn="222", title="Emma", code="NO001")

    summary = import_books(repo, read_csv(BOOKS_CSV))

    assert summary["created"] == 2
    assert summary["skipped"] == 3
    assert [row["ISBN"] for row in summary["skipped_rows"]] == ["222", "111", "333"]

    dune = repo.find_one("books", isbn="111")
    assert dune.code == "NO002"
    assert dune.tags == ["space", "desert"]
    assert dune.categories == "Sci-Fi, Classic"
    assert dune.available_count == 3
    assert dune.shelf_code == "S1"
    assert repo.find_one("books", isbn="444").code == "TE001"

    assert {a.name for a in repo.find("authors")} == {"Frank Herbert", "Abelson"}
    assert {c.name for c in repo.find("categories")} == {"Sci-Fi", "Classic", "CS"}
    assert {t.name for t in repo.find("book_types")} == {"Novel", "Textbook"}


def test_import_students(repo):
    summary = import_students(repo, read_csv(STUDENTS_CSV))

    assert summary["created"] == 2
    assert [row["usn"] for row in summary["skipped_rows"]] == ["1AB21CS002", "1AB21CS001"]

    asha = repo.find_one("students", usn="1AB21CS001")
    assert asha.name == "Asha Rao"
    assert verify_password("pw1", asha.hashed_password)
    assert repo.count("students") == 2


def test_import_with_nothing_valid_writes_nothing(repo):
    summary = import_students(repo, read_csv("usn,name\n1AB21CS009,Lone\n"))
    assert summary["created"] == 0
    assert summary["skipped"] == 1
    assert repo.count("students") == 0
