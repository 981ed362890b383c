import pytest

import crud
from exceptions import DuplicateEntry
from schemas import BookCreate, BookUpdate, NamedCreate, StudentCreate, StudentUpdate
from security import verify_password


def student_data(**overrides):
    data = dict(name="Asha Rao", email="asha@example.com", usn="1AB21CS001", password="pw1234",
                branch="CSE", department="Engineering", batch="2021")
    data.update(overrides)
    return StudentCreate(**data)


def test_add_book_rejects_duplicate_isbn_and_code(repo):
    crud.add_book(BookCreate(isbn="1", title="Dune", code="NO001", available_count=2), repo)

    with pytest.raises(DuplicateEntry):
        crud.add_book(BookCreate(isbn="1", title="Dune"), repo)
    with pytest.raises(DuplicateEntry):
        crud.add_book(BookCreate(isbn="2", title="Emma", code="NO001"), repo)


def test_update_book_leaves_availability(repo):
    book = crud.add_book(BookCreate(isbn="1", title="Dune", available_count=2), repo)
    updated = crud.update_book(book.id, BookUpdate(title="Dune Messiah"), repo)
    assert updated.title == "Dune Messiah"
    assert updated.available_count == 2
    assert crud.update_book(999, BookUpdate(title="x"), repo) is None


def test_students_are_unique_and_hashed(repo):
    student = crud.add_student(student_data(), repo)
    assert verify_password("pw1234", student.hashed_password)

    with pytest.raises(DuplicateEntry):
        crud.add_student(student_data(email="other@example.com"), repo)
    with pytest.raises(DuplicateEntry):
        crud.add_student(student_data(usn="1AB21CS002"), repo)


def test_update_student_rehashes_password(repo):
    student = crud.add_student(student_data(), repo)
    updated = crud.update_student(student.id, StudentUpdate(password="newpass"), repo)
    assert verify_password("newpass", updated.hashed_password)
    assert updated.usn == "1AB21CS001"


def test_named_lookups(repo):
    author = crud.add_named("authors", NamedCreate(name="Frank Herbert"), repo)
    with pytest.raises(DuplicateEntry):
        crud.add_named("authors", NamedCreate(name="Frank Herbert"), repo)
    assert [a.name for a in crud.list_named("authors", repo)] == ["Frank Herbert"]
    assert crud.delete_named("authors", author.id, repo) is True
    assert crud.delete_named("authors", author.id, repo) is False
