"""Back-office catalog and student records."""

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from exceptions import DuplicateEntry, NotFound
from models import Book, Student
from repository import DocumentRepository
from schemas import BookCreate, BookUpdate, NamedCreate, StudentCreate, StudentUpdate
from security import get_password_hash

logger = logging.getLogger(__name__)

# lookup lists kept for the book form and the CSV import
NAMED_COLLECTIONS = ("authors", "categories", "book_types")


# --- Book CRUD ---
def add_book(book_data: BookCreate, repo: DocumentRepository) -> Book:
    # Guard against duplicates before hitting DB constraints
    if repo.find_one("books", isbn=book_data.isbn):
        raise DuplicateEntry("A book with this ISBN already exists.", isbn=book_data.isbn)
    if book_data.code and repo.find_one("books", code=book_data.code):
        raise DuplicateEntry("A book with this code already exists.", isbn=book_data.isbn)
    try:
        book = repo.create("books", book_data.model_dump())
    except IntegrityError as e:
        msg = str(e.orig) if getattr(e, "orig", None) else str(e)
        raise DuplicateEntry(msg, isbn=book_data.isbn) from e
    logger.info("Book %s added (%s copies)", book.isbn, book.available_count)
    return book


def get_books(repo: DocumentRepository, skip: int = 0, limit: int = 100) -> List[Book]:
    return repo.find("books", order_by="title")[skip:skip + limit]


def get_book_by_id(book_id: int, repo: DocumentRepository) -> Optional[Book]:
    return repo.find_one("books", id=book_id)


def update_book(book_id: int, book_data: BookUpdate, repo: DocumentRepository) -> Optional[Book]:
    book = get_book_by_id(book_id, repo)
    if not book:
        return None
    changes = book_data.model_dump(exclude_unset=True)
    if changes.get("code") and changes["code"] != book.code:
        if repo.find_one("books", code=changes["code"]):
            raise DuplicateEntry("A book with this code already exists.", isbn=book.isbn)
    try:
        return repo.update("books", book_id, changes)
    except IntegrityError as e:
        msg = str(e.orig) if getattr(e, "orig", None) else str(e)
        raise DuplicateEntry(msg, isbn=book.isbn) from e


def delete_book(book_id: int, repo: DocumentRepository) -> bool:
    try:
        repo.delete("books", book_id)
    except NotFound:
        return False
    return True


# --- Student CRUD ---
def add_student(student_data: StudentCreate, repo: DocumentRepository) -> Student:
    if repo.find_one("students", usn=student_data.usn):
        raise DuplicateEntry(f"A student with USN {student_data.usn} already exists.")
    if repo.find_one("students", email=student_data.email):
        raise DuplicateEntry(f"A student with email {student_data.email} already exists.")
    data = student_data.model_dump(exclude={"password"})
    data["hashed_password"] = get_password_hash(student_data.password)
    try:
        student = repo.create("students", data)
    except IntegrityError as e:
        msg = str(e.orig) if getattr(e, "orig", None) else str(e)
        raise DuplicateEntry(msg) from e
    logger.info("Student %s registered", student.usn)
    return student


def get_students(repo: DocumentRepository, skip: int = 0, limit: int = 100) -> List[Student]:
    return repo.find("students", order_by="name")[skip:skip + limit]


def get_student_by_id(student_id: int, repo: DocumentRepository) -> Optional[Student]:
    return repo.find_one("students", id=student_id)


def update_student(student_id: int, student_data: StudentUpdate, repo: DocumentRepository) -> Optional[Student]:
    student = get_student_by_id(student_id, repo)
    if not student:
        return None
    changes = student_data.model_dump(exclude_unset=True)
    password = changes.pop("password", None)
    if password:
        changes["hashed_password"] = get_password_hash(password)
    for field in ("usn", "email"):
        value = changes.get(field)
        if value and value != getattr(student, field):
            if repo.find_one("students", **{field: value}):
                raise DuplicateEntry(f"A student with {field} {value} already exists.")
    try:
        return repo.update("students", student_id, changes)
    except IntegrityError as e:
        msg = str(e.orig) if getattr(e, "orig", None) else str(e)
        raise DuplicateEntry(msg) from e


def delete_student(student_id: int, repo: DocumentRepository) -> bool:
    try:
        repo.delete("students", student_id)
    except NotFound:
        return False
    return True


# --- Authors, categories and book types ---
def add_named(collection: str, data: NamedCreate, repo: DocumentRepository):
    if repo.find_one(collection, name=data.name):
        raise DuplicateEntry(f"{data.name} already exists.")
    return repo.create(collection, {"name": data.name})


def list_named(collection: str, repo: DocumentRepository) -> List:
    return repo.find(collection, order_by="name")


def delete_named(collection: str, doc_id: int, repo: DocumentRepository) -> bool:
    try:
        repo.delete(collection, doc_id)
    except NotFound:
        return False
    return True
