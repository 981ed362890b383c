"""Bulk CSV import of books and students.

Rows are validated and de-duplicated up front; everything that passes is
written with a single ``run_batch`` so a storage error leaves nothing
half-imported.
"""

import csv
import io
import logging
from typing import Dict, Iterable, List, Set, Union

from sqlalchemy.exc import IntegrityError

from exceptions import DuplicateEntry
from repository import DocumentRepository
from security import get_password_hash

logger = logging.getLogger(__name__)

BOOK_REQUIRED = ("ISBN", "title", "type")
STUDENT_REQUIRED = ("usn", "name", "email", "password", "branch", "department", "batch")


def read_csv(content: Union[bytes, str]) -> List[Dict[str, str]]:
    if isinstance(content, bytes):
        content = content.decode("utf-8-sig")
    reader = csv.DictReader(io.StringIO(content))
    rows = []
    for row in reader:
        # skip blank lines
        if any((value or "").strip() for value in row.values() if isinstance(value, str)):
            rows.append(row)
    return rows


def _clean(row: Dict, key: str) -> str:
    value = row.get(key)
    return value.strip() if isinstance(value, str) else ""


def _split(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def generate_code(book_type: str, used: Set[str]) -> str:
    """First two letters of the type plus the lowest free 3-digit sequence."""
    prefix = book_type[:2].upper()
    sequence = 1
    code = f"{prefix}{sequence:03d}"
    while code in used:
        sequence += 1
        code = f"{prefix}{sequence:03d}"
    used.add(code)
    return code


def _summary(created: int, skipped_rows: List[Dict]) -> Dict:
    # DictReader files surplus cells under a None key
    rows = [{k: v for k, v in row.items() if k is not None} for row in skipped_rows]
    return {"created": created, "skipped": len(rows), "skipped_rows": rows}


def _commit(repo: DocumentRepository, writes: List, what: str) -> None:
    try:
        repo.run_batch(writes)
    except IntegrityError as e:
        logger.warning("%s import rejected by the database: %s", what, e.orig)
        raise DuplicateEntry(f"{what} import conflicts with existing records.") from e


def import_books(repo: DocumentRepository, rows: Iterable[Dict[str, str]]) -> Dict:
    """Add every new book in ``rows`` along with missing authors, categories and types."""
    books = repo.find("books")
    isbns = {b.isbn for b in books}
    codes = {b.code for b in books if b.code}
    authors = {a.name for a in repo.find("authors")}
    categories = {c.name for c in repo.find("categories")}
    types = {t.name for t in repo.find("book_types")}

    writes = []
    skipped_rows = []
    created = 0
    for index, row in enumerate(rows):
        if any(not _clean(row, key) for key in BOOK_REQUIRED):
            logger.warning("Skipping book #%s: missing required fields", index + 1)
            skipped_rows.append(row)
            continue
        isbn = _clean(row, "ISBN")
        if isbn in isbns:
            logger.warning("Skipping duplicate ISBN (%s) for book #%s", isbn, index + 1)
            skipped_rows.append(row)
            continue
        available = _clean(row, "bookavailable") or "0"
        if not available.isdigit():
            logger.warning("Skipping book #%s: bad available count %r", index + 1, available)
            skipped_rows.append(row)
            continue

        raw_categories = _clean(row, "categories")
        for name in _split(raw_categories):
            if name not in categories:
                writes.append(("categories", {"name": name}))
                categories.add(name)
        author = _clean(row, "author")
        if author and author not in authors:
            writes.append(("authors", {"name": author}))
            authors.add(author)
        book_type = _clean(row, "type")
        if book_type not in types:
            writes.append(("book_types", {"name": book_type}))
            types.add(book_type)

        writes.append((
            "books",
            {
                "isbn": isbn,
                "title": _clean(row, "title"),
                "author": author,
                "publisher": _clean(row, "publisher"),
                "url": _clean(row, "url"),
                "type": book_type,
                "categories": raw_categories,
                "tags": _split(_clean(row, "tags")),
                "code": generate_code(book_type, codes),
                "available_count": int(available),
                "shelf_code": _clean(row, "book_shelf") or None,
            },
        ))
        isbns.add(isbn)
        created += 1

    if writes:
        _commit(repo, writes, "Book")
    logger.info("Book import: %s created, %s skipped", created, len(skipped_rows))
    return _summary(created, skipped_rows)


def import_students(repo: DocumentRepository, rows: Iterable[Dict[str, str]]) -> Dict:
    """Register every new student in ``rows``; incomplete or duplicate rows come back skipped."""
    students = repo.find("students")
    usns = {s.usn for s in students}
    emails = {s.email for s in students}

    writes = []
    skipped_rows = []
    for index, row in enumerate(rows):
        if any(not _clean(row, key) for key in STUDENT_REQUIRED):
            logger.warning("Skipping student #%s: missing required fields", index + 1)
            skipped_rows.append(row)
            continue
        usn = _clean(row, "usn")
        email = _clean(row, "email")
        if usn in usns or email in emails:
            logger.warning("Skipping duplicate USN (%s) for student #%s", usn, index + 1)
            skipped_rows.append(row)
            continue
        writes.append((
            "students",
            {
                "usn": usn,
                "name": _clean(row, "name"),
                "email": email,
                "hashed_password": get_password_hash(_clean(row, "password")),
                "branch": _clean(row, "branch"),
                "department": _clean(row, "department"),
                "batch": _clean(row, "batch"),
            },
        ))
        usns.add(usn)
        emails.add(email)

    if writes:
        _commit(repo, writes, "Student")
    logger.info("Student import: %s created, %s skipped", len(writes), len(skipped_rows))
    return _summary(len(writes), skipped_rows)
