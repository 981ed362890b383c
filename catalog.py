"""Read-side views of the catalog and circulation history."""

import logging
from collections import Counter
from typing import Dict, List, Optional

from exceptions import StorageFailure
from models import LoanStatus
from repository import DocumentRepository

logger = logging.getLogger(__name__)

POPULAR_LIMIT = 4


def _matches(book, term: str) -> bool:
    fields = [book.title, book.author, book.publisher, book.isbn] + list(book.tags or [])
    return any(term in (value or "").lower() for value in fields)


def search_books(repo: DocumentRepository, q: Optional[str] = None, type: Optional[str] = None) -> List:
    """Books whose title, author, publisher, ISBN or tags contain ``q``."""
    filters = {"type": type} if type else {}
    books = repo.find("books", order_by="title", **filters)
    if q and q.strip():
        term = q.strip().lower()
        books = [b for b in books if _matches(b, term)]
    return books


def book_types(repo: DocumentRepository) -> List[str]:
    # feeds the filter dropdown only; an error leaves it empty
    try:
        books = repo.find("books")
    except StorageFailure:
        logger.exception("Error fetching book types")
        return []
    return sorted({b.type for b in books if b.type})


def most_borrowed(repo: DocumentRepository, limit: int = POPULAR_LIMIT) -> List[Dict]:
    """Most borrowed titles that still have a copy on the shelf."""
    counts = Counter(r.isbn for r in repo.find("borrow_records"))
    popular = []
    for isbn, borrow_count in counts.most_common():
        book = repo.find_one("books", isbn=isbn)
        if book is None or book.available_count <= 0:
            continue
        popular.append({"book": book, "borrow_count": borrow_count})
        if len(popular) == limit:
            break
    return popular


def dashboard_stats(repo: DocumentRepository) -> Dict[str, int]:
    active = LoanStatus.ACTIVE.value
    return {
        "total_books": repo.count("books"),
        "total_students": repo.count("students"),
        "reading_issues": repo.count("reading_issues"),
        "active_reading_issues": repo.count("reading_issues", status=active),
        "borrow_records": repo.count("borrow_records"),
        "active_borrow_records": repo.count("borrow_records", status=active),
        "entry_logs": repo.count("entry_logs"),
        "open_entry_logs": repo.count("entry_logs", out_time=None),
    }


def borrow_activity(repo: DocumentRepository) -> Dict[str, List[Dict]]:
    """Borrow counts grouped by day and by department, for the charts."""
    records = repo.find("borrow_records", order_by="created_at")
    by_date = Counter(r.created_at.date() for r in records)
    by_department = Counter(r.department or "Unknown" for r in records)
    return {
        "by_date": [{"date": d, "count": c} for d, c in sorted(by_date.items())],
        "by_department": [{"department": d, "count": c} for d, c in by_department.most_common()],
    }


def loan_history(repo: DocumentRepository, collection: str, status: Optional[str] = None) -> List:
    """All records of one loan collection, newest first."""
    filters = {"status": status} if status else {}
    return repo.find(collection, order_by="-created_at", **filters)
