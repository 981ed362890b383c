"""Per-title available-copy counter.

Only this module changes ``Book.available_count``.
"""

import logging

from exceptions import NotFound, OutOfStock
from repository import DocumentRepository

logger = logging.getLogger(__name__)


def _require_book(repo: DocumentRepository, isbn: str):
    book = repo.find_one("books", isbn=isbn)
    if book is None:
        raise NotFound(f"No book with ISBN {isbn}", isbn=isbn)
    return book


def decrement_availability(repo: DocumentRepository, isbn: str) -> int:
    """Take one copy off the shelf and return the new count."""
    _require_book(repo, isbn)
    new_count = repo.adjust_counter("books", "available_count", -1, floor=0, isbn=isbn)
    if new_count is None:
        logger.warning("Book %s is out of stock", isbn)
        raise OutOfStock(f"Book {isbn} has no available copies", isbn=isbn)
    logger.info("Availability of %s decremented to %s", isbn, new_count)
    return new_count


def increment_availability(repo: DocumentRepository, isbn: str) -> int:
    """Put one copy back. No upper bound: returns are trusted."""
    _require_book(repo, isbn)
    new_count = repo.adjust_counter("books", "available_count", 1, floor=None, isbn=isbn)
    logger.info("Availability of %s incremented to %s", isbn, new_count)
    return new_count
