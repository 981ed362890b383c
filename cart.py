"""A student's staging list of titles picked for checkout or borrowing."""

import logging
from typing import List

from sqlalchemy.exc import IntegrityError

from exceptions import DuplicateEntry, NotFound
from repository import DocumentRepository

logger = logging.getLogger(__name__)


class Cart:
    """Ordered list of ISBNs owned by one student's session."""

    def __init__(self, repo: DocumentRepository, student_id: int):
        self.repo = repo
        self.student_id = student_id

    def items(self) -> List:
        return self.repo.find("cart_items", order_by="id", student_id=self.student_id)

    def isbns(self) -> List[str]:
        return [item.isbn for item in self.items()]

    def add(self, isbn: str):
        book = self.repo.find_one("books", isbn=isbn)
        if book is None:
            raise NotFound(f"No book with ISBN {isbn}", isbn=isbn)
        if self.repo.find_one("cart_items", student_id=self.student_id, isbn=isbn):
            raise DuplicateEntry(f"{book.title} is already in your cart.", isbn=isbn)
        try:
            return self.repo.create(
                "cart_items", {"student_id": self.student_id, "isbn": isbn, "title": book.title}
            )
        except IntegrityError as e:
            raise DuplicateEntry(f"{book.title} is already in your cart.", isbn=isbn) from e

    def remove(self, isbn: str) -> bool:
        return self.repo.delete_where("cart_items", student_id=self.student_id, isbn=isbn) > 0

    def clear(self) -> int:
        removed = self.repo.delete_where("cart_items", student_id=self.student_id)
        logger.info("Cleared %s item(s) from cart of student %s", removed, self.student_id)
        return removed
