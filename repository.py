"""Document-store style access to the library tables.

The ledger code only talks to collections by name through
``DocumentRepository``; the SQLAlchemy session underneath is an
implementation detail. Writes commit immediately unless they run inside
``atomic()``, in which case the outermost block commits once.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional, Tuple

from fastapi import Depends
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

import models
from database import get_db
from exceptions import NotFound, StorageFailure

logger = logging.getLogger(__name__)

COLLECTIONS = {
    "books": models.Book,
    "students": models.Student,
    "authors": models.Author,
    "categories": models.Category,
    "book_types": models.BookType,
    "reading_issues": models.ReadingIssue,
    "borrow_records": models.BorrowRecord,
    "entry_logs": models.EntryLog,
    "cart_items": models.CartItem,
}


class DocumentRepository:
    def __init__(self, db: Session):
        self.db = db
        self._depth = 0

    def _model(self, collection: str):
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise ValueError(f"Unknown collection: {collection}")

    def _storage_failure(self, exc: SQLAlchemyError) -> StorageFailure:
        self.db.rollback()
        logger.exception("Storage call failed")
        return StorageFailure(f"Storage failure: {exc.__class__.__name__}")

    def _commit(self) -> None:
        if self._depth:
            self.db.flush()
            return
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            raise self._storage_failure(e) from e

    @contextmanager
    def atomic(self):
        """Group repository calls into one transaction.

        Nested blocks join the outer one. IntegrityError is re-raised as is
        so callers can map it to a domain error.
        """
        if self._depth:
            yield self
            return
        self._depth += 1
        try:
            yield self
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            raise self._storage_failure(e) from e
        except Exception:
            self.db.rollback()
            raise
        finally:
            self._depth -= 1

    # --- reads ---
    def find(
        self,
        collection: str,
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
        **filters: Any,
    ) -> List[Any]:
        """Return documents whose fields equal ``filters``.

        ``order_by`` names a field; prefix it with ``-`` for descending order.
        """
        model = self._model(collection)
        query = self.db.query(model).filter_by(**filters)
        if order_by:
            column = getattr(model, order_by.lstrip("-"))
            query = query.order_by(column.desc() if order_by.startswith("-") else column.asc())
        else:
            query = query.order_by(model.id.asc())
        if limit is not None:
            query = query.limit(limit)
        try:
            return query.all()
        except SQLAlchemyError as e:
            raise self._storage_failure(e) from e

    def find_one(self, collection: str, **filters: Any) -> Optional[Any]:
        found = self.find(collection, limit=1, **filters)
        return found[0] if found else None

    def count(self, collection: str, **filters: Any) -> int:
        try:
            return self.db.query(self._model(collection)).filter_by(**filters).count()
        except SQLAlchemyError as e:
            raise self._storage_failure(e) from e

    def get(self, collection: str, doc_id: int) -> Any:
        try:
            doc = self.db.get(self._model(collection), doc_id)
        except SQLAlchemyError as e:
            raise self._storage_failure(e) from e
        if doc is None:
            raise NotFound(f"No document {doc_id} in {collection}")
        return doc

    # --- writes ---
    def create(self, collection: str, data: Dict[str, Any]) -> Any:
        doc = self._model(collection)(**data)
        self.db.add(doc)
        self._commit()
        self.db.refresh(doc)
        return doc

    def update(self, collection: str, doc_id: int, changes: Dict[str, Any]) -> Any:
        doc = self.get(collection, doc_id)
        for key, value in changes.items():
            setattr(doc, key, value)
        self.db.add(doc)
        self._commit()
        self.db.refresh(doc)
        return doc

    def update_where(self, collection: str, doc_id: int, changes: Dict[str, Any], **expected: Any) -> Optional[Any]:
        """Apply ``changes`` only while the document still matches ``expected``.

        The check is the WHERE clause of the UPDATE, so of two writers racing
        on the same document only one sees a matched row. Returns the updated
        document, or None when the guard did not match.
        """
        model = self._model(collection)
        try:
            matched = self.db.query(model).filter_by(id=doc_id, **expected).update(
                changes, synchronize_session="fetch"
            )
        except SQLAlchemyError as e:
            raise self._storage_failure(e) from e
        if not matched:
            if not self._depth:
                self.db.rollback()
            return None
        self._commit()
        return self.get(collection, doc_id)

    def delete(self, collection: str, doc_id: int) -> None:
        doc = self.get(collection, doc_id)
        self.db.delete(doc)
        self._commit()

    def delete_where(self, collection: str, **filters: Any) -> int:
        try:
            removed = self.db.query(self._model(collection)).filter_by(**filters).delete(
                synchronize_session="fetch"
            )
        except SQLAlchemyError as e:
            raise self._storage_failure(e) from e
        self._commit()
        return removed

    def run_batch(self, writes: Iterable[Tuple[str, Dict[str, Any]]]) -> List[Any]:
        """Create every ``(collection, data)`` pair in a single commit."""
        docs = []
        with self.atomic():
            for collection, data in writes:
                doc = self._model(collection)(**data)
                self.db.add(doc)
                docs.append(doc)
        return docs

    def adjust_counter(
        self,
        collection: str,
        field: str,
        delta: int,
        floor: Optional[int] = 0,
        **filters: Any,
    ) -> Optional[int]:
        """Atomically add ``delta`` to ``field`` on the matching document.

        The guard ``field + delta >= floor`` is part of the UPDATE itself, so
        two concurrent decrements can never drive the value below ``floor``.
        Returns the new value, or None when no row passed the guard.
        """
        model = self._model(collection)
        column = getattr(model, field)
        query = self.db.query(model).filter_by(**filters)
        if floor is not None:
            query = query.filter(column + delta >= floor)
        try:
            matched = query.update({column: column + delta}, synchronize_session="fetch")
        except SQLAlchemyError as e:
            raise self._storage_failure(e) from e
        if not matched:
            if not self._depth:
                self.db.rollback()
            return None
        self._commit()
        try:
            return self.db.query(column).filter_by(**filters).scalar()
        except SQLAlchemyError as e:
            raise self._storage_failure(e) from e


# FastAPI dependency
def get_repo(db: Session = Depends(get_db)) -> DocumentRepository:
    return DocumentRepository(db)
