"""Checkout, borrow and return of books.

Items in a batch are processed one after another in the order given. Each
item runs in its own transaction (duplicate check, availability decrement,
record insert), so a failure part way through a batch leaves the items
before it committed. The exception raised for the failing item carries its
``index`` and the ids already ``committed``.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError

from availability import decrement_availability, increment_availability
from cart import Cart
from config import settings
from exceptions import (
    AlreadyBorrowed,
    EmptyCart,
    LedgerError,
    LoanNotActive,
    OutOfStock,
    PenaltyUnpaid,
    RecordNotFound,
    Unavailable,
)
from models import LoanKind, LoanStatus, Student
from penalties import compute_penalty, current_penalty, payment_status, penalty_settled, refresh_penalty
from repository import DocumentRepository

logger = logging.getLogger(__name__)

LOAN_COLLECTIONS = {
    LoanKind.READING: "reading_issues",
    LoanKind.BORROW: "borrow_records",
}


@dataclass
class Receipt:
    kind: LoanKind
    patron_id: str
    records: List = field(default_factory=list)


@dataclass
class ReturnSummary:
    kind: LoanKind
    records: List = field(default_factory=list)

    @property
    def returned_ids(self) -> List[int]:
        return [r.id for r in self.records]


def _patron_fields(patron: Student) -> Dict:
    return {
        "patron_id": patron.email,
        "patron_name": patron.name,
        "usn": patron.usn,
        "branch": patron.branch,
        "department": patron.department,
    }


def _record_loan(
    repo: DocumentRepository,
    collection: str,
    patron: Student,
    isbn: str,
    now: datetime,
    due_at: datetime,
    extra: Dict,
):
    existing = repo.find_one(collection, patron_id=patron.email, isbn=isbn, status=LoanStatus.ACTIVE.value)
    if existing is not None:
        raise AlreadyBorrowed(f"You have already borrowed the book: {existing.book_title or isbn}.", isbn=isbn)

    try:
        with repo.atomic():
            try:
                decrement_availability(repo, isbn)
            except OutOfStock as e:
                raise Unavailable(f"The book {isbn} is currently unavailable.", isbn=isbn) from e
            book = repo.find_one("books", isbn=isbn)
            data = _patron_fields(patron)
            data.update(
                isbn=isbn,
                book_title=book.title,
                created_at=now,
                due_at=due_at,
                status=LoanStatus.ACTIVE.value,
                penalty_amount=0,
                penalty_paid_today=False,
                **extra,
            )
            return repo.create(collection, data)
    except IntegrityError as e:
        # another session inserted the same active loan between check and insert
        raise AlreadyBorrowed(f"You have already borrowed the book: {isbn}.", isbn=isbn) from e


def _run_loan_batch(
    repo: DocumentRepository,
    kind: LoanKind,
    patron: Student,
    isbns: Sequence[str],
    due_at: datetime,
    now: datetime,
    cart: Optional[Cart],
    extra: Optional[Dict] = None,
) -> Receipt:
    if not isbns:
        raise EmptyCart("Your cart is empty. Please add books to your cart before checking out.")
    collection = LOAN_COLLECTIONS[kind]
    receipt = Receipt(kind=kind, patron_id=patron.email)
    for index, isbn in enumerate(isbns):
        try:
            record = _record_loan(repo, collection, patron, isbn, now, due_at, extra or {})
        except LedgerError as e:
            e.index = index
            e.committed = [r.id for r in receipt.records]
            logger.warning(
                "%s batch for %s stopped at item %s (%s): %s",
                kind.value, patron.email, index, isbn, e.message,
            )
            raise
        receipt.records.append(record)
        logger.info("%s record %s created for %s / %s", kind.value, record.id, patron.email, isbn)
    if cart is not None:
        cart.clear()
    return receipt


def checkout(
    repo: DocumentRepository,
    patron: Student,
    isbns: Sequence[str],
    cart: Optional[Cart] = None,
    now: Optional[datetime] = None,
) -> Receipt:
    """Issue books for in-library reading; they are due immediately."""
    now = now or datetime.utcnow()
    return _run_loan_batch(repo, LoanKind.READING, patron, isbns, now, now, cart)


def borrow(
    repo: DocumentRepository,
    patron: Student,
    isbns: Sequence[str],
    loan_period_days: Optional[int] = None,
    cart: Optional[Cart] = None,
    evidence_photo: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Receipt:
    """Lend books for ``loan_period_days`` (10 by default)."""
    now = now or datetime.utcnow()
    days = settings.loan_period_days if loan_period_days is None else loan_period_days
    extra = {"evidence_photo": evidence_photo} if evidence_photo else {}
    return _run_loan_batch(repo, LoanKind.BORROW, patron, isbns, now + timedelta(days=days), now, cart, extra)


def return_items(
    repo: DocumentRepository,
    record_ids: Sequence[int],
    kind: LoanKind = LoanKind.BORROW,
    patron_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ReturnSummary:
    """Return the given loan records and put their copies back.

    Every id is resolved and every penalty checked before anything is
    written; a missing record or an unpaid penalty leaves the whole batch
    untouched.
    """
    now = now or datetime.utcnow()
    if not record_ids:
        raise EmptyCart("Please select at least one book to return.")
    collection = LOAN_COLLECTIONS[kind]
    # a record named twice is returned once
    record_ids = list(dict.fromkeys(record_ids))

    records = []
    for record_id in record_ids:
        record = repo.find_one(collection, id=record_id)
        if record is None or (patron_id is not None and record.patron_id != patron_id):
            raise RecordNotFound(f"Loan record {record_id} not found")
        if record.status != LoanStatus.ACTIVE.value:
            raise LoanNotActive(f"Loan record {record_id} was already returned", isbn=record.isbn)
        records.append(record)

    if kind == LoanKind.BORROW:
        for record in records:
            if max(current_penalty(record, now), record.penalty_amount or 0) <= 0:
                continue
            ok, reason = payment_status(record, now)
            if not ok:
                logger.warning("Return of record %s blocked: %s", record.id, reason)
                raise PenaltyUnpaid(
                    "You cannot return books with a penalty until the penalty is cleared. " + reason,
                    isbn=record.isbn,
                )

    summary = ReturnSummary(kind=kind)
    for record in records:
        changes = {"status": LoanStatus.RETURNED.value, "returned_at": now}
        if kind == LoanKind.BORROW:
            changes["penalty_amount"] = 0 if penalty_settled(record, now) else compute_penalty(record.due_at, now)
        with repo.atomic():
            updated = repo.update_where(collection, record.id, changes, status=LoanStatus.ACTIVE.value)
            if updated is None:
                raise LoanNotActive(f"Loan record {record.id} was already returned", isbn=record.isbn)
            increment_availability(repo, record.isbn)
        summary.records.append(updated)
        logger.info("%s record %s returned", kind.value, record.id)
    return summary


def active_loans(
    repo: DocumentRepository,
    patron_id: str,
    kind: LoanKind = LoanKind.BORROW,
    now: Optional[datetime] = None,
) -> List:
    """A patron's open loans; borrow records get their penalties refreshed."""
    now = now or datetime.utcnow()
    records = repo.find(LOAN_COLLECTIONS[kind], order_by="created_at", patron_id=patron_id,
                        status=LoanStatus.ACTIVE.value)
    if kind == LoanKind.BORROW:
        records = [refresh_penalty(repo, r, now) for r in records]
    return records
