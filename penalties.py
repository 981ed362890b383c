"""Late-return penalties for borrow records.

A penalty accrues ``PENALTY_PER_DAY`` units for each whole day past the due
date, capped at ``PENALTY_CAP_DAYS`` days. With the defaults that is 10 per
day and never more than 100.
"""

import logging
from datetime import datetime, time
from typing import List, Optional, Tuple

from config import settings
from models import LoanStatus
from repository import DocumentRepository

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def compute_penalty(
    due_at: datetime,
    now: datetime,
    per_day: Optional[int] = None,
    cap_days: Optional[int] = None,
) -> int:
    per_day = settings.penalty_per_day if per_day is None else per_day
    cap_days = settings.penalty_cap_days if cap_days is None else cap_days
    days_late = int((now - due_at).total_seconds() // SECONDS_PER_DAY)
    if days_late <= 0:
        return 0
    return min(days_late, cap_days) * per_day


def day_bounds(now: datetime) -> Tuple[datetime, datetime]:
    return datetime.combine(now.date(), time.min), datetime.combine(now.date(), time.max)


def paid_today(record, now: datetime) -> bool:
    start, end = day_bounds(now)
    return record.penalty_paid_at is not None and start <= record.penalty_paid_at <= end


def flag_is_current(record, now: datetime) -> bool:
    """The paid-today flag only counts on the day it was set.

    Records flagged before ``penalty_paid_at`` existed carry no timestamp;
    their flag is trusted as is.
    """
    if not record.penalty_paid_today:
        return False
    return record.penalty_paid_at is None or paid_today(record, now)


def penalty_settled(record, now: datetime) -> bool:
    return flag_is_current(record, now) or paid_today(record, now)


def current_penalty(record, now: datetime) -> int:
    """Penalty the record owes right now, ignoring any payment."""
    if record.status != LoanStatus.ACTIVE.value:
        return record.penalty_amount or 0
    return compute_penalty(record.due_at, now)


def payment_status(record, now: datetime) -> Tuple[bool, str]:
    if penalty_settled(record, now):
        return True, "Penalty paid"
    if record.penalty_paid_at is None:
        return False, f"No penalty payment record found for {record.book_title or record.isbn}."
    return False, f"The penalty for {record.book_title or record.isbn} has not been paid today."


def check_penalty_paid_today(
    repo: DocumentRepository, record_id: int, now: Optional[datetime] = None
) -> Tuple[bool, str]:
    """Return ``(ok, reason)`` for a borrow record's penalty payment.

    A current paid-today flag also zeroes the stored penalty.
    """
    now = now or datetime.utcnow()
    record = repo.get("borrow_records", record_id)
    ok, reason = payment_status(record, now)
    if ok and flag_is_current(record, now) and record.penalty_amount:
        repo.update("borrow_records", record.id, {"penalty_amount": 0})
    return ok, reason


def clear_penalty(repo: DocumentRepository, record_id: int, now: Optional[datetime] = None):
    """Record an offline penalty payment taken by staff."""
    now = now or datetime.utcnow()
    record = repo.update(
        "borrow_records",
        record_id,
        {"penalty_amount": 0, "penalty_paid_today": True, "penalty_paid_at": now},
    )
    logger.info("Penalty cleared for borrow record %s", record_id)
    return record


def refresh_penalty(repo: DocumentRepository, record, now: Optional[datetime] = None):
    """Persist the recomputed penalty of one active borrow record."""
    now = now or datetime.utcnow()
    if record.status != LoanStatus.ACTIVE.value:
        return record
    changes = {}
    if record.penalty_paid_today and not flag_is_current(record, now):
        changes["penalty_paid_today"] = False
    amount = 0 if penalty_settled(record, now) else compute_penalty(record.due_at, now)
    if amount != record.penalty_amount:
        changes["penalty_amount"] = amount
    if changes:
        record = repo.update("borrow_records", record.id, changes)
    return record


def outstanding_penalties(repo: DocumentRepository, now: Optional[datetime] = None) -> List:
    """Active borrow records that currently owe a penalty."""
    now = now or datetime.utcnow()
    owing = []
    for record in repo.find("borrow_records", order_by="due_at", status=LoanStatus.ACTIVE.value):
        record = refresh_penalty(repo, record, now)
        if record.penalty_amount > 0:
            owing.append(record)
    return owing
