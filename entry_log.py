"""Library entry log: one open record per portal session."""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from config import settings
from exceptions import InvalidCredentials, SessionClosed
from repository import DocumentRepository
from security import verify_password

logger = logging.getLogger(__name__)


def start_session(repo: DocumentRepository, usn: str, password: str, now: Optional[datetime] = None):
    """Check the student's credentials and open an entry log for them."""
    now = now or datetime.utcnow()
    student = repo.find_one("students", usn=usn)
    if student is None or not verify_password(password, student.hashed_password):
        logger.warning("Failed portal sign-in for USN %s", usn)
        raise InvalidCredentials("Invalid USN or password")
    log = repo.create(
        "entry_logs",
        {
            "patron_id": student.email,
            "patron_name": student.name,
            "usn": student.usn,
            "in_time": now,
            "last_seen_at": now,
        },
    )
    logger.info("Entry log %s opened for %s", log.id, student.usn)
    return student, log


def _open_log(repo: DocumentRepository, log_id: int):
    log = repo.get("entry_logs", log_id)
    if log.out_time is not None:
        raise SessionClosed(f"Entry log {log_id} is already closed")
    return log


def touch_session(repo: DocumentRepository, log_id: int, now: Optional[datetime] = None):
    now = now or datetime.utcnow()
    _open_log(repo, log_id)
    return repo.update("entry_logs", log_id, {"last_seen_at": now})


def close_session(repo: DocumentRepository, log_id: int, now: Optional[datetime] = None):
    now = now or datetime.utcnow()
    _open_log(repo, log_id)
    log = repo.update("entry_logs", log_id, {"out_time": now, "last_seen_at": now})
    logger.info("Entry log %s closed", log_id)
    return log


def expire_idle_sessions(
    repo: DocumentRepository, now: Optional[datetime] = None, idle_minutes: Optional[int] = None
) -> List:
    """Close every open log idle for longer than the timeout.

    The out time is the moment the session went idle plus the timeout,
    which is when the portal would have signed the student out.
    """
    now = now or datetime.utcnow()
    timeout = timedelta(minutes=settings.session_idle_minutes if idle_minutes is None else idle_minutes)
    closed = []
    for log in repo.find("entry_logs", out_time=None):
        if now - log.last_seen_at > timeout:
            closed.append(repo.update("entry_logs", log.id, {"out_time": log.last_seen_at + timeout}))
    if closed:
        logger.info("Closed %s idle entry log(s)", len(closed))
    return closed


def search_logs(repo: DocumentRepository, name: Optional[str] = None) -> List:
    """Entry logs, most recent first, optionally filtered by patron name."""
    logs = repo.find("entry_logs", order_by="-in_time")
    if name:
        term = name.lower()
        logs = [log for log in logs if term in (log.patron_name or "").lower()]
    return logs
