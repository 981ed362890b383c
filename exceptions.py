"""Errors raised by the circulation ledger and the back office.

Every error carries the HTTP status the API should answer with; the
handler registered in ``main.py`` turns them into ``{"detail": ...}``.
"""

from typing import List, Optional


class LedgerError(Exception):
    status_code = 400

    def __init__(self, message: str, *, isbn: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.isbn = isbn
        # batch context, filled in by the circulation recorder
        self.index: Optional[int] = None
        self.committed: List[int] = []


class NotFound(LedgerError):
    status_code = 404


class RecordNotFound(NotFound):
    pass


class OutOfStock(LedgerError):
    status_code = 409


class Unavailable(OutOfStock):
    pass


class AlreadyBorrowed(LedgerError):
    status_code = 409


class PenaltyUnpaid(LedgerError):
    status_code = 402


class LoanNotActive(LedgerError):
    status_code = 409


class EmptyCart(LedgerError):
    pass


class DuplicateEntry(LedgerError):
    status_code = 409


class InvalidCredentials(LedgerError):
    status_code = 401


class SessionClosed(LedgerError):
    status_code = 409


class StorageFailure(LedgerError):
    status_code = 503
