import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON, Index, text
from database import Base


class LoanStatus(str, enum.Enum):
    ACTIVE = "Active"
    RETURNED = "Returned"


class LoanKind(str, enum.Enum):
    READING = "reading"
    BORROW = "borrow"


class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    usn = Column(String, unique=True, index=True, nullable=False)
    batch = Column(String, nullable=True)
    department = Column(String, nullable=True)
    branch = Column(String, nullable=True)
    hashed_password = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Book(Base):
    __tablename__ = "books"

    id = Column(Integer, primary_key=True, index=True)
    isbn = Column(String, unique=True, index=True, nullable=False)
    title = Column(String, nullable=False, index=True)
    author = Column(String, nullable=True, index=True)
    publisher = Column(String, nullable=True)
    type = Column(String, nullable=True, index=True)
    # kept as the raw comma-separated string the import provides
    categories = Column(String, nullable=True)
    tags = Column(JSON, default=list)
    available_count = Column(Integer, nullable=False, default=0)
    shelf_code = Column(String, nullable=True)
    code = Column(String, unique=True, index=True, nullable=True)
    url = Column(String, nullable=True)
    image_url = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Author(Base):
    __tablename__ = "authors"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class BookType(Base):
    __tablename__ = "book_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class LoanRecordMixin:
    """Columns shared by reading issues and borrow records."""

    id = Column(Integer, primary_key=True, index=True)
    patron_id = Column(String, index=True, nullable=False)  # student email
    patron_name = Column(String, nullable=True)
    usn = Column(String, nullable=True)
    branch = Column(String, nullable=True)
    department = Column(String, nullable=True)
    isbn = Column(String, index=True, nullable=False)
    book_title = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    due_at = Column(DateTime, nullable=False)
    returned_at = Column(DateTime, nullable=True)
    status = Column(String, default=LoanStatus.ACTIVE.value, index=True, nullable=False)
    penalty_amount = Column(Integer, default=0, nullable=False)
    penalty_paid_today = Column(Boolean, default=False, nullable=False)
    penalty_paid_at = Column(DateTime, nullable=True)


_ACTIVE_ONLY = text("status = 'Active'")


class ReadingIssue(LoanRecordMixin, Base):
    __tablename__ = "reading_issues"
    __table_args__ = (
        Index(
            "uq_reading_issues_active_loan", "patron_id", "isbn", unique=True,
            sqlite_where=_ACTIVE_ONLY, postgresql_where=_ACTIVE_ONLY,
        ),
    )

    kind = LoanKind.READING


class BorrowRecord(LoanRecordMixin, Base):
    __tablename__ = "borrow_records"
    __table_args__ = (
        Index(
            "uq_borrow_records_active_loan", "patron_id", "isbn", unique=True,
            sqlite_where=_ACTIVE_ONLY, postgresql_where=_ACTIVE_ONLY,
        ),
    )

    kind = LoanKind.BORROW
    evidence_photo = Column(String, nullable=True)


class EntryLog(Base):
    __tablename__ = "entry_logs"

    id = Column(Integer, primary_key=True, index=True)
    patron_id = Column(String, index=True, nullable=False)
    patron_name = Column(String, nullable=True, index=True)
    usn = Column(String, nullable=True)
    in_time = Column(DateTime, default=datetime.utcnow, nullable=False)
    out_time = Column(DateTime, nullable=True)
    last_seen_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class CartItem(Base):
    __tablename__ = "cart_items"
    __table_args__ = (
        Index("uq_cart_items_student_isbn", "student_id", "isbn", unique=True),
    )

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, index=True, nullable=False)
    isbn = Column(String, nullable=False)
    title = Column(String, nullable=True)
    added_at = Column(DateTime, default=datetime.utcnow, nullable=False)
