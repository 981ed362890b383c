from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Dict, List, Optional

from models import LoanKind


class BookCreate(BaseModel):
    isbn: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=300)
    author: Optional[str] = Field(None, max_length=200)
    publisher: Optional[str] = Field(None, max_length=200)
    type: Optional[str] = Field(None, max_length=100)
    categories: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    available_count: int = Field(0, ge=0, description="Copies on the shelf when the title is added")
    shelf_code: Optional[str] = Field(None, max_length=100)
    code: Optional[str] = Field(None, max_length=50)
    url: Optional[str] = None
    image_url: Optional[str] = None


class BookUpdate(BaseModel):
    # availability is owned by circulation and cannot be edited here
    title: Optional[str] = Field(None, min_length=1, max_length=300)
    author: Optional[str] = None
    publisher: Optional[str] = None
    type: Optional[str] = None
    categories: Optional[str] = None
    tags: Optional[List[str]] = None
    shelf_code: Optional[str] = None
    code: Optional[str] = None
    url: Optional[str] = None
    image_url: Optional[str] = None


class BookOut(BookCreate):
    id: int
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class StudentBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    usn: str = Field(..., min_length=1, max_length=50)
    batch: Optional[str] = None
    department: Optional[str] = None
    branch: Optional[str] = None


class StudentCreate(StudentBase):
    password: str = Field(..., min_length=4)


class StudentUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    usn: Optional[str] = None
    batch: Optional[str] = None
    department: Optional[str] = None
    branch: Optional[str] = None
    password: Optional[str] = Field(None, min_length=4)


class StudentOut(StudentBase):
    # CSV imports store the address as given
    email: str
    id: int
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class NamedCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class NamedOut(NamedCreate):
    id: int
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class LoanRecordOut(BaseModel):
    id: int
    kind: LoanKind
    patron_id: str
    patron_name: Optional[str] = None
    usn: Optional[str] = None
    branch: Optional[str] = None
    department: Optional[str] = None
    isbn: str
    book_title: Optional[str] = None
    created_at: datetime
    due_at: datetime
    returned_at: Optional[datetime] = None
    status: str
    penalty_amount: int = 0
    penalty_paid_today: bool = False
    penalty_paid_at: Optional[datetime] = None
    evidence_photo: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class CheckoutRequest(BaseModel):
    # omitted: use the student's cart
    isbns: Optional[List[str]] = None


class ReceiptOut(BaseModel):
    kind: LoanKind
    patron_id: str
    records: List[LoanRecordOut]
    model_config = ConfigDict(from_attributes=True)


class ReturnRequest(BaseModel):
    record_ids: List[int]
    kind: LoanKind = LoanKind.BORROW


class ReturnSummaryOut(BaseModel):
    kind: LoanKind
    records: List[LoanRecordOut]
    model_config = ConfigDict(from_attributes=True)


class CartAdd(BaseModel):
    isbn: str = Field(..., min_length=1)


class CartItemOut(BaseModel):
    id: int
    isbn: str
    title: Optional[str] = None
    added_at: datetime
    model_config = ConfigDict(from_attributes=True)


class SessionStart(BaseModel):
    usn: str
    password: str


class EntryLogOut(BaseModel):
    id: int
    patron_id: str
    patron_name: Optional[str] = None
    usn: Optional[str] = None
    in_time: datetime
    out_time: Optional[datetime] = None
    last_seen_at: datetime
    model_config = ConfigDict(from_attributes=True)


class SessionOut(BaseModel):
    student: StudentOut
    entry_log: EntryLogOut


class PopularBook(BookOut):
    borrow_count: int


class ImportSummary(BaseModel):
    created: int
    skipped: int
    skipped_rows: List[Dict[str, Optional[str]]] = Field(default_factory=list)


class DashboardStats(BaseModel):
    total_books: int
    total_students: int
    reading_issues: int
    active_reading_issues: int
    borrow_records: int
    active_borrow_records: int
    entry_logs: int
    open_entry_logs: int


class DateCount(BaseModel):
    date: date
    count: int


class DepartmentCount(BaseModel):
    department: str
    count: int


class BorrowActivity(BaseModel):
    by_date: List[DateCount]
    by_department: List[DepartmentCount]


class PenaltyStatus(BaseModel):
    record_id: int
    paid: bool
    reason: str
