from typing import List, Optional

from fastapi import APIRouter, Body, Depends, File, HTTPException, Query, UploadFile, status

import catalog
import circulation
import entry_log
import schemas
from cart import Cart
from exceptions import LedgerError, RecordNotFound
from models import LoanKind, Student
from penalties import check_penalty_paid_today
from repository import DocumentRepository, get_repo
from storage import discard_evidence_photo, save_evidence_photo

router = APIRouter(
    prefix="/portal",
    tags=["Portal"],
    responses={404: {"description": "Not found"}},
)


def _student(student_id: int, repo: DocumentRepository) -> Student:
    return repo.get("students", student_id)


def _result(result) -> dict:
    # shallow: the records stay ORM objects for the response model
    return dict(vars(result))


# --- Sessions ---
@router.post("/sessions", response_model=schemas.SessionOut, status_code=status.HTTP_201_CREATED)
def open_session(credentials: schemas.SessionStart, repo: DocumentRepository = Depends(get_repo)):
    """Sign a student in with USN and password and open their entry log."""
    student, log = entry_log.start_session(repo, credentials.usn, credentials.password)
    return {"student": student, "entry_log": log}


@router.post("/sessions/{log_id}/heartbeat", response_model=schemas.EntryLogOut)
def session_heartbeat(log_id: int, repo: DocumentRepository = Depends(get_repo)):
    return entry_log.touch_session(repo, log_id)


@router.post("/sessions/{log_id}/close", response_model=schemas.EntryLogOut)
def close_session(log_id: int, repo: DocumentRepository = Depends(get_repo)):
    return entry_log.close_session(repo, log_id)


# --- Catalog ---
@router.get("/books", response_model=List[schemas.BookOut])
def search_books(
    q: Optional[str] = None,
    type: Optional[str] = None,
    repo: DocumentRepository = Depends(get_repo),
):
    """
    Search the catalog.
    - **q**: text matched against title, author, publisher, ISBN and tags
    - **type**: exact book type
    """
    return catalog.search_books(repo, q=q, type=type)


@router.get("/books/types", response_model=List[str])
def list_book_types(repo: DocumentRepository = Depends(get_repo)):
    return catalog.book_types(repo)


@router.get("/books/popular", response_model=List[schemas.PopularBook])
def popular_books(repo: DocumentRepository = Depends(get_repo)):
    popular = catalog.most_borrowed(repo)
    return [
        schemas.PopularBook(
            **schemas.BookOut.model_validate(item["book"]).model_dump(),
            borrow_count=item["borrow_count"],
        )
        for item in popular
    ]


# --- Cart ---
@router.get("/students/{student_id}/cart", response_model=List[schemas.CartItemOut])
def view_cart(student_id: int, repo: DocumentRepository = Depends(get_repo)):
    _student(student_id, repo)
    return Cart(repo, student_id).items()


@router.post(
    "/students/{student_id}/cart",
    response_model=schemas.CartItemOut,
    status_code=status.HTTP_201_CREATED,
)
def add_to_cart(student_id: int, item: schemas.CartAdd, repo: DocumentRepository = Depends(get_repo)):
    _student(student_id, repo)
    return Cart(repo, student_id).add(item.isbn)


@router.delete("/students/{student_id}/cart/{isbn}")
def remove_from_cart(student_id: int, isbn: str, repo: DocumentRepository = Depends(get_repo)):
    _student(student_id, repo)
    if not Cart(repo, student_id).remove(isbn):
        raise HTTPException(status_code=404, detail="Book not in cart")
    return {"detail": "Removed from cart", "isbn": isbn}


# --- Circulation ---
@router.post("/students/{student_id}/checkout", response_model=schemas.ReceiptOut)
def checkout(
    student_id: int,
    payload: Optional[schemas.CheckoutRequest] = Body(None),
    repo: DocumentRepository = Depends(get_repo),
):
    """Issue the given ISBNs (or the whole cart) for in-library reading."""
    student = _student(student_id, repo)
    cart = Cart(repo, student_id)
    if payload is not None and payload.isbns is not None:
        return _result(circulation.checkout(repo, student, payload.isbns))
    return _result(circulation.checkout(repo, student, cart.isbns(), cart=cart))


@router.post("/students/{student_id}/borrow", response_model=schemas.ReceiptOut)
def borrow(
    student_id: int,
    photo: Optional[UploadFile] = File(None),
    repo: DocumentRepository = Depends(get_repo),
):
    """Borrow everything in the cart; an evidence photo may be attached."""
    student = _student(student_id, repo)
    cart = Cart(repo, student_id)
    evidence = save_evidence_photo(photo)
    try:
        receipt = circulation.borrow(repo, student, cart.isbns(), cart=cart, evidence_photo=evidence)
    except LedgerError as e:
        # records committed before the failure still point at the photo
        if not e.committed:
            discard_evidence_photo(evidence)
        raise
    return _result(receipt)


@router.get("/students/{student_id}/loans", response_model=List[schemas.LoanRecordOut])
def active_loans(
    student_id: int,
    kind: LoanKind = Query(LoanKind.BORROW),
    repo: DocumentRepository = Depends(get_repo),
):
    student = _student(student_id, repo)
    return circulation.active_loans(repo, student.email, kind)


@router.get("/students/{student_id}/loans/{record_id}/penalty", response_model=schemas.PenaltyStatus)
def penalty_status(student_id: int, record_id: int, repo: DocumentRepository = Depends(get_repo)):
    student = _student(student_id, repo)
    record = repo.find_one("borrow_records", id=record_id, patron_id=student.email)
    if record is None:
        raise RecordNotFound(f"Loan record {record_id} not found")
    paid, reason = check_penalty_paid_today(repo, record_id)
    return {"record_id": record_id, "paid": paid, "reason": reason}


@router.post("/students/{student_id}/returns", response_model=schemas.ReturnSummaryOut)
def return_books(
    student_id: int,
    request: schemas.ReturnRequest,
    repo: DocumentRepository = Depends(get_repo),
):
    student = _student(student_id, repo)
    summary = circulation.return_items(repo, request.record_ids, kind=request.kind, patron_id=student.email)
    return _result(summary)
