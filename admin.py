from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status

import catalog
import crud
import entry_log
import imports
import schemas
from models import LoanStatus
from penalties import clear_penalty, outstanding_penalties
from repository import DocumentRepository, get_repo
from security import require_staff_key

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(require_staff_key)],
    responses={404: {"description": "Not found"}},
)


async def _read_csv_upload(file: UploadFile):
    if not file.filename or not file.filename.lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail="Please upload a CSV file")
    return imports.read_csv(await file.read())


# --- Books ---
@router.get("/books", response_model=List[schemas.BookOut])
def list_books(skip: int = 0, limit: int = 100, repo: DocumentRepository = Depends(get_repo)):
    return crud.get_books(repo, skip=skip, limit=limit)


@router.post("/books", response_model=schemas.BookOut, status_code=status.HTTP_201_CREATED)
def create_book(book: schemas.BookCreate, repo: DocumentRepository = Depends(get_repo)):
    return crud.add_book(book, repo)


@router.post("/books/import", response_model=schemas.ImportSummary)
async def import_books(file: UploadFile = File(...), repo: DocumentRepository = Depends(get_repo)):
    """Bulk add books from a CSV with ISBN, title and type columns."""
    rows = await _read_csv_upload(file)
    return imports.import_books(repo, rows)


@router.get("/books/{book_id}", response_model=schemas.BookOut)
def read_book(book_id: int, repo: DocumentRepository = Depends(get_repo)):
    book = crud.get_book_by_id(book_id, repo)
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")
    return book


@router.put("/books/{book_id}", response_model=schemas.BookOut)
def edit_book(book_id: int, book: schemas.BookUpdate, repo: DocumentRepository = Depends(get_repo)):
    updated = crud.update_book(book_id, book, repo)
    if not updated:
        raise HTTPException(status_code=404, detail="Book not found")
    return updated


@router.delete("/books/{book_id}")
def remove_book(book_id: int, repo: DocumentRepository = Depends(get_repo)):
    if not crud.delete_book(book_id, repo):
        raise HTTPException(status_code=404, detail="Book not found")
    return {"detail": "Book deleted"}


# --- Students ---
@router.get("/students", response_model=List[schemas.StudentOut])
def list_students(skip: int = 0, limit: int = 100, repo: DocumentRepository = Depends(get_repo)):
    return crud.get_students(repo, skip=skip, limit=limit)


@router.post("/students", response_model=schemas.StudentOut, status_code=status.HTTP_201_CREATED)
def create_student(student: schemas.StudentCreate, repo: DocumentRepository = Depends(get_repo)):
    return crud.add_student(student, repo)


@router.post("/students/import", response_model=schemas.ImportSummary)
async def import_students(file: UploadFile = File(...), repo: DocumentRepository = Depends(get_repo)):
    """Bulk register students; skipped rows are returned for download."""
    rows = await _read_csv_upload(file)
    return imports.import_students(repo, rows)


@router.get("/students/{student_id}", response_model=schemas.StudentOut)
def read_student(student_id: int, repo: DocumentRepository = Depends(get_repo)):
    student = crud.get_student_by_id(student_id, repo)
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    return student


@router.put("/students/{student_id}", response_model=schemas.StudentOut)
def edit_student(student_id: int, student: schemas.StudentUpdate, repo: DocumentRepository = Depends(get_repo)):
    updated = crud.update_student(student_id, student, repo)
    if not updated:
        raise HTTPException(status_code=404, detail="Student not found")
    return updated


@router.delete("/students/{student_id}")
def remove_student(student_id: int, repo: DocumentRepository = Depends(get_repo)):
    if not crud.delete_student(student_id, repo):
        raise HTTPException(status_code=404, detail="Student not found")
    return {"detail": "Student deleted"}


# --- Authors, categories, types ---
@router.get("/authors", response_model=List[schemas.NamedOut])
def list_authors(repo: DocumentRepository = Depends(get_repo)):
    return crud.list_named("authors", repo)


@router.post("/authors", response_model=schemas.NamedOut, status_code=status.HTTP_201_CREATED)
def create_author(author: schemas.NamedCreate, repo: DocumentRepository = Depends(get_repo)):
    return crud.add_named("authors", author, repo)


@router.delete("/authors/{author_id}")
def remove_author(author_id: int, repo: DocumentRepository = Depends(get_repo)):
    if not crud.delete_named("authors", author_id, repo):
        raise HTTPException(status_code=404, detail="Author not found")
    return {"detail": "Author deleted"}


@router.get("/categories", response_model=List[schemas.NamedOut])
def list_categories(repo: DocumentRepository = Depends(get_repo)):
    return crud.list_named("categories", repo)


@router.post("/categories", response_model=schemas.NamedOut, status_code=status.HTTP_201_CREATED)
def create_category(category: schemas.NamedCreate, repo: DocumentRepository = Depends(get_repo)):
    return crud.add_named("categories", category, repo)


@router.delete("/categories/{category_id}")
def remove_category(category_id: int, repo: DocumentRepository = Depends(get_repo)):
    if not crud.delete_named("categories", category_id, repo):
        raise HTTPException(status_code=404, detail="Category not found")
    return {"detail": "Category deleted"}


@router.get("/types", response_model=List[schemas.NamedOut])
def list_types(repo: DocumentRepository = Depends(get_repo)):
    return crud.list_named("book_types", repo)


@router.post("/types", response_model=schemas.NamedOut, status_code=status.HTTP_201_CREATED)
def create_type(book_type: schemas.NamedCreate, repo: DocumentRepository = Depends(get_repo)):
    return crud.add_named("book_types", book_type, repo)


@router.delete("/types/{type_id}")
def remove_type(type_id: int, repo: DocumentRepository = Depends(get_repo)):
    if not crud.delete_named("book_types", type_id, repo):
        raise HTTPException(status_code=404, detail="Type not found")
    return {"detail": "Type deleted"}


# --- Circulation records ---
@router.get("/borrow-records", response_model=List[schemas.LoanRecordOut])
def list_borrow_records(loan_status: Optional[LoanStatus] = Query(None, alias="status"), repo: DocumentRepository = Depends(get_repo)):
    return catalog.loan_history(repo, "borrow_records", loan_status.value if loan_status else None)


@router.get("/reading-issues", response_model=List[schemas.LoanRecordOut])
def list_reading_issues(loan_status: Optional[LoanStatus] = Query(None, alias="status"), repo: DocumentRepository = Depends(get_repo)):
    return catalog.loan_history(repo, "reading_issues", loan_status.value if loan_status else None)


@router.get("/penalties", response_model=List[schemas.LoanRecordOut])
def list_penalties(repo: DocumentRepository = Depends(get_repo)):
    """Active borrow records that currently owe a penalty."""
    return outstanding_penalties(repo)


@router.post("/penalties/{record_id}/clear", response_model=schemas.LoanRecordOut)
def clear_record_penalty(record_id: int, repo: DocumentRepository = Depends(get_repo)):
    """Mark a penalty as paid at the desk so the student can return the book today."""
    return clear_penalty(repo, record_id)


# --- Entry logs ---
@router.get("/entry-logs", response_model=List[schemas.EntryLogOut])
def list_entry_logs(name: Optional[str] = Query(None), repo: DocumentRepository = Depends(get_repo)):
    return entry_log.search_logs(repo, name=name)


@router.post("/entry-logs/expire-idle", response_model=List[schemas.EntryLogOut])
def expire_idle_entry_logs(repo: DocumentRepository = Depends(get_repo)):
    return entry_log.expire_idle_sessions(repo)


# --- Reports ---
@router.get("/stats", response_model=schemas.DashboardStats)
def dashboard_stats(repo: DocumentRepository = Depends(get_repo)):
    return catalog.dashboard_stats(repo)


@router.get("/reports/borrow-activity", response_model=schemas.BorrowActivity)
def borrow_activity(repo: DocumentRepository = Depends(get_repo)):
    return catalog.borrow_activity(repo)
