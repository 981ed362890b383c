from datetime import datetime, timedelta

import pytest

from cart import Cart
from circulation import active_loans, borrow, checkout, return_items
from exceptions import (
    AlreadyBorrowed,
    EmptyCart,
    LoanNotActive,
    PenaltyUnpaid,
    RecordNotFound,
    Unavailable,
)
from models import LoanKind, LoanStatus
from penalties import clear_penalty, current_penalty

T0 = datetime(2024, 5, 1, 10, 0)


def available(repo, isbn):
    return repo.find_one("books", isbn=isbn).available_count


@pytest.fixture
def student(make_student):
    return make_student()


def test_borrow_sets_due_date_and_takes_a_copy(repo, make_book, student):
    make_book(isbn="A", copies=2)

    receipt = borrow(repo, student, ["A"], now=T0)

    record = receipt.records[0]
    assert receipt.kind == LoanKind.BORROW
    assert record.status == LoanStatus.ACTIVE.value
    assert record.due_at == T0 + timedelta(days=10)
    assert record.penalty_amount == 0
    assert record.patron_id == student.email
    assert available(repo, "A") == 1


def test_duplicate_borrow_leaves_availability_alone(repo, make_book, student):
    make_book(isbn="A", copies=2)
    borrow(repo, student, ["A"], now=T0)

    with pytest.raises(AlreadyBorrowed):
        borrow(repo, student, ["A"], now=T0)

    assert available(repo, "A") == 1
    assert repo.count("borrow_records") == 1


def test_five_days_late_blocks_return(repo, make_book, student):
    make_book(isbn="A", copies=1)
    record = borrow(repo, student, ["A"], now=T0).records[0]
    late = T0 + timedelta(days=15)

    assert current_penalty(record, late) == 50
    with pytest.raises(PenaltyUnpaid):
        return_items(repo, [record.id], now=late)

    record = repo.get("borrow_records", record.id)
    assert record.status == LoanStatus.ACTIVE.value
    assert available(repo, "A") == 0


def test_penalty_caps_at_one_hundred(repo, make_book, student):
    make_book(isbn="A", copies=1)
    record = borrow(repo, student, ["A"], now=T0).records[0]
    assert current_penalty(record, T0 + timedelta(days=25)) == 100


def test_on_time_return_restores_copy(repo, make_book, student):
    make_book(isbn="A", copies=1)
    record = borrow(repo, student, ["A"], now=T0).records[0]
    back = T0 + timedelta(days=3)

    summary = return_items(repo, [record.id], now=back)

    returned = summary.records[0]
    assert summary.returned_ids == [record.id]
    assert returned.status == LoanStatus.RETURNED.value
    assert returned.returned_at == back
    assert returned.penalty_amount == 0
    assert available(repo, "A") == 1


def test_cleared_penalty_allows_return_the_same_day(repo, make_book, student):
    make_book(isbn="A", copies=1)
    record = borrow(repo, student, ["A"], now=T0).records[0]
    late = T0 + timedelta(days=14)

    clear_penalty(repo, record.id, now=late)
    returned = return_items(repo, [record.id], now=late + timedelta(hours=1)).records[0]

    assert returned.status == LoanStatus.RETURNED.value
    assert returned.penalty_amount == 0
    assert available(repo, "A") == 1


def test_partial_batch_keeps_earlier_items(repo, make_book, student):
    make_book(isbn="A", copies=1)
    make_book(isbn="B", title="Refactoring", copies=0)

    with pytest.raises(Unavailable) as exc:
        borrow(repo, student, ["A", "B"], now=T0)

    records = repo.find("borrow_records")
    assert [r.isbn for r in records] == ["A"]
    assert exc.value.index == 1
    assert exc.value.isbn == "B"
    assert exc.value.committed == [records[0].id]
    assert available(repo, "A") == 0
    assert available(repo, "B") == 0


def test_checkout_issues_for_reading_and_clears_cart(repo, make_book, student):
    make_book(isbn="A", copies=1)
    make_book(isbn="B", title="Refactoring", copies=1)
    cart = Cart(repo, student.id)
    cart.add("A")
    cart.add("B")

    receipt = checkout(repo, student, cart.isbns(), cart=cart, now=T0)

    assert receipt.kind == LoanKind.READING
    assert [r.isbn for r in receipt.records] == ["A", "B"]
    assert all(r.due_at == T0 for r in receipt.records)
    assert cart.items() == []
    assert repo.count("reading_issues") == 2


def test_failed_batch_keeps_the_cart(repo, make_book, student):
    make_book(isbn="A", copies=0)
    cart = Cart(repo, student.id)
    cart.add("A")

    with pytest.raises(Unavailable):
        borrow(repo, student, cart.isbns(), cart=cart, now=T0)

    assert cart.isbns() == ["A"]


def test_duplicate_reading_issue_is_rejected(repo, make_book, student):
    make_book(isbn="A", copies=3)
    checkout(repo, student, ["A"], now=T0)
    with pytest.raises(AlreadyBorrowed):
        checkout(repo, student, ["A"], now=T0)


def test_reading_issue_returns_without_penalty_check(repo, make_book, student):
    make_book(isbn="A", copies=1)
    record = checkout(repo, student, ["A"], now=T0).records[0]

    summary = return_items(repo, [record.id], kind=LoanKind.READING, now=T0 + timedelta(days=30))

    assert summary.records[0].status == LoanStatus.RETURNED.value
    assert available(repo, "A") == 1


def test_book_can_be_borrowed_again_after_return(repo, make_book, student):
    make_book(isbn="A", copies=1)
    first = borrow(repo, student, ["A"], now=T0).records[0]
    return_items(repo, [first.id], now=T0 + timedelta(days=1))

    second = borrow(repo, student, ["A"], now=T0 + timedelta(days=2)).records[0]
    assert second.id != first.id


def test_empty_batches_are_rejected(repo, student):
    with pytest.raises(EmptyCart):
        borrow(repo, student, [], now=T0)
    with pytest.raises(EmptyCart):
        return_items(repo, [], now=T0)


def test_unknown_record_fails_before_any_write(repo, make_book, student):
    make_book(isbn="A", copies=1)
    record = borrow(repo, student, ["A"], now=T0).records[0]

    with pytest.raises(RecordNotFound):
        return_items(repo, [record.id, 9999], now=T0 + timedelta(days=1))

    assert repo.get("borrow_records", record.id).status == LoanStatus.ACTIVE.value
    assert available(repo, "A") == 0


def test_returning_twice_is_rejected(repo, make_book, student):
    make_book(isbn="A", copies=1)
    record = borrow(repo, student, ["A"], now=T0).records[0]
    return_items(repo, [record.id], now=T0 + timedelta(days=1))

    with pytest.raises(LoanNotActive):
        return_items(repo, [record.id], now=T0 + timedelta(days=2))
    assert available(repo, "A") == 1


def test_repeated_id_in_one_return_restores_one_copy(repo, make_book, student):
    make_book(isbn="A", copies=1)
    record_id = borrow(repo, student, ["A"], now=T0).records[0].id

    summary = return_items(repo, [record_id, record_id], now=T0 + timedelta(days=1))

    assert [r.id for r in summary.records] == [record_id]
    assert available(repo, "A") == 1


def test_concurrent_return_restores_only_one_copy(repo, make_book, student, monkeypatch):
    make_book(isbn="A", copies=1)
    record_id = borrow(repo, student, ["A"], now=T0).records[0].id
    find_one = repo.find_one

    def stale_find_one(collection, **filters):
        # hand back the Active row, then let another request return it first
        found = find_one(collection, **filters)
        repo.db.expunge(found)
        monkeypatch.setattr(repo, "find_one", find_one)
        return_items(repo, [record_id], now=T0 + timedelta(days=1))
        return found

    monkeypatch.setattr(repo, "find_one", stale_find_one)

    with pytest.raises(LoanNotActive):
        return_items(repo, [record_id], now=T0 + timedelta(days=1))
    assert available(repo, "A") == 1
    assert repo.get("borrow_records", record_id).status == LoanStatus.RETURNED.value


def test_other_students_records_are_not_found(repo, make_book, make_student, student):
    make_book(isbn="A", copies=1)
    record = borrow(repo, student, ["A"], now=T0).records[0]
    other = make_student(usn="1AB21CS002", email="ravi@example.com", name="Ravi")

    with pytest.raises(RecordNotFound):
        return_items(repo, [record.id], patron_id=other.email, now=T0)


def test_active_loans_refresh_penalties(repo, make_book, student):
    make_book(isbn="A", copies=1)
    borrow(repo, student, ["A"], now=T0)

    loans = active_loans(repo, student.email, LoanKind.BORROW, now=T0 + timedelta(days=12))

    assert len(loans) == 1
    assert loans[0].penalty_amount == 20
