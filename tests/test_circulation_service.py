"""
Tests for the circulation service.

Covers the borrow/return rules, the single-transaction guarantee for both
operations, and behaviour under concurrent callers.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from library_circulation.database import (
    DatabaseManager,
    InconsistentStateError,
    InvalidRequestError,
    InventoryRepository,
    LoanRepository,
    NotFoundError,
    StorageError,
    UnavailableError,
)
from library_circulation.database.schema import Book as BookDB
from library_circulation.database.schema import Loan as LoanDB
from library_circulation.database.schema import LoanStatusEnum
from library_circulation.models import LoanStatus
from library_circulation.services.circulation import CirculationService


class TestBorrow:
    def test_borrow_success(self, service, book, read_book):
        result = service.borrow("S1", book.id)

        assert result.loan_id >= 1
        assert result.book_id == book.id
        assert result.student_id == "S1"
        assert result.due_date == date.today() + timedelta(days=14)
        assert read_book(book.id).available_copies == 0

    def test_borrow_creates_active_loan(self, service, book):
        result = service.borrow("S1", book.id)

        loan = service.get_loan(result.loan_id)
        assert loan.status == LoanStatus.ACTIVE
        assert loan.due_date == result.due_date
        assert loan.loan_period_days == 14

    def test_borrow_unavailable(self, service, book, read_book, read_loans):
        service.borrow("S1", book.id)

        with pytest.raises(UnavailableError):
            service.borrow("S2", book.id)

        assert read_book(book.id).available_copies == 0
        assert len(read_loans()) == 1

    def test_borrow_nonexistent_book(self, service, read_loans):
        with pytest.raises(NotFoundError):
            service.borrow("S1", 9999)
        assert read_loans() == []

    @pytest.mark.parametrize(
        ("student_id", "book_id"),
        [
            (None, 1),
            ("", 1),
            ("   ", 1),
            ("S1", None),
            ("S1", 0),
            ("S1", "not-a-number"),
            ("x" * 51, 1),
        ],
    )
    def test_borrow_invalid_request(self, service, book, student_id, book_id, read_book):
        with pytest.raises(InvalidRequestError):
            service.borrow(student_id, book_id)
        assert read_book(book.id).available_copies == 1

    def test_borrow_strips_student_id(self, service, book):
        result = service.borrow("  S1  ", book.id)
        assert result.student_id == "S1"

    def test_custom_loan_period(self, db_manager, book):
        service = CirculationService(db_manager, loan_period_days=7)
        result = service.borrow("S1", book.id)
        assert result.due_date == date.today() + timedelta(days=7)

    def test_loan_period_must_be_positive(self, db_manager):
        with pytest.raises(ValueError):
            CirculationService(db_manager, loan_period_days=0)

    def test_same_student_may_hold_two_copies(self, service, make_book, read_book):
        book = make_book(total_copies=2)

        service.borrow("S1", book.id)
        service.borrow("S1", book.id)

        assert read_book(book.id).available_copies == 0
        assert len(service.list_loans("S1")) == 2


class TestReturn:
    def test_round_trip_restores_availability(self, service, make_book, read_book):
        book = make_book(total_copies=3, available_copies=2)

        borrowed = service.borrow("S1", book.id)
        assert read_book(book.id).available_copies == 1

        returned = service.return_loan(borrowed.loan_id)

        assert returned.loan_id == borrowed.loan_id
        assert returned.book_id == book.id
        assert returned.returned_date == date.today()
        assert read_book(book.id).available_copies == 2

    def test_return_marks_loan_returned(self, service, book):
        borrowed = service.borrow("S1", book.id)
        service.return_loan(borrowed.loan_id)

        loan = service.get_loan(borrowed.loan_id)
        assert loan.status == LoanStatus.RETURNED
        assert loan.returned_date is not None
        assert loan.returned_date >= loan.borrowed_date

    def test_return_twice(self, service, book, read_book):
        borrowed = service.borrow("S1", book.id)

        service.return_loan(borrowed.loan_id)
        with pytest.raises(NotFoundError):
            service.return_loan(borrowed.loan_id)

        assert read_book(book.id).available_copies == 1

    def test_return_unknown_loan(self, service):
        with pytest.raises(NotFoundError):
            service.return_loan(12345)

    @pytest.mark.parametrize("loan_id", [None, 0, -3, "abc"])
    def test_return_invalid_request(self, service, loan_id):
        with pytest.raises(InvalidRequestError):
            service.return_loan(loan_id)

    def test_return_with_corrupt_inventory_rolls_back(self, db_manager, service, book, read_book):
        # A loan inserted without taking a copy off the shelf
        with db_manager.session_scope() as session:
            loan_id = LoanRepository(session).create_loan(
                "S1", book.id, date.today() + timedelta(days=14)
            )

        with pytest.raises(InconsistentStateError):
            service.return_loan(loan_id)

        assert service.get_loan(loan_id).status == LoanStatus.ACTIVE
        assert read_book(book.id).available_copies == 1


class TestScenario:
    def test_single_copy_lifecycle(self, service, book, read_book):
        first = service.borrow("S1", book.id)
        assert read_book(book.id).available_copies == 0
        assert first.due_date == date.today() + timedelta(days=14)

        with pytest.raises(UnavailableError):
            service.borrow("S2", book.id)

        service.return_loan(first.loan_id)
        assert read_book(book.id).available_copies == 1

        with pytest.raises(NotFoundError):
            service.return_loan(first.loan_id)

    def test_list_loans_unknown_student(self, service):
        assert service.list_loans("no-such-student") == []

    def test_list_loans_newest_first(self, service, make_book):
        older = service.borrow("S1", make_book(title="Older").id)
        newer = service.borrow("S1", make_book(title="Newer").id)

        loans = service.list_loans("S1")

        assert [loan.id for loan in loans] == [newer.loan_id, older.loan_id]
        assert [loan.title for loan in loans] == ["Newer", "Older"]

    @pytest.mark.parametrize("student_id", [None, "", "   ", "x" * 51, 42])
    def test_list_loans_never_rejects_identifier(self, service, book, student_id):
        service.borrow("S1", book.id)
        assert service.list_loans(student_id) == []

    def test_list_loans_strips_student_id(self, service, book):
        service.borrow("S1", book.id)
        assert len(service.list_loans("  S1 ")) == 1


class TestAtomicity:
    def test_failed_loan_insert_keeps_copy_on_shelf(
        self, service, book, read_book, read_loans, monkeypatch
    ):
        def fail_insert(self, student_id, book_id, due_date):
            raise OperationalError("INSERT INTO loans", {}, Exception("disk I/O error"))

        monkeypatch.setattr(LoanRepository, "create_loan", fail_insert)

        with pytest.raises(StorageError):
            service.borrow("S1", book.id)

        assert read_book(book.id).available_copies == 1
        assert read_loans() == []

    def test_failed_increment_keeps_loan_active(self, service, book, read_book, monkeypatch):
        borrowed = service.borrow("S1", book.id)

        def fail_increment(self, book_id):
            raise OperationalError("UPDATE books", {}, Exception("disk I/O error"))

        monkeypatch.setattr(InventoryRepository, "increment_available", fail_increment)

        with pytest.raises(StorageError):
            service.return_loan(borrowed.loan_id)

        assert service.get_loan(borrowed.loan_id).status == LoanStatus.ACTIVE
        assert read_book(book.id).available_copies == 0


class TestConcurrency:
    @staticmethod
    def _borrow_outcome(service, student_id, book_id):
        try:
            return service.borrow(student_id, book_id)
        except UnavailableError as e:
            return e

    def test_last_copy_goes_to_exactly_one_borrower(self, service, book, read_book, read_loans):
        attempts = 8
        with ThreadPoolExecutor(max_workers=attempts) as pool:
            futures = [
                pool.submit(self._borrow_outcome, service, f"S{i}", book.id)
                for i in range(attempts)
            ]
            outcomes = [f.result() for f in futures]

        successes = [o for o in outcomes if not isinstance(o, Exception)]
        rejections = [o for o in outcomes if isinstance(o, UnavailableError)]

        assert len(successes) == 1
        assert len(rejections) == attempts - 1
        assert read_book(book.id).available_copies == 0
        assert len(read_loans()) == 1

    def test_copies_never_oversold(self, service, make_book, read_book, read_loans):
        book = make_book(total_copies=3)
        attempts = 10
        with ThreadPoolExecutor(max_workers=attempts) as pool:
            outcomes = list(
                pool.map(
                    lambda i: self._borrow_outcome(service, f"S{i}", book.id), range(attempts)
                )
            )

        successes = [o for o in outcomes if not isinstance(o, Exception)]
        assert len(successes) == 3
        assert read_book(book.id).available_copies == 0
        assert len(read_loans()) == 3

    def test_concurrent_returns_of_same_loan(self, service, make_book, read_book):
        book = make_book(total_copies=2)
        borrowed = service.borrow("S1", book.id)

        def attempt_return(_):
            try:
                return service.return_loan(borrowed.loan_id)
            except NotFoundError as e:
                return e

        with ThreadPoolExecutor(max_workers=4) as pool:
            outcomes = list(pool.map(attempt_return, range(4)))

        assert sum(not isinstance(o, Exception) for o in outcomes) == 1
        assert sum(isinstance(o, NotFoundError) for o in outcomes) == 3
        assert read_book(book.id).available_copies == 2

    def test_reads_not_blocked_by_open_write(
        self, db_manager, test_database_url, make_book, read_book
    ):
        busy = make_book(title="Busy")
        other = make_book(title="Other", total_copies=2)
        reader = CirculationService(DatabaseManager(test_database_url, busy_timeout=0.5))

        try:
            with db_manager.session_scope(write=True) as session:
                InventoryRepository(session).decrement_available(busy.id)

                assert reader.list_loans("S9") == []
                assert len(reader.list_books()) == 2
                assert reader.get_book(other.id).available_copies == 2
                # Uncommitted change is not visible yet
                assert reader.get_book(busy.id).available_copies == 1
        finally:
            reader.close()

        assert read_book(busy.id).available_copies == 0

    def test_invariants_hold_after_mixed_traffic(self, service, make_book, db_manager):
        books = [make_book(title=f"Book {i}", total_copies=2) for i in range(3)]

        def borrow_and_maybe_return(i):
            target = books[i % len(books)]
            try:
                result = service.borrow(f"S{i}", target.id)
            except UnavailableError:
                return
            if i % 2 == 0:
                service.return_loan(result.loan_id)

        with ThreadPoolExecutor(max_workers=6) as pool:
            list(pool.map(borrow_and_maybe_return, range(18)))

        with db_manager.session_scope() as session:
            rows = session.execute(select(BookDB)).scalars().all()
            loans = session.execute(select(LoanDB)).scalars().all()

        for row in rows:
            assert 0 <= row.available_copies <= row.total_copies
            active = [
                loan
                for loan in loans
                if loan.book_id == row.id and loan.status == LoanStatusEnum.ACTIVE
            ]
            assert row.available_copies == row.total_copies - len(active)

        for loan in loans:
            if loan.status == LoanStatusEnum.RETURNED:
                assert loan.returned_date is not None
                assert loan.returned_date >= loan.borrowed_date
