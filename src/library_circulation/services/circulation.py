"""
Circulation service: borrowing and returning books.

The service is the only writer of loans and copy counts. Each operation opens
one transaction through the injected ``DatabaseManager`` and performs both of
its writes inside it:

- borrow: take a copy off the shelf, then insert the active loan
- return: flip the loan to returned, then put the copy back

If anything fails in between, the transaction rolls back and neither write
survives. No operation retries on its own; callers get exactly one attempt
per call.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..database.book_repository import BookRepository
from ..database.inventory_repository import InventoryRepository
from ..database.loan_repository import LoanRepository
from ..database.repository import (
    InvalidRequestError,
    RepositoryException,
    StorageError,
    UnavailableError,
)
from ..database.session import DatabaseManager
from ..models.book import Book
from ..models.loan import BorrowResult, Loan, LoanView, ReturnResult

logger = logging.getLogger(__name__)

DEFAULT_LOAN_PERIOD_DAYS = 14


RequestType = TypeVar("RequestType", bound=BaseModel)


class BorrowRequest(BaseModel):
    """Input for borrowing one copy of a book."""

    model_config = ConfigDict(str_strip_whitespace=True)

    student_id: str = Field(..., min_length=1, max_length=50)
    book_id: int = Field(..., ge=1)


class ReturnRequest(BaseModel):
    """Input for returning a loan."""

    loan_id: int = Field(..., ge=1)


class BookRequest(BaseModel):
    """Input for looking up one catalog book."""

    book_id: int = Field(..., ge=1)


def _validate(schema: type[RequestType], **values: Any) -> RequestType:
    try:
        return schema.model_validate(values)
    except ValidationError as e:
        fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
        raise InvalidRequestError(f"Missing or malformed {fields or 'request'}") from e


class CirculationService:
    """
    Borrow/return orchestration over the inventory ledger and loan store.

    Args:
        db: Storage handle; the service uses it for every operation and
            releases it in ``close()``
        loan_period_days: Days from borrowing to the due date
    """

    def __init__(self, db: DatabaseManager, loan_period_days: int = DEFAULT_LOAN_PERIOD_DAYS):
        if loan_period_days < 1:
            raise ValueError("loan_period_days must be at least 1")
        self.db = db
        self.loan_period_days = loan_period_days

    def close(self) -> None:
        """Release the storage handle."""
        self.db.close()

    def borrow(self, student_id: str, book_id: int) -> BorrowResult:
        """
        Lend one copy of a book to a student.

        Raises:
            InvalidRequestError: If either identifier is missing or malformed
            NotFoundError: If the book does not exist
            UnavailableError: If no copy is free
            StorageError: If the database fails; nothing is persisted
        """
        request = _validate(BorrowRequest, student_id=student_id, book_id=book_id)

        try:
            with self.db.session_scope(write=True) as session:
                inventory = InventoryRepository(session)

                availability = inventory.get_availability(request.book_id)
                if not availability.is_available:
                    raise UnavailableError(f"No copies of book {request.book_id} are available")

                due_date = date.today() + timedelta(days=self.loan_period_days)

                # Re-checks availability at write time
                inventory.decrement_available(request.book_id)
                loan_id = LoanRepository(session).create_loan(
                    request.student_id, request.book_id, due_date
                )
        except StorageError:
            raise
        except RepositoryException as e:
            logger.info(
                "Borrow rejected for student %s, book %s: %s",
                request.student_id,
                request.book_id,
                e,
            )
            raise

        logger.info(
            "Loan %s created: student %s borrowed book %s, due %s",
            loan_id,
            request.student_id,
            request.book_id,
            due_date.isoformat(),
        )
        return BorrowResult(
            loan_id=loan_id,
            book_id=request.book_id,
            student_id=request.student_id,
            due_date=due_date,
        )

    def return_loan(self, loan_id: int) -> ReturnResult:
        """
        Take back the copy held under a loan.

        Unknown loan ids and already-returned loans are both reported as
        ``NotFoundError``.

        Raises:
            InvalidRequestError: If the loan id is missing or malformed
            NotFoundError: If there is no active loan with this id
            InconsistentStateError: If the book's copies are all on the shelf
            StorageError: If the database fails; nothing is persisted
        """
        request = _validate(ReturnRequest, loan_id=loan_id)

        try:
            with self.db.session_scope(write=True) as session:
                loans = LoanRepository(session)
                loan = loans.get_active_loan_for_return(request.loan_id)

                returned_at = max(datetime.now(), loan.borrowed_date)
                loans.mark_returned(loan.id, returned_at)
                InventoryRepository(session).increment_available(loan.book_id)
        except StorageError:
            raise
        except RepositoryException as e:
            logger.info("Return rejected for loan %s: %s", request.loan_id, e)
            raise

        logger.info("Loan %s returned: book %s back on the shelf", loan.id, loan.book_id)
        return ReturnResult(
            loan_id=loan.id, book_id=loan.book_id, returned_date=returned_at.date()
        )

    def list_loans(self, student_id: str) -> list[LoanView]:
        """
        A student's loans with book details, newest first.

        Listing never fails on the identifier: a missing id or one that
        matches no loans gives an empty list.
        """
        if not isinstance(student_id, str) or not student_id.strip():
            return []
        with self.db.session_scope() as session:
            return LoanRepository(session).list_loans_for_student(student_id.strip())

    def get_loan(self, loan_id: int) -> Loan | None:
        """Look up a loan in any state."""
        request = _validate(ReturnRequest, loan_id=loan_id)
        with self.db.session_scope() as session:
            return LoanRepository(session).get_loan(request.loan_id)

    def list_books(self) -> list[Book]:
        """The whole catalog, most recently added first."""
        with self.db.session_scope() as session:
            return BookRepository(session).list_books()

    def get_book(self, book_id: int) -> Book:
        """One catalog book; raises ``NotFoundError`` if it does not exist."""
        request = _validate(BookRequest, book_id=book_id)
        with self.db.session_scope() as session:
            return BookRepository(session).get_book(request.book_id)
