"""
Loan store for the Library Circulation service.

Loans are inserted as ``active`` by a borrow and flipped to ``returned``
exactly once by a return. The flip is a conditional UPDATE on
``status = 'active'``, so a second return of the same loan matches no row
and is rejected instead of being applied twice.
"""

import logging
from datetime import date, datetime

from sqlalchemy import desc, select, update

from ..database.schema import Book as BookDB
from ..database.schema import Loan as LoanDB
from ..database.schema import LoanStatusEnum
from ..models.loan import Loan as LoanModel
from ..models.loan import LoanView
from .repository import BaseRepository, NotFoundError, safe_query

logger = logging.getLogger(__name__)


class LoanRepository(BaseRepository[LoanDB, LoanModel]):
    """Data access for loan records."""

    @property
    def model_class(self):
        return LoanDB

    @property
    def response_schema(self):
        return LoanModel

    def create_loan(self, student_id: str, book_id: int, due_date: date) -> int:
        """
        Insert an active loan borrowed now.

        The row is flushed (not committed) so that its id is available to the
        caller while the surrounding transaction is still open.

        Returns:
            The new loan id

        Raises:
            StorageError: On database errors, including an unknown book id
        """
        loan = LoanDB(
            student_id=student_id,
            book_id=book_id,
            borrowed_date=datetime.now(),
            due_date=due_date,
            status=LoanStatusEnum.ACTIVE,
        )
        self.session.add(loan)
        safe_query(self.session, lambda s: s.flush(), "Failed to create loan")
        logger.debug("Created loan %s for student %s, book %s", loan.id, student_id, book_id)
        return loan.id

    def get_loan(self, loan_id: int) -> LoanModel | None:
        """Fetch a loan in any state, or None."""
        return self.get_by_id(loan_id)

    def get_active_loan_for_return(self, loan_id: int) -> LoanModel:
        """
        Fetch a loan that can still be returned.

        Raises:
            NotFoundError: If no loan has this id, or it is already returned
        """
        query = select(LoanDB).where(
            LoanDB.id == loan_id, LoanDB.status == LoanStatusEnum.ACTIVE
        )
        loan = safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            "Failed to get loan for return",
        )
        if loan is None:
            raise NotFoundError(f"Active loan {loan_id} not found")
        return self._to_response_model(loan)

    def mark_returned(self, loan_id: int, returned_date: datetime) -> None:
        """
        Transition a loan from active to returned.

        Raises:
            NotFoundError: If the loan is unknown or no longer active
        """
        stmt = (
            update(LoanDB)
            .where(LoanDB.id == loan_id, LoanDB.status == LoanStatusEnum.ACTIVE)
            .values(status=LoanStatusEnum.RETURNED, returned_date=returned_date)
            .execution_options(synchronize_session=False)
        )
        result = safe_query(self.session, lambda s: s.execute(stmt), "Failed to mark loan returned")
        if result.rowcount != 1:
            raise NotFoundError(f"Active loan {loan_id} not found")

    def list_loans_for_student(self, student_id: str) -> list[LoanView]:
        """
        List a student's loans with book details, newest first.

        Unknown students simply have no loans.
        """
        query = (
            select(
                LoanDB,
                BookDB.title,
                BookDB.author,
                BookDB.department,
                BookDB.image_url,
                BookDB.cover_color,
            )
            .join(BookDB, LoanDB.book_id == BookDB.id)
            .where(LoanDB.student_id == student_id)
            .order_by(desc(LoanDB.borrowed_date), desc(LoanDB.id))
        )
        rows = safe_query(
            self.session,
            lambda s: s.execute(query).all(),
            "Failed to list loans for student",
        )

        views = []
        for loan, title, author, department, image_url, cover_color in rows:
            data = self._to_response_model(loan).model_dump()
            data.update(
                title=title,
                author=author,
                department=department,
                image_url=image_url,
                cover_color=cover_color,
            )
            views.append(LoanView.model_validate(data))
        return views
