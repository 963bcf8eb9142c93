"""
Loan models for the Library Circulation service.

A loan records one student holding one copy of one book:

- ``Loan``: the stored record and its lifecycle state
- ``LoanView``: a loan joined with the book's catalog metadata, used for a
  student's loan listing
- ``BorrowResult`` / ``ReturnResult``: what borrow and return hand back

Loans move through a single transition, ``active -> returned``. Being overdue
is derived from ``due_date`` and is never stored.
"""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class LoanStatus(str, Enum):
    """Lifecycle state of a loan."""

    ACTIVE = "active"
    RETURNED = "returned"


class Loan(BaseModel):
    """A student's loan of one copy of a book."""

    id: int = Field(..., description="Loan identifier", ge=1)

    student_id: str = Field(
        ...,
        description="Opaque student identifier supplied by the auth layer",
        min_length=1,
        max_length=50,
        examples=["MUST-2024-555"],
    )

    book_id: int = Field(..., description="Borrowed book", ge=1)

    borrowed_date: datetime = Field(..., description="When the copy left the shelf")

    due_date: date = Field(..., description="Calendar date the copy is due back")

    returned_date: datetime | None = Field(None, description="When the copy came back")

    status: LoanStatus = Field(default=LoanStatus.ACTIVE)

    @model_validator(mode="after")
    def validate_lifecycle(self) -> "Loan":
        """A returned loan carries a return timestamp no earlier than the borrow."""
        if self.status == LoanStatus.RETURNED:
            if self.returned_date is None:
                raise ValueError("Returned loans must have a returned_date")
            if self.returned_date < self.borrowed_date:
                raise ValueError("Return date cannot be before borrowed date")
        elif self.returned_date is not None:
            raise ValueError("Active loans cannot have a returned_date")
        return self

    @property
    def is_active(self) -> bool:
        return self.status == LoanStatus.ACTIVE

    @property
    def is_overdue(self) -> bool:
        """An active loan is overdue once its due date has passed."""
        return self.is_active and date.today() > self.due_date

    @property
    def days_overdue(self) -> int:
        if not self.is_overdue:
            return 0
        return (date.today() - self.due_date).days

    @property
    def loan_period_days(self) -> int:
        return (self.due_date - self.borrowed_date.date()).days

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": 42,
                "student_id": "MUST-2024-555",
                "book_id": 6,
                "borrowed_date": "2024-03-01T10:30:00",
                "due_date": "2024-03-15",
                "returned_date": None,
                "status": "active",
            }
        },
    )


class LoanView(Loan):
    """A loan plus the catalog metadata of the borrowed book."""

    title: str
    author: str
    department: str | None = None
    image_url: str | None = None
    cover_color: str | None = None


class BorrowResult(BaseModel):
    """Outcome of a successful borrow."""

    loan_id: int
    book_id: int
    student_id: str
    due_date: date


class ReturnResult(BaseModel):
    """Outcome of a successful return."""

    loan_id: int
    book_id: int
    returned_date: date
