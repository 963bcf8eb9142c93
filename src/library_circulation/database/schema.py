"""
SQLAlchemy database schema for the Library Circulation service.

Two tables back the circulation core:

1. ``books`` carries catalog metadata (owned by the catalog) plus the
   inventory columns ``total_copies`` / ``available_copies`` (owned by the
   inventory ledger).
2. ``loans`` records which student holds a copy of which book, and whether
   the copy has come back.

The inventory and loan-lifecycle invariants are declared as CHECK constraints
so that the database rejects a corrupt write even if application code is
bypassed.
"""

import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class LoanStatusEnum(str, enum.Enum):
    """Database enum for loan status."""

    ACTIVE = "active"
    RETURNED = "returned"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    # Persist "active"/"returned" rather than the member names
    return [member.value for member in enum_cls]


class Book(Base):
    """
    Books table - catalog entries and their copy counts.

    ``available_copies`` only moves through the inventory ledger's
    conditional updates; catalog code never writes it directly.
    """

    __tablename__ = "books"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False, index=True)
    author = Column(String(255), nullable=False)
    department = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)
    cover_color = Column(String(20), nullable=True)
    total_copies = Column(Integer, nullable=False, default=1)
    available_copies = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=True, default=func.now(), onupdate=func.now())

    loans = relationship("Loan", back_populates="book")

    __table_args__ = (
        Index("idx_book_department", "department"),
        CheckConstraint("available_copies >= 0", name="check_available_copies_non_negative"),
        CheckConstraint(
            "available_copies <= total_copies", name="check_available_not_exceed_total"
        ),
        CheckConstraint("total_copies > 0", name="check_total_copies_positive"),
    )


class Loan(Base):
    """
    Loans table - one row per copy handed to a student.

    A loan is inserted as ``active`` and transitions once to ``returned``.
    There is no stored "overdue" state; that is derived from ``due_date``.
    """

    __tablename__ = "loans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(String(50), nullable=False)
    book_id = Column(Integer, ForeignKey("books.id"), nullable=False)
    borrowed_date = Column(DateTime, nullable=False, default=func.now())
    due_date = Column(Date, nullable=False)
    returned_date = Column(DateTime, nullable=True)
    status = Column(
        Enum(LoanStatusEnum, values_callable=_enum_values, native_enum=False, length=20),
        nullable=False,
        default=LoanStatusEnum.ACTIVE,
    )

    book = relationship("Book", back_populates="loans")

    __table_args__ = (
        Index("idx_loan_student_borrowed", "student_id", "borrowed_date"),
        Index("idx_loan_book", "book_id"),
        Index("idx_loan_status", "status"),
        CheckConstraint(
            "(status = 'active' AND returned_date IS NULL) "
            "OR (status = 'returned' AND returned_date IS NOT NULL)",
            name="check_returned_date_matches_status",
        ),
        CheckConstraint(
            "returned_date IS NULL OR returned_date >= borrowed_date",
            name="check_returned_after_borrowed",
        ),
    )
