"""
Library Circulation models.

Pydantic models returned by repositories and the circulation service:

- Book, Availability: catalog entries and their copy counts
- Loan, LoanView, LoanStatus: loan records and their lifecycle
- BorrowResult, ReturnResult: outcomes of circulation operations
"""

from .book import Availability, Book
from .loan import BorrowResult, Loan, LoanStatus, LoanView, ReturnResult

__all__ = [
    "Availability",
    "Book",
    "BorrowResult",
    "Loan",
    "LoanStatus",
    "LoanView",
    "ReturnResult",
]
