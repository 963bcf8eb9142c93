"""
Database package for the Library Circulation service.

This package provides:
- SQLAlchemy schema definitions (schema.py)
- The storage handle and transactional scopes (session.py)
- Repositories for the catalog, the inventory ledger and the loan store
- The shared error vocabulary (repository.py)
"""

from .book_repository import BookCreateSchema, BookRepository
from .inventory_repository import InventoryRepository
from .loan_repository import LoanRepository
from .repository import (
    BaseRepository,
    InconsistentStateError,
    InvalidRequestError,
    NotFoundError,
    RepositoryException,
    StorageError,
    UnavailableError,
    safe_query,
)
from .schema import Base, Book, Loan, LoanStatusEnum
from .session import DatabaseManager

__all__ = [
    "Base",
    "BaseRepository",
    "Book",
    "BookCreateSchema",
    "BookRepository",
    "DatabaseManager",
    "InconsistentStateError",
    "InvalidRequestError",
    "InventoryRepository",
    "Loan",
    "LoanRepository",
    "LoanStatusEnum",
    "NotFoundError",
    "RepositoryException",
    "StorageError",
    "UnavailableError",
    "safe_query",
]
