"""
Repository pattern implementation for the Library Circulation service.

Repositories wrap a caller-supplied SQLAlchemy ``Session`` and never commit
it: the circulation service owns the transaction boundary so that a loan and
its inventory change are persisted together or not at all.

This module also defines the error vocabulary shared by every layer above
the database.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .schema import Base

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)
ResponseSchemaType = TypeVar("ResponseSchemaType", bound=BaseModel)
T = TypeVar("T")


class RepositoryException(Exception):
    """Base exception for circulation and repository operations."""

    kind = "error"


class InvalidRequestError(RepositoryException):
    """Raised when an identifier is missing or malformed."""

    kind = "invalid_request"


class NotFoundError(RepositoryException):
    """Raised when a book or an active loan does not exist."""

    kind = "not_found"


class UnavailableError(RepositoryException):
    """Raised when no copy of a book is free at the moment of borrowing."""

    kind = "unavailable"


class InconsistentStateError(RepositoryException):
    """Raised when a return would push available copies past the total."""

    kind = "inconsistent_state"


class StorageError(RepositoryException):
    """Raised when the persistence layer fails."""

    kind = "storage_error"


def safe_query(session: Session, query_func: Callable[[Session], T], error_msg: str) -> T:
    """
    Execute a query, translating driver failures into ``StorageError``.

    Args:
        session: The database session
        query_func: Function that performs the query
        error_msg: Message used for the raised ``StorageError``

    Raises:
        StorageError: If the query fails at the database level
    """
    try:
        return query_func(session)
    except SQLAlchemyError as e:
        logger.exception("Query failed: %s", error_msg)
        raise StorageError(f"{error_msg}: database query failed") from e


class BaseRepository(ABC, Generic[ModelType, ResponseSchemaType]):
    """
    Abstract base repository for lookups by primary key.

    Subclasses name their SQLAlchemy model and the Pydantic schema returned
    to callers.
    """

    def __init__(self, session: Session):
        """Initialize repository with database session."""
        self.session = session

    @property
    @abstractmethod
    def model_class(self) -> type[ModelType]:
        """Return the SQLAlchemy model class."""

    @property
    @abstractmethod
    def response_schema(self) -> type[ResponseSchemaType]:
        """Return the Pydantic response schema."""

    def _to_response_model(self, db_obj: ModelType) -> ResponseSchemaType:
        return self.response_schema.model_validate(db_obj, from_attributes=True)

    def get_by_id(self, id: int) -> ResponseSchemaType | None:
        """
        Get entity by ID.

        Returns:
            Pydantic model or None if not found

        Raises:
            StorageError: On database errors
        """
        query = select(self.model_class).where(self.model_class.id == id)
        db_obj = safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            f"Failed to get {self.model_class.__name__} by ID",
        )
        if db_obj is None:
            return None
        return self._to_response_model(db_obj)
