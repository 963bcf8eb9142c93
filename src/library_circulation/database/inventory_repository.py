"""
Inventory ledger for the Library Circulation service.

The ledger owns ``books.total_copies`` and ``books.available_copies`` and
keeps ``0 <= available_copies <= total_copies`` for every book.

Both mutations are single conditional UPDATE statements. The availability
check lives in the WHERE clause, so it is evaluated against the row as it is
at the moment of the write rather than against a value read earlier; the
affected-row count tells us whether the guard held. Two borrowers racing for
the last copy therefore cannot both succeed.

The ledger never commits. It runs inside the transaction of the caller that
also writes the matching loan.
"""

import logging

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from ..database.schema import Book as BookDB
from ..models.book import Availability
from .repository import (
    InconsistentStateError,
    NotFoundError,
    UnavailableError,
    safe_query,
)

logger = logging.getLogger(__name__)


class InventoryRepository:
    """Copy counts for catalog books."""

    def __init__(self, session: Session):
        self.session = session

    def get_availability(self, book_id: int) -> Availability:
        """
        Read the copy counts for a book.

        Raises:
            NotFoundError: If the book does not exist
            StorageError: On database errors
        """
        query = select(BookDB.id, BookDB.total_copies, BookDB.available_copies).where(
            BookDB.id == book_id
        )
        row = safe_query(
            self.session,
            lambda s: s.execute(query).one_or_none(),
            "Failed to read book availability",
        )
        if row is None:
            raise NotFoundError(f"Book {book_id} not found")

        return Availability(
            book_id=row.id,
            total_copies=row.total_copies,
            available_copies=row.available_copies,
        )

    def decrement_available(self, book_id: int) -> None:
        """
        Take one copy off the shelf.

        Raises:
            UnavailableError: If no copy is free at the moment of the update
            NotFoundError: If the book does not exist
            StorageError: On database errors
        """
        stmt = (
            update(BookDB)
            .where(BookDB.id == book_id, BookDB.available_copies > 0)
            .values(available_copies=BookDB.available_copies - 1)
            .execution_options(synchronize_session=False)
        )
        result = safe_query(
            self.session, lambda s: s.execute(stmt), "Failed to decrement availability"
        )
        if result.rowcount == 1:
            logger.debug("Decremented available copies for book %s", book_id)
            return

        if not self._exists(book_id):
            raise NotFoundError(f"Book {book_id} not found")
        raise UnavailableError(f"No copies of book {book_id} are available")

    def increment_available(self, book_id: int) -> None:
        """
        Put one copy back on the shelf.

        The update is capped at ``total_copies``; hitting the cap means an
        earlier write left the counts corrupt.

        Raises:
            InconsistentStateError: If every copy is already on the shelf
            NotFoundError: If the book does not exist
            StorageError: On database errors
        """
        stmt = (
            update(BookDB)
            .where(BookDB.id == book_id, BookDB.available_copies < BookDB.total_copies)
            .values(available_copies=BookDB.available_copies + 1)
            .execution_options(synchronize_session=False)
        )
        result = safe_query(
            self.session, lambda s: s.execute(stmt), "Failed to increment availability"
        )
        if result.rowcount == 1:
            logger.debug("Incremented available copies for book %s", book_id)
            return

        if not self._exists(book_id):
            raise NotFoundError(f"Book {book_id} not found")
        logger.error("Book %s already has all copies available; refusing increment", book_id)
        raise InconsistentStateError(
            f"Book {book_id} already has every copy available; inventory is inconsistent"
        )

    def _exists(self, book_id: int) -> bool:
        query = select(func.count()).select_from(BookDB).where(BookDB.id == book_id)
        count = safe_query(
            self.session, lambda s: s.execute(query).scalar(), "Failed to check book existence"
        )
        return bool(count)
