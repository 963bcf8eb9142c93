"""
Catalog read access for the Library Circulation service.

The catalog shares its identity space with the inventory ledger: a book must
exist here before it can be borrowed. Only the operations circulation and
seeding need are provided.
"""

import logging

from sqlalchemy import desc, select

from ..database.schema import Book as BookDB
from ..models.book import Book as BookModel
from .repository import BaseRepository, NotFoundError, safe_query

logger = logging.getLogger(__name__)


class BookCreateSchema(BookModel):
    """Schema for adding a book to the catalog."""


class BookRepository(BaseRepository[BookDB, BookModel]):
    """Repository for catalog entries."""

    @property
    def model_class(self):
        return BookDB

    @property
    def response_schema(self):
        return BookModel

    def add_book(self, data: BookCreateSchema) -> BookModel:
        """
        Add a book; the caller's transaction decides whether it is kept.

        New books start with every copy on the shelf unless
        ``available_copies`` says otherwise.
        """
        values = data.model_dump(exclude={"id", "created_at", "updated_at"})
        if "available_copies" not in data.model_fields_set:
            values["available_copies"] = data.total_copies
        book = BookDB(**values)
        self.session.add(book)
        safe_query(self.session, lambda s: s.flush(), "Failed to add book")
        logger.debug("Added book %s: %s", book.id, book.title)
        return self._to_response_model(book)

    def get_book(self, book_id: int) -> BookModel:
        """
        Get one book.

        Raises:
            NotFoundError: If the book does not exist
        """
        book = self.get_by_id(book_id)
        if book is None:
            raise NotFoundError(f"Book {book_id} not found")
        return book

    def list_books(self) -> list[BookModel]:
        """All books, most recently added first."""
        query = select(BookDB).order_by(desc(BookDB.created_at), desc(BookDB.id))
        books = safe_query(
            self.session, lambda s: s.execute(query).scalars().all(), "Failed to list books"
        )
        return [self._to_response_model(book) for book in books]
