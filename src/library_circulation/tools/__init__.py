"""Tool handlers exposing the circulation service."""

from .circulation import (
    borrow_book_handler,
    get_book_handler,
    list_books_handler,
    list_loans_handler,
    return_book_handler,
)

__all__ = [
    "borrow_book_handler",
    "get_book_handler",
    "list_books_handler",
    "list_loans_handler",
    "return_book_handler",
]
