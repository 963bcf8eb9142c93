"""
Circulation tools for the Library Circulation server.

Each handler takes the raw tool arguments plus the server's
``CirculationService`` and returns a structured response:

- success: ``{"content": [{"type": "text", "text": ...}], "data": {...}}``
- failure: ``{"isError": True, "content": [...], "data": {"error": <kind>}}``

where ``<kind>`` is the ``kind`` of the raised circulation error. Storage
failures are logged here and reported with a generic message; database
details never reach the caller.

Service calls block on the database, so they run in a worker thread.
"""

import asyncio
import logging
from typing import Any

from ..database.repository import RepositoryException, StorageError
from ..observability import trace_operation
from ..services.circulation import CirculationService

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "The library system could not complete the request. Please try again later."


def _text_response(text: str, data: dict[str, Any]) -> dict[str, Any]:
    return {"content": [{"type": "text", "text": text}], "data": data}


def _error_response(kind: str, text: str) -> dict[str, Any]:
    return {
        "isError": True,
        "content": [{"type": "text", "text": text}],
        "data": {"error": kind},
    }


def _failure(operation: str, error: Exception) -> dict[str, Any]:
    if isinstance(error, StorageError):
        logger.error("%s failed on storage: %s", operation, error)
        return _error_response(StorageError.kind, GENERIC_FAILURE_MESSAGE)
    if isinstance(error, RepositoryException):
        return _error_response(error.kind, str(error))
    logger.error("Unexpected error in %s: %s", operation, error, exc_info=error)
    return _error_response("internal_error", GENERIC_FAILURE_MESSAGE)


# =============================================================================
# BORROW / RETURN
# =============================================================================


@trace_operation("borrow_book")
async def borrow_book_handler(
    arguments: dict[str, Any], service: CirculationService
) -> dict[str, Any]:
    """Borrow one copy of ``book_id`` for ``student_id``."""
    try:
        result = await asyncio.to_thread(
            service.borrow, arguments.get("student_id"), arguments.get("book_id")
        )
    except Exception as e:  # noqa: BLE001 - converted to a tool error
        return _failure("borrow_book", e)

    return _text_response(
        f"Book {result.book_id} borrowed by {result.student_id}. "
        f"Due date: {result.due_date.isoformat()}",
        {"loan": result.model_dump(mode="json")},
    )


@trace_operation("return_book")
async def return_book_handler(
    arguments: dict[str, Any], service: CirculationService
) -> dict[str, Any]:
    """Return the copy held under ``loan_id``."""
    try:
        result = await asyncio.to_thread(service.return_loan, arguments.get("loan_id"))
    except Exception as e:  # noqa: BLE001 - converted to a tool error
        return _failure("return_book", e)

    return _text_response(
        f"Loan {result.loan_id} returned on {result.returned_date.isoformat()}",
        {"return": result.model_dump(mode="json")},
    )


# =============================================================================
# READ-ONLY LISTINGS
# =============================================================================


@trace_operation("list_loans")
async def list_loans_handler(
    arguments: dict[str, Any], service: CirculationService
) -> dict[str, Any]:
    """List a student's loans, newest first. Unknown students get an empty list."""
    try:
        loans = await asyncio.to_thread(service.list_loans, arguments.get("student_id"))
    except Exception as e:  # noqa: BLE001 - converted to a tool error
        return _failure("list_loans", e)

    items = [loan.model_dump(mode="json") for loan in loans]
    return _text_response(
        f"Found {len(items)} loan(s)",
        {"student_id": arguments.get("student_id"), "loans": items},
    )


@trace_operation("list_books")
async def list_books_handler(
    arguments: dict[str, Any], service: CirculationService  # noqa: ARG001
) -> dict[str, Any]:
    """List the catalog, newest additions first."""
    try:
        books = await asyncio.to_thread(service.list_books)
    except Exception as e:  # noqa: BLE001 - converted to a tool error
        return _failure("list_books", e)

    return _text_response(
        f"Found {len(books)} book(s)",
        {"books": [book.model_dump(mode="json") for book in books]},
    )


@trace_operation("get_book")
async def get_book_handler(
    arguments: dict[str, Any], service: CirculationService
) -> dict[str, Any]:
    """Fetch one catalog entry with its copy counts."""
    try:
        book = await asyncio.to_thread(service.get_book, arguments.get("book_id"))
    except Exception as e:  # noqa: BLE001 - converted to a tool error
        return _failure("get_book", e)

    return _text_response(
        f"'{book.title}' by {book.author}: "
        f"{book.available_copies} of {book.total_copies} copies available",
        {"book": book.model_dump(mode="json")},
    )
