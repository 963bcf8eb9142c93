"""Library Circulation server.

Exposes the circulation service to clients as FastMCP tools:

- ``list_loans(student_id)``
- ``borrow_book(student_id, book_id)``
- ``return_book(loan_id)``
- ``list_books()`` / ``get_book(book_id)`` for catalog lookups

The server owns exactly one ``DatabaseManager``: it is opened before the
transport starts and closed when the server stops.
"""

import logging
import signal
import sys
from typing import Any

from fastmcp import FastMCP

from .config import CirculationConfig, get_config
from .database.session import DatabaseManager
from .observability import configure_observability
from .services.circulation import CirculationService
from .tools.circulation import (
    borrow_book_handler,
    get_book_handler,
    list_books_handler,
    list_loans_handler,
    return_book_handler,
)

logger = logging.getLogger(__name__)


def create_service(config: CirculationConfig) -> CirculationService:
    """Open the database and build the circulation service around it."""
    db = DatabaseManager.from_config(config)
    db.init_database()
    if not db.verify_connection():
        db.close()
        raise RuntimeError(f"Cannot connect to database at {db.database_url}")
    return CirculationService(db, loan_period_days=config.loan_period_days)


def create_server(service: CirculationService, config: CirculationConfig) -> FastMCP:
    """Build a FastMCP server whose tools delegate to ``service``."""
    mcp = FastMCP(
        name=config.server_name,
        instructions=(
            "Library circulation desk. Use borrow_book to lend a copy to a student, "
            "return_book with the loan id to take it back, and list_loans to see a "
            "student's loans. list_books and get_book show catalog availability."
        ),
    )

    @mcp.tool(name="list_loans", description="List a student's loans, newest first")
    async def list_loans(student_id: str) -> dict[str, Any]:
        return await list_loans_handler({"student_id": student_id}, service)

    @mcp.tool(name="borrow_book", description="Borrow one copy of a book for a student")
    async def borrow_book(student_id: str, book_id: int) -> dict[str, Any]:
        return await borrow_book_handler({"student_id": student_id, "book_id": book_id}, service)

    @mcp.tool(name="return_book", description="Return the copy held under a loan")
    async def return_book(loan_id: int) -> dict[str, Any]:
        return await return_book_handler({"loan_id": loan_id}, service)

    @mcp.tool(name="list_books", description="List catalog books with their availability")
    async def list_books() -> dict[str, Any]:
        return await list_books_handler({}, service)

    @mcp.tool(name="get_book", description="Get one catalog book with its availability")
    async def get_book(book_id: int) -> dict[str, Any]:
        return await get_book_handler({"book_id": book_id}, service)

    logger.info("Registered circulation tools on %s", config.server_name)
    return mcp


def configure_logging(config: CirculationConfig) -> None:
    # stderr keeps stdout clean for the stdio transport
    logging.basicConfig(
        level=logging.DEBUG if config.debug else config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    if not config.debug:
        logging.getLogger("fastmcp").setLevel(logging.WARNING)


def main() -> None:
    """Entry point for ``library-circulation``."""
    config = get_config()
    configure_logging(config)
    configure_observability(config)

    logger.info("=" * 60)
    logger.info("Library Circulation Server v%s", config.server_version)
    logger.info("Transport: %s", config.transport)
    logger.info("Loan period: %d days", config.loan_period_days)
    logger.info("=" * 60)

    try:
        service = create_service(config)
    except Exception:
        logger.exception("Failed to open the database")
        sys.exit(1)

    def signal_handler(signum: int, _frame: Any) -> None:
        logger.info("Received signal %s, initiating shutdown...", signum)
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        mcp = create_server(service, config)
        if config.transport == "stdio":
            mcp.run(transport="stdio")
        else:
            mcp.run(transport="streamable-http", host=config.http_host, port=config.http_port)
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception:
        logger.exception("Fatal error in circulation server")
        sys.exit(1)
    finally:
        service.close()
        logger.info("Shutdown complete")


if __name__ == "__main__":
    main()
