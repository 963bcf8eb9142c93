"""Test configuration and fixtures for the Library Circulation service.

Every test gets its own SQLite file under ``tmp_path``. A file (rather than
``:memory:``) is used so that concurrent tests exercise real, separate
connections and transactions.

Sessions opened by tests must be closed before the service runs: SQLite
transactions take the write lock up front, so a lingering session would make
the service wait for its busy timeout.
"""

import os
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
from sqlalchemy import select

from library_circulation.config import CirculationConfig, reset_config
from library_circulation.database.book_repository import BookCreateSchema, BookRepository
from library_circulation.database.schema import Book as BookDB
from library_circulation.database.schema import Loan as LoanDB
from library_circulation.database.session import DatabaseManager
from library_circulation.models.book import Book
from library_circulation.services.circulation import CirculationService

# === Test Database Fixtures ===


@pytest.fixture
def test_db_path(tmp_path: Path) -> Path:
    """Provide a temporary database path for each test."""
    return tmp_path / "test_library.db"


@pytest.fixture
def test_database_url(test_db_path: Path) -> str:
    return f"sqlite:///{test_db_path}"


@pytest.fixture
def db_manager(test_database_url: str) -> Generator[DatabaseManager, None, None]:
    """Provide an initialized storage handle, closed after the test."""
    manager = DatabaseManager(test_database_url, busy_timeout=30.0)
    manager.init_database()
    yield manager
    manager.close()


@pytest.fixture
def service(db_manager: DatabaseManager) -> CirculationService:
    return CirculationService(db_manager)


# === Catalog Fixtures ===


@pytest.fixture
def make_book(db_manager: DatabaseManager) -> Callable[..., Book]:
    """Factory adding a book and committing it."""

    def _make(
        total_copies: int = 1,
        available_copies: int | None = None,
        title: str = "Introduction to Algorithms",
        author: str = "Thomas H. Cormen",
        department: str | None = "Computer Science",
    ) -> Book:
        data = BookCreateSchema(
            title=title,
            author=author,
            department=department,
            total_copies=total_copies,
            available_copies=total_copies if available_copies is None else available_copies,
        )
        with db_manager.session_scope() as session:
            return BookRepository(session).add_book(data)

    return _make


@pytest.fixture
def book(make_book) -> Book:
    """A book with exactly one copy, on the shelf."""
    return make_book(total_copies=1)


# === Inspection Helpers ===


@pytest.fixture
def read_book(db_manager: DatabaseManager) -> Callable[[int], BookDB]:
    """Read a book row in a fresh, committed transaction."""

    def _read(book_id: int) -> BookDB:
        with db_manager.session_scope() as session:
            return session.get(BookDB, book_id)

    return _read


@pytest.fixture
def read_loans(db_manager: DatabaseManager) -> Callable[[], list[LoanDB]]:
    """Read every loan row in a fresh, committed transaction."""

    def _read() -> list[LoanDB]:
        with db_manager.session_scope() as session:
            return list(session.execute(select(LoanDB).order_by(LoanDB.id)).scalars())

    return _read


# === Configuration Fixtures ===


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Run without any LIBRARY_CIRCULATION_* variables set."""
    original_env = os.environ.copy()
    for key in list(os.environ.keys()):
        if key.startswith("LIBRARY_CIRCULATION_"):
            del os.environ[key]

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def test_config(test_db_path: Path, clean_env) -> Generator[CirculationConfig, None, None]:
    reset_config()
    config = CirculationConfig(
        server_name="test-library-circulation",
        server_version="0.0.1-test",
        database_path=test_db_path,
        debug=True,
        log_level="DEBUG",
        sqlite_busy_timeout=10.0,
    )
    yield config
    reset_config()


@pytest.fixture(autouse=True)
def cleanup_after_test():
    yield
    reset_config()
