"""
Database session management for the Library Circulation service.

``DatabaseManager`` is the storage handle the circulation service is built
around. It is constructed explicitly, opened with ``init_database()`` at
process start and released with ``close()`` at shutdown; nothing in the
package holds a module-level connection.

Every borrow or return runs inside one ``session_scope(write=True)``: the scope commits
when the block finishes and rolls back on any exception, so the loan row and
the copy count it depends on change together or not at all.
"""

import logging
from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import CirculationConfig
from .repository import StorageError
from .schema import Base

logger = logging.getLogger(__name__)

SQLITE_BEGIN_OPTION = "sqlite_begin_mode"


class DatabaseManager:
    """
    Owns the engine and session factory for one database.

    On SQLite, write scopes (``session_scope(write=True)``) start with
    ``BEGIN IMMEDIATE``: a writer takes the database write lock before its
    first read, and competing writers wait up to ``busy_timeout`` seconds
    instead of failing with a lock-upgrade deadlock. Read scopes use a plain
    deferred ``BEGIN`` and only take a shared lock, so listings are not
    queued behind writers. In-memory databases share
    a single connection and are only suitable for sequential use.
    """

    def __init__(self, database_url: str, busy_timeout: float = 30.0):
        """
        Initialize the database manager.

        Args:
            database_url: SQLAlchemy database URL
            busy_timeout: Seconds a SQLite writer waits for the write lock
        """
        self.database_url = database_url
        self.busy_timeout = busy_timeout
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    @classmethod
    def from_config(cls, config: CirculationConfig) -> "DatabaseManager":
        """Build a manager from service configuration."""
        return cls(config.get_database_url(), busy_timeout=config.sqlite_busy_timeout)

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def engine(self) -> Engine:
        """Get or create the database engine."""
        if self._engine is None:
            if self.is_sqlite:
                self._engine = self._create_sqlite_engine()
            else:
                self._engine = create_engine(
                    self.database_url,
                    pool_size=10,
                    max_overflow=20,
                    pool_pre_ping=True,
                    echo=False,
                )
            logger.info("Database engine created: %s", self._engine.url)
        return self._engine

    def _create_sqlite_engine(self) -> Engine:
        connect_args = {"check_same_thread": False, "timeout": self.busy_timeout}
        if ":memory:" in self.database_url or self.database_url == "sqlite://":
            engine = create_engine(
                self.database_url, poolclass=StaticPool, connect_args=connect_args, echo=False
            )
        else:
            engine = create_engine(self.database_url, connect_args=connect_args, echo=False)

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ARG001
            # Let SQLAlchemy emit BEGIN itself instead of pysqlite
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def do_begin(conn):
            mode = conn.get_execution_options().get(SQLITE_BEGIN_OPTION, "DEFERRED")
            conn.exec_driver_sql(f"BEGIN {mode}")

        return engine

    @property
    def session_factory(self) -> sessionmaker:
        """Get or create the session factory."""
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine,
                autocommit=False,
                autoflush=False,
                expire_on_commit=False,
            )
        return self._session_factory

    def create_session(self) -> Session:
        """Create a new, unmanaged session. Prefer ``session_scope()``."""
        return self.session_factory()

    @contextmanager
    def session_scope(self, write: bool = False) -> Generator[Session, None, None]:
        """
        Provide a transactional scope for database operations.

        ```python
        with db_manager.session_scope(write=True) as session:
            InventoryRepository(session).decrement_available(book_id)
            LoanRepository(session).create_loan(student_id, book_id, due)
        # Both committed, or both rolled back
        ```

        Args:
            write: Take the SQLite write lock when the transaction begins.
                Needed for scopes that read a row and then update it; plain
                reads and single inserts leave it off.

        Raises:
            StorageError: If the database fails, including at commit time.
            Any other exception raised inside the block is re-raised unchanged
            after rollback.
        """
        session = self.create_session()
        try:
            if write and self.is_sqlite:
                session.connection(execution_options={SQLITE_BEGIN_OPTION: "IMMEDIATE"})
            yield session
            session.commit()
            logger.debug("Database transaction committed successfully")
        except SQLAlchemyError as e:
            logger.exception("Database error, rolling back")
            session.rollback()
            raise StorageError(f"Database operation failed: {e!s}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def init_database(self, drop_existing: bool = False) -> None:
        """
        Create the schema.

        Args:
            drop_existing: If True, drop all tables before creating
        """
        engine = self.engine
        if drop_existing:
            logger.warning("Dropping all existing tables...")
            Base.metadata.drop_all(bind=engine)
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database initialization complete")

    def verify_connection(self) -> bool:
        """Return True if a trivial query succeeds."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database connection verified")
            return True
        except SQLAlchemyError:
            logger.exception("Database connection failed")
            return False

    def close(self) -> None:
        """Dispose of the engine. Safe to call more than once."""
        if self._engine:
            self._engine.dispose()
            logger.info("Database engine disposed")
        self._engine = None
        self._session_factory = None
