#!/usr/bin/env python3
"""
Initialize the Library Circulation database.

This script:
1. Creates all database tables
2. Optionally loads a generated demo catalog
3. Verifies the expected tables exist

Usage:
    python scripts/init_database.py [--drop-existing] [--sample-data] [--books N]
"""

import argparse
import logging
import sys

from sqlalchemy import inspect

from library_circulation.config import get_config
from library_circulation.database.seed import seed_database
from library_circulation.database.session import DatabaseManager

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

EXPECTED_TABLES = {"books", "loans"}


def main() -> None:
    parser = argparse.ArgumentParser(description="Initialize the Library Circulation database")
    parser.add_argument(
        "--drop-existing",
        action="store_true",
        help="Drop existing tables before creating new ones",
    )
    parser.add_argument(
        "--sample-data",
        action="store_true",
        help="Load a generated demo catalog after creating tables",
    )
    parser.add_argument("--books", type=int, default=50, help="Number of demo books")
    parser.add_argument("--database-url", help="Override the configured database URL")
    args = parser.parse_args()

    config = get_config()
    db = DatabaseManager(
        args.database_url or config.get_database_url(), busy_timeout=config.sqlite_busy_timeout
    )

    if not db.verify_connection():
        logger.error("Failed to connect to database")
        sys.exit(1)

    try:
        db.init_database(drop_existing=args.drop_existing)

        if args.sample_data:
            count = seed_database(db, num_books=args.books)
            logger.info("Loaded %d demo books", count)

        tables = set(inspect(db.engine).get_table_names())
        missing = EXPECTED_TABLES - tables
        if missing:
            logger.error("Missing expected tables: %s", ", ".join(sorted(missing)))
            sys.exit(1)

        logger.info("Database ready at %s", db.database_url)
    except Exception:
        logger.exception("Database initialization failed")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
