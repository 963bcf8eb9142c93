"""
Library Circulation package.

Borrow/return bookkeeping for a student library: an inventory ledger of copy
counts, a store of loan records, and a service that changes both in a single
transaction.

Key Components:
- models: Pydantic models returned to callers
- database: SQLAlchemy schema, storage handle and repositories
- services: the circulation service
- tools: FastMCP tool handlers exposing the service
- config: Configuration management with Pydantic v2
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
