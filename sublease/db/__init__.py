"""Database package: engine, ORM models, and CRUD facade."""

from sublease.db.engine import create_db_engine, create_session_factory
from sublease.db.facade import Database
from sublease.db.orm import Base, ListingRow, RentalRow, TransactionRow, UserRow

__all__ = [
    "Base",
    "Database",
    "ListingRow",
    "RentalRow",
    "TransactionRow",
    "UserRow",
    "create_db_engine",
    "create_session_factory",
]
