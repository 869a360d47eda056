"""Database layer for receiptflow application."""

from receiptflow.database.base import Database
from receiptflow.database.factories import create_sqlite_database

__all__ = ["Database", "create_sqlite_database"]
