"""Database adapters.

litelib targets an embedded SQLite store; the adapter owns the single
physical connection of a context and runs command templates on it.

Tags:
    litelib, database, adapters, sqlite
"""

from .base import DatabaseAdapter, Parameters
from .sqlite import SQLiteAdapter, split_statements
from .types import DatabaseConfig, DatabaseType

__all__ = [
    "DatabaseAdapter",
    "DatabaseConfig",
    "DatabaseType",
    "Parameters",
    "SQLiteAdapter",
    "split_statements",
]
