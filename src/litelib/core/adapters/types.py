"""Database types and configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class DatabaseType(str, Enum):
    """Supported database types."""

    SQLITE = "sqlite"


@dataclass
class DatabaseConfig:
    """
    Configuration for a SQLite connection.

    ``path`` may be a filesystem path, ``:memory:`` or a ``file:`` URI.
    """

    db_type: DatabaseType = DatabaseType.SQLITE

    path: str | None = None
    timeout: float = 5.0
    readonly: bool = False
    foreign_keys: bool = True
    journal_mode: str | None = None

    # Extra options (passed through to sqlite3.connect)
    options: dict[str, Any] = field(default_factory=dict)

    def to_connection_string(self) -> str:
        """Generate connection string for the database type."""
        return self.path or ":memory:"

    @property
    def is_memory(self) -> bool:
        """Whether the database lives only in memory."""
        path = self.to_connection_string()
        return path == ":memory:" or "mode=memory" in path


__all__ = [
    "DatabaseType",
    "DatabaseConfig",
]
