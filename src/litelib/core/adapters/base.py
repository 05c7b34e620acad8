"""Database adapter base class.

Manifesto:
    Entity sets never touch a driver directly. They hand a command template
    and its bound parameters to an adapter and get rows or an affected-row
    count back. The abstract base class defines that contract, including the
    async twins that run the same store call off the event loop.

Features:
    - Abstract ``connect()``, ``disconnect()``, ``get_connection()``, ``transaction()``
    - ``execute()`` / ``query()`` / ``scalar()`` over multi-statement templates
    - ``*_async`` variants that suspend only at the store call
    - Context-manager protocol for connection lifecycle

Tags:
    litelib, database, abstract-base, adapter-pattern
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any, Union

from .types import DatabaseConfig, DatabaseType

Parameters = Union[Mapping[str, Any], Sequence[Any], None]


class DatabaseAdapter(ABC):
    """
    Abstract base class for database adapters.

    Provides common functionality and defines the interface
    that all adapters must implement.
    """

    def __init__(self, config: DatabaseConfig):
        self._config = config
        self._connected = False

    @property
    def config(self) -> DatabaseConfig:
        """Connection configuration."""
        return self._config

    @property
    def db_type(self) -> DatabaseType:
        """Database type."""
        return self._config.db_type

    @property
    def is_connected(self) -> bool:
        """Whether adapter is connected."""
        return self._connected

    @abstractmethod
    def connect(self) -> None:
        """Establish connection to database."""
        ...

    @abstractmethod
    def disconnect(self) -> None:
        """Close connection to database."""
        ...

    @abstractmethod
    def get_connection(self) -> Any:
        """Get the underlying driver connection."""
        ...

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator[Any]:
        """Context manager for an all-or-nothing transaction."""
        ...

    @abstractmethod
    def execute(self, sql: str, params: Parameters = None) -> int:
        """Execute a command and return the affected-row count."""
        ...

    @abstractmethod
    def query(self, sql: str, params: Parameters = None) -> list[Any]:
        """Execute a command and return the rows of its last statement."""
        ...

    def scalar(self, sql: str, params: Parameters = None) -> Any:
        """Execute a command and return the first column of the first row."""
        rows = self.query(sql, params)
        if not rows:
            return None
        return rows[0][0]

    def max_parameters(self) -> int:
        """Most bound parameters one statement may carry."""
        return 999

    # -- Async twins -------------------------------------------------------

    async def execute_async(self, sql: str, params: Parameters = None) -> int:
        """Async :meth:`execute`; the store call runs in a worker thread."""
        return await asyncio.to_thread(self.execute, sql, params)

    async def query_async(self, sql: str, params: Parameters = None) -> list[Any]:
        """Async :meth:`query`; the store call runs in a worker thread."""
        return await asyncio.to_thread(self.query, sql, params)

    async def scalar_async(self, sql: str, params: Parameters = None) -> Any:
        """Async :meth:`scalar`; the store call runs in a worker thread."""
        return await asyncio.to_thread(self.scalar, sql, params)

    def __enter__(self) -> DatabaseAdapter:
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.disconnect()


__all__ = [
    "DatabaseAdapter",
    "Parameters",
]
