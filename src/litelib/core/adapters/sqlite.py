"""SQLite database adapter."""

from __future__ import annotations

import re
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from litelib.core.errors import DatabaseConnectionError, ErrorContext

from .base import DatabaseAdapter, Parameters
from .types import DatabaseConfig, DatabaseType

_SEMICOLON = re.compile(r"(;)")


def split_statements(script: str) -> list[str]:
    """Split a command script into single statements.

    ``sqlite3`` refuses to run more than one statement per ``execute`` call,
    while templates such as ``INSERT ...; SELECT last_insert_rowid();`` carry
    two. A chunk is only cut at a semicolon that ``sqlite3.complete_statement``
    accepts, so semicolons inside literals stay put.
    """
    statements: list[str] = []
    buffer = ""
    for part in _SEMICOLON.split(script):
        buffer += part
        if part == ";" and sqlite3.complete_statement(buffer):
            statement = buffer.strip()
            if statement.strip(";").strip():
                statements.append(statement)
            buffer = ""

    if buffer.strip():
        statements.append(buffer.strip())

    return statements


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite database adapter.

    Owns exactly one ``sqlite3`` connection, opened in autocommit mode
    (``isolation_level=None``): every command commits on its own unless it
    runs inside :meth:`transaction`. The connection is shared with worker
    threads used by the async twins (``check_same_thread=False``); callers
    sharing one adapter serialize themselves.
    """

    def __init__(
        self,
        path: str = ":memory:",
        *,
        readonly: bool = False,
        timeout: float = 5.0,
        foreign_keys: bool = True,
        journal_mode: str | None = None,
        **kwargs: Any,
    ):
        config = DatabaseConfig(
            db_type=DatabaseType.SQLITE,
            path=path,
            timeout=timeout,
            readonly=readonly,
            foreign_keys=foreign_keys,
            journal_mode=journal_mode,
            options=kwargs,
        )
        super().__init__(config)
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Connect to SQLite database."""
        path = self._config.to_connection_string()
        uri = path.startswith("file:") or "?" in path

        try:
            self._conn = sqlite3.connect(
                path,
                timeout=self._config.timeout,
                check_same_thread=False,
                isolation_level=None,
                uri=uri,
                **self._config.options,
            )
            self._conn.row_factory = sqlite3.Row

            if self._config.foreign_keys:
                self._conn.execute("PRAGMA foreign_keys = ON")

            if self._config.journal_mode:
                self._conn.execute(f"PRAGMA journal_mode = {self._config.journal_mode}")

            if self._config.readonly:
                self._conn.execute("PRAGMA query_only = ON")

            self._connected = True

        except sqlite3.Error as e:
            raise DatabaseConnectionError(
                f"Failed to connect to SQLite: {e}",
                context=ErrorContext(metadata={"path": path}),
                cause=e,
            ) from e

    def disconnect(self) -> None:
        """Close SQLite connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
            self._connected = False

    def get_connection(self) -> sqlite3.Connection:
        """Get the SQLite connection."""
        if not self._conn:
            self.connect()
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Transaction context manager."""
        conn = self.get_connection()
        conn.execute("BEGIN")
        try:
            yield conn
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise

    def max_parameters(self) -> int:
        """Host parameter limit of the open connection (SQLITE_LIMIT_VARIABLE_NUMBER)."""
        return self.get_connection().getlimit(sqlite3.SQLITE_LIMIT_VARIABLE_NUMBER)

    def execute(self, sql: str, params: Parameters = None) -> int:
        """Execute every statement of *sql* and return the affected-row count."""
        conn = self.get_connection()
        affected = 0
        for statement in split_statements(sql):
            cursor = conn.execute(statement, _normalize(params))
            if cursor.rowcount > 0:
                affected += cursor.rowcount
        return affected

    def query(self, sql: str, params: Parameters = None) -> list[sqlite3.Row]:
        """Execute every statement of *sql* and return the last one's rows."""
        conn = self.get_connection()
        rows: list[sqlite3.Row] = []
        for statement in split_statements(sql):
            rows = conn.execute(statement, _normalize(params)).fetchall()
        return rows

    def execute_script(self, sql: str) -> None:
        """Run a parameterless script (DDL) statement by statement.

        Unlike ``sqlite3.Connection.executescript`` this never issues an
        implicit ``COMMIT``, so it can run inside :meth:`transaction`.
        """
        conn = self.get_connection()
        for statement in split_statements(sql):
            conn.execute(statement)


def _normalize(params: Parameters) -> Any:
    if params is None:
        return ()
    return params


__all__ = [
    "SQLiteAdapter",
    "split_statements",
]
