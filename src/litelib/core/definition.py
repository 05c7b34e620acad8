"""
Table definitions compiled from record types.

A record type is inspected once, the first time an entity set for it is
created. The result, a :class:`TableDefinition`, bundles the table DDL, the
index DDL and the parameterized command templates every entity set of that
type runs. Definitions are cached process-wide by type identity and never
change afterwards.

Manifesto:
    Reflection happens once. Every CRUD call after the first entity set is
    a template lookup plus parameter binding.

    - **Deterministic:** Same type, same DDL and templates, byte for byte
    - **Idempotent DDL:** ``IF NOT EXISTS`` everywhere, re-running is a no-op
    - **Fail at definition time:** A type without columns never reaches SQL

Architecture:
    ::

        record type
            │  get_type_hints(include_extras=True), base classes first
            ▼
        ┌───────────────────────────────────────────────────────────┐
        │ per member                                                │
        │   skip RowId / ClassVar / _private / read-only property   │
        │   skip NotMapped                                          │
        │   Indexed → IX_<table>_<col>   Unique → UX_<table>_<col>  │
        │   classify type → column affinity (or exclude)            │
        └───────────────────────────────────────────────────────────┘
            │
            ▼
        TableDefinition (DDL + templates + columns), cached

Type → column mapping:
    ================================  ==============================
    ``str``                           ``NVARCHAR(n)`` (n = 4096 or MaxLength)
    ``int``, ``IntEnum``              ``INTEGER``
    ``bool``, ``Decimal``             ``NUMERIC``
    ``datetime``, ``date``            ``DATETIME``
    ``float``, ``time``, ``timedelta``,
    ``UUID``, ``Enum``                ``TEXT``
    ``bytes``, ``bytearray``          ``BLOB``
    ``Optional[X]``                   affinity of X, ``NULL``
    anything else                     not mapped
    ================================  ==============================

``NUMERIC`` keeps at most 15 significant digits of a ``Decimal``: SQLite
stores the value as INTEGER or REAL. ``float`` and ``timedelta`` are bound as
their ``repr`` text so the TEXT column holds every digit.

Examples:
    >>> @dataclass
    ... class Order(LiteModel):
    ...     customer_name: Annotated[str, Indexed] = ""
    ...     amount: int = 0
    >>> definition = build_definition(Order)
    >>> definition.property_names
    ('customer_name', 'amount')
    >>> definition.delete_template
    'DELETE FROM [Order] WHERE [RowId] = @RowId'

Guardrails:
    ❌ DON'T: Build definitions by hand for mapped types
    ✅ DO: Go through ``build_definition`` so the cache stays authoritative

Tags:
    ddl, reflection, templates, cache, litelib
"""

from __future__ import annotations

import datetime
import threading
import types
import uuid
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, ClassVar, Union, get_args, get_origin, get_type_hints

from litelib.core.annotations import (
    Indexed,
    MaxLength,
    NotMapped,
    Required,
    Unique,
    find_marker,
    has_marker,
    table_name_of,
)
from litelib.core.errors import DefinitionError, ErrorContext
from litelib.core.logging import get_logger
from litelib.core.model import IDENTITY_COLUMN

logger = get_logger(__name__)

DEFAULT_STRING_LENGTH = 4096


class Affinity(str, Enum):
    """Declared column types emitted in DDL."""

    NVARCHAR = "NVARCHAR"
    INTEGER = "INTEGER"
    NUMERIC = "NUMERIC"
    DATETIME = "DATETIME"
    TEXT = "TEXT"
    BLOB = "BLOB"


_TEXT_VALUE_TYPES: tuple[type, ...] = (float, datetime.time, datetime.timedelta, uuid.UUID)


def classify(python_type: Any) -> Affinity | None:
    """Column affinity for *python_type*, or ``None`` when it cannot be mapped."""
    if not isinstance(python_type, type):
        return None
    if issubclass(python_type, bool):
        return Affinity.NUMERIC
    if issubclass(python_type, Enum):
        return Affinity.INTEGER if issubclass(python_type, int) else Affinity.TEXT
    if issubclass(python_type, str):
        return Affinity.NVARCHAR
    if issubclass(python_type, int):
        return Affinity.INTEGER
    if issubclass(python_type, Decimal):
        return Affinity.NUMERIC
    if issubclass(python_type, (datetime.datetime, datetime.date)):
        return Affinity.DATETIME
    if issubclass(python_type, _TEXT_VALUE_TYPES):
        return Affinity.TEXT
    if issubclass(python_type, (bytes, bytearray)):
        return Affinity.BLOB
    return None


@dataclass(frozen=True)
class ColumnDefinition:
    """One mapped column."""

    name: str
    python_type: type
    affinity: Affinity
    nullable: bool
    max_length: int | None = None

    @property
    def sql_type(self) -> str:
        if self.affinity is Affinity.NVARCHAR:
            return f"NVARCHAR({self.max_length})"
        return self.affinity.value

    def ddl(self) -> str:
        null_statement = "NULL" if self.nullable else "NOT NULL"
        line = f"    [{self.name}] {self.sql_type} {null_statement}"
        if self.affinity is Affinity.NVARCHAR and self.max_length != DEFAULT_STRING_LENGTH:
            line += f" CHECK(length([{self.name}]) <= {self.max_length})"
        return line


@dataclass(frozen=True)
class TableDefinition:
    """DDL, command templates and column metadata for one mapped type."""

    entity_type: type
    table_name: str
    table_definition: str
    select_template: str
    insert_template: str
    update_template: str
    delete_template: str
    delete_where_template: str
    exists_template: str
    count_template: str
    property_names: tuple[str, ...]
    columns: tuple[ColumnDefinition, ...]

    def column(self, name: str) -> ColumnDefinition | None:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    # Predicate text is appended verbatim after WHERE.

    def select_where(self, where: str) -> str:
        return f"{self.select_template} WHERE {where}"

    def delete_where(self, where: str) -> str:
        return f"{self.delete_where_template} WHERE {where}"

    def count_where(self, where: str) -> str:
        return f"{self.count_template} WHERE {where}"

    def exists_where(self, where: str) -> str:
        return f"SELECT EXISTS(SELECT 1 FROM [{self.table_name}] WHERE {where})"

    def insert_range_command(self, row_count: int) -> str:
        """Multi-row INSERT with positional parameters for *row_count* rows."""
        row = "(" + ", ".join("?" for _ in self.property_names) + ")"
        columns = ", ".join(f"[{p}]" for p in self.property_names)
        values = ", ".join(row for _ in range(row_count))
        return f"INSERT INTO [{self.table_name}] ({columns}) VALUES {values}"

    def rows_per_command(self, max_parameters: int) -> int:
        """Rows of one ``insert_range_command`` that fit in *max_parameters*."""
        return max(1, max_parameters // len(self.property_names))


def unwrap_annotation(annotation: Any) -> tuple[Any, tuple[Any, ...], bool]:
    """Strip ``Annotated`` and ``Optional`` layers.

    Returns the bare type, the collected markers and whether ``None`` was
    part of the annotation.
    """
    markers: list[Any] = []
    optional = False
    current = annotation
    while True:
        origin = get_origin(current)
        if origin is Annotated:
            markers.extend(current.__metadata__)
            current = current.__origin__
            continue
        if origin in (Union, types.UnionType):
            args = get_args(current)
            non_none = [a for a in args if a is not type(None)]
            if len(non_none) == 1 and len(args) == 2:
                optional = True
                current = non_none[0]
                continue
        break
    return current, tuple(markers), optional


def _is_read_only(entity_type: type, name: str) -> bool:
    for klass in entity_type.__mro__:
        attribute = klass.__dict__.get(name)
        if isinstance(attribute, property):
            return attribute.fset is None
    return False


def _column_for(name: str, python_type: Any, markers: tuple[Any, ...], optional: bool) -> ColumnDefinition | None:
    affinity = classify(python_type)
    if affinity is None:
        return None

    if affinity is Affinity.NVARCHAR:
        max_length = DEFAULT_STRING_LENGTH
        declared = find_marker(markers, MaxLength)
        if declared is not None:
            if declared.length <= 0:
                raise DefinitionError(
                    f"MaxLength must be positive, got {declared.length}",
                    context=ErrorContext(metadata={"column": name}),
                )
            max_length = declared.length
        nullable = not has_marker(markers, Required)
        return ColumnDefinition(name, python_type, affinity, nullable, max_length)

    return ColumnDefinition(name, python_type, affinity, optional)


def compile_definition(entity_type: type) -> TableDefinition:
    """Reflect over *entity_type* and produce its table definition (uncached)."""
    if not isinstance(entity_type, type):
        raise DefinitionError(f"Expected a class, got {entity_type!r}")

    table_name = table_name_of(entity_type)
    hints = get_type_hints(entity_type, include_extras=True)
    context = ErrorContext(table=table_name, entity_type=entity_type.__qualname__)

    if IDENTITY_COLUMN not in hints:
        raise DefinitionError(
            f"{entity_type.__qualname__} must declare an integer {IDENTITY_COLUMN} attribute",
            context=context,
        )

    columns: list[ColumnDefinition] = []
    index_ddl: list[str] = []

    for name, annotation in hints.items():
        if name == IDENTITY_COLUMN or name.startswith("_"):
            continue
        if get_origin(annotation) is ClassVar or annotation is ClassVar:
            continue
        if _is_read_only(entity_type, name):
            continue

        python_type, markers, optional = unwrap_annotation(annotation)
        if has_marker(markers, NotMapped):
            continue

        column = _column_for(name, python_type, markers, optional)
        if column is None:
            continue

        if has_marker(markers, Indexed):
            index_ddl.append(
                f"CREATE INDEX IF NOT EXISTS [IX_{table_name}_{name}] ON [{table_name}] ([{name}]);"
            )
        if has_marker(markers, Unique):
            index_ddl.append(
                f"CREATE UNIQUE INDEX IF NOT EXISTS [UX_{table_name}_{name}] ON [{table_name}] ([{name}]);"
            )

        columns.append(column)

    if not columns:
        raise DefinitionError(
            "Invalid entity set, you need at least one property to bind",
            context=context,
        )

    property_names = tuple(c.name for c in columns)
    column_lines = [f"    [{IDENTITY_COLUMN}] INTEGER PRIMARY KEY AUTOINCREMENT"]
    column_lines.extend(c.ddl() for c in columns)

    ddl = f"CREATE TABLE IF NOT EXISTS [{table_name}] (\n" + ",\n".join(column_lines) + "\n);\n"
    ddl += "".join(f"{statement}\n" for statement in index_ddl)

    escaped_columns = ", ".join(f"[{p}]" for p in property_names)
    parameter_columns = ", ".join(f"@{p}" for p in property_names)
    assignments = ", ".join(f"[{p}] = @{p}" for p in property_names)
    identity_match = f"[{IDENTITY_COLUMN}] = @{IDENTITY_COLUMN}"

    return TableDefinition(
        entity_type=entity_type,
        table_name=table_name,
        table_definition=ddl,
        select_template=f"SELECT [{IDENTITY_COLUMN}], {escaped_columns} FROM [{table_name}]",
        insert_template=(
            f"INSERT INTO [{table_name}] ({escaped_columns}) VALUES ({parameter_columns}); "
            "SELECT last_insert_rowid();"
        ),
        update_template=f"UPDATE [{table_name}] SET {assignments} WHERE {identity_match}",
        delete_template=f"DELETE FROM [{table_name}] WHERE {identity_match}",
        delete_where_template=f"DELETE FROM [{table_name}]",
        exists_template=f"SELECT EXISTS(SELECT 1 FROM [{table_name}])",
        count_template=f"SELECT COUNT(*) FROM [{table_name}]",
        property_names=property_names,
        columns=tuple(columns),
    )


class TypeDefinitionBuilder:
    """
    Process-wide cache of table definitions keyed by type identity.

    ``build`` is compute-if-absent under a lock: concurrent first requests
    for the same type publish exactly one definition, and a half-built
    definition is never visible.
    """

    def __init__(self) -> None:
        self._definitions: dict[type, TableDefinition] = {}
        self._lock = threading.Lock()

    def build(self, entity_type: type) -> TableDefinition:
        """Return the cached definition of *entity_type*, compiling it once."""
        definition = self._definitions.get(entity_type)
        if definition is not None:
            return definition

        with self._lock:
            definition = self._definitions.get(entity_type)
            if definition is None:
                definition = compile_definition(entity_type)
                self._definitions[entity_type] = definition
                logger.debug(
                    "definition_built",
                    table=definition.table_name,
                    entity_type=entity_type.__qualname__,
                    columns=len(definition.property_names),
                )
        return definition

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    def clear(self) -> None:
        """Drop every cached definition."""
        with self._lock:
            self._definitions.clear()


# Global builder
definition_builder = TypeDefinitionBuilder()


def build_definition(entity_type: type) -> TableDefinition:
    """Cached table definition of *entity_type*."""
    return definition_builder.build(entity_type)


__all__ = [
    "Affinity",
    "ColumnDefinition",
    "TableDefinition",
    "TypeDefinitionBuilder",
    "DEFAULT_STRING_LENGTH",
    "build_definition",
    "classify",
    "compile_definition",
    "definition_builder",
    "unwrap_annotation",
]
