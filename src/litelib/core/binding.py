"""Parameter binding and row materialization.

Command templates use named parameters (``@CustomerName``). This module
turns an arbitrary parameter object into the mapping ``sqlite3`` binds
from, and turns result rows back into entity instances.

Binding:
    - ``None`` binds nothing
    - a mapping binds its items
    - any other object binds its public attributes and properties

    Only the names a statement actually references are read by ``sqlite3``,
    so unrelated members (nested objects, unmapped fields) are harmless.

Storage adaptation (Python → SQLite):
    ===================  ===========================
    ``bool``             ``0`` / ``1``
    ``Enum``             its ``value``
    ``float``            ``repr`` text
    ``Decimal``          ``str``
    ``datetime``/``date``/``time``  ISO-8601 text
    ``timedelta``        ``repr`` of its total seconds
    ``UUID``             ``str``
    ``bytearray``        ``bytes``
    ===================  ===========================

``float`` columns have TEXT affinity, so a float bound as REAL would be
rendered by SQLite with 15 significant digits. Binding ``repr(value)`` keeps
the shortest text that parses back to the same float.

``Decimal`` columns have NUMERIC affinity: SQLite converts the bound text to
INTEGER or REAL and keeps at most 15 significant digits. Decimals that need
more digits come back rounded.

Materialization constructs ``T()`` (entities are default-constructible) and
assigns every returned column, converting stored values back to the
column's declared Python type.

Tags:
    binding, parameters, materialization, litelib
"""

from __future__ import annotations

import datetime
import uuid
from collections.abc import Iterable, Iterator, Mapping
from decimal import Decimal
from enum import Enum
from typing import Any, TypeVar

from litelib.core.definition import TableDefinition
from litelib.core.model import IDENTITY_COLUMN

T = TypeVar("T")


def to_store_value(value: Any) -> Any:
    """Adapt a Python value to something ``sqlite3`` can bind."""
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, Enum):
        return to_store_value(value.value)
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, datetime.timedelta):
        return repr(value.total_seconds())
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, bytearray):
        return bytes(value)
    return value


def _public_members(source: Any) -> dict[str, Any]:
    names: list[str] = []
    names.extend(getattr(source, "__dict__", {}).keys())
    for klass in type(source).__mro__:
        for name, attribute in vars(klass).items():
            if isinstance(attribute, property) or name in getattr(klass, "__slots__", ()):
                names.append(name)

    members: dict[str, Any] = {}
    for name in names:
        if name.startswith("_") or name in members:
            continue
        members[name] = getattr(source, name)
    return members


def bind_parameters(source: Any) -> dict[str, Any]:
    """Named parameters taken from *source*, adapted for storage."""
    if source is None:
        return {}
    if isinstance(source, Mapping):
        items = source.items()
    else:
        items = _public_members(source).items()
    return {name: to_store_value(value) for name, value in items}


def _enum_from_store(enum_type: type[Enum], value: Any) -> Enum:
    try:
        return enum_type(value)
    except ValueError:
        # TEXT affinity turns integer values into their text form
        for member in enum_type:
            if str(member.value) == str(value):
                return member
        raise


def from_store_value(value: Any, python_type: Any) -> Any:
    """Convert a stored value back to *python_type*."""
    if value is None or not isinstance(python_type, type):
        return value
    if issubclass(python_type, bool):
        return bool(value)
    if issubclass(python_type, Enum):
        return _enum_from_store(python_type, value)
    if issubclass(python_type, str):
        return value if isinstance(value, str) else str(value)
    if issubclass(python_type, int):
        return int(value)
    if issubclass(python_type, Decimal):
        return Decimal(str(value))
    if issubclass(python_type, datetime.datetime):
        return value if isinstance(value, datetime.datetime) else datetime.datetime.fromisoformat(str(value))
    if issubclass(python_type, datetime.date):
        return value if isinstance(value, datetime.date) else datetime.date.fromisoformat(str(value))
    if issubclass(python_type, datetime.time):
        return datetime.time.fromisoformat(str(value))
    if issubclass(python_type, datetime.timedelta):
        return datetime.timedelta(seconds=float(value))
    if issubclass(python_type, uuid.UUID):
        return uuid.UUID(str(value))
    if issubclass(python_type, float):
        return float(value)
    if issubclass(python_type, bytearray):
        return bytearray(value)
    if issubclass(python_type, bytes):
        return bytes(value)
    return value


def materialize_row(row: Any, entity_type: type[T], converters: Mapping[str, Any]) -> T:
    """Build one ``entity_type`` instance from a result row."""
    entity = entity_type()
    for key in row.keys():
        value = row[key]
        if key == IDENTITY_COLUMN:
            value = int(value) if value is not None else value
        elif key in converters:
            value = from_store_value(value, converters[key])
        setattr(entity, key, value)
    return entity


def materialize(
    rows: Iterable[Any],
    entity_type: type[T],
    definition: TableDefinition | None = None,
) -> Iterator[T]:
    """Lazily map *rows* to ``entity_type`` instances."""
    converters: dict[str, Any] = {}
    if definition is not None:
        converters = {column.name: column.python_type for column in definition.columns}
    for row in rows:
        yield materialize_row(row, entity_type, converters)


__all__ = [
    "bind_parameters",
    "from_store_value",
    "materialize",
    "materialize_row",
    "to_store_value",
]
