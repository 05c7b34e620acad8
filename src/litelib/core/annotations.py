"""Mapping annotations recognized on record types.

Markers are attached to members with :data:`typing.Annotated`; the table
rename is a class decorator. None of them carry behavior; the definition
builder reads them.

Usage::

    from typing import Annotated, Optional

    @table("CustomWarehouse")
    @dataclass
    class Warehouse(LiteModel):
        unique_id: Annotated[Optional[str], Unique] = None
        name: Annotated[str, MaxLength(60), Required] = ""
        description: Annotated[str, NotMapped] = ""

Markers without arguments may be written bare (``Indexed``) or called
(``Indexed()``).

Tags:
    annotations, mapping, ddl, litelib
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, TypeVar

TABLE_ATTRIBUTE = "__litelib_table__"

_T = TypeVar("_T", bound=type)


@dataclass(frozen=True)
class NotMapped:
    """Exclude the member from the table."""


@dataclass(frozen=True)
class Indexed:
    """Create a non-unique index on the column."""


@dataclass(frozen=True)
class Unique:
    """Create a unique index on the column."""


@dataclass(frozen=True)
class Required:
    """Declare a string column ``NOT NULL``."""


@dataclass(frozen=True)
class MaxLength:
    """Maximum length of a string column."""

    length: int


def table(name: str) -> Callable[[_T], _T]:
    """Class decorator that maps the record type to table *name*."""

    def decorate(cls: _T) -> _T:
        setattr(cls, TABLE_ATTRIBUTE, name)
        return cls

    return decorate


def table_name_of(cls: type) -> str:
    """The declared table name of *cls*, or its bare class name."""
    return getattr(cls, TABLE_ATTRIBUTE, None) or cls.__name__


def has_marker(markers: Iterable[Any], marker: type) -> bool:
    """Whether *marker* appears in *markers*, bare or instantiated."""
    return any(m is marker or isinstance(m, marker) for m in markers)


def find_marker(markers: Iterable[Any], marker: type) -> Any | None:
    """First instance of *marker* in *markers*, if any."""
    for m in markers:
        if isinstance(m, marker):
            return m
    return None


__all__ = [
    "NotMapped",
    "Indexed",
    "Unique",
    "Required",
    "MaxLength",
    "table",
    "table_name_of",
    "has_marker",
    "find_marker",
    "TABLE_ATTRIBUTE",
]
