"""Entity base model.

Any default-constructible class with a mutable integer ``RowId`` attribute
can be stored in an entity set. :class:`LiteModel` is a dataclass base that
provides it.

``RowId`` is the fixed name of the identity column in every generated table
(``INTEGER PRIMARY KEY AUTOINCREMENT``). It keeps the store's spelling
because command templates bind it by name (``@RowId``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

IDENTITY_COLUMN = "RowId"
DEFAULT_ROW_ID = 0


@runtime_checkable
class LiteEntity(Protocol):
    """Structural contract for storable entities."""

    RowId: int


@dataclass
class LiteModel:
    """Base model class for entities.

    Inherit from this model if you don't want to declare ``RowId`` yourself.
    """

    RowId: int = DEFAULT_ROW_ID


def has_identity(entity: Any) -> bool:
    """Whether *entity* carries a generated identity value."""
    return getattr(entity, IDENTITY_COLUMN, None) not in (None, DEFAULT_ROW_ID)


__all__ = [
    "IDENTITY_COLUMN",
    "DEFAULT_ROW_ID",
    "LiteEntity",
    "LiteModel",
    "has_identity",
]
