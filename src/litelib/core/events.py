"""Entity lifecycle events.

Every single-entity mutation of an entity set is wrapped by a before/after
event pair. Handlers are plain callables ``handler(entity_set, args)``
invoked in attachment order. A before-handler vetoes the operation by
setting ``args.cancel = True``; the remaining before-handlers are skipped
and no SQL runs. Whatever earlier handlers did to the entity stays done.

Example::

    def rename_peter(entity_set, args):
        if args.entity.customer_name == "Peter":
            args.entity.customer_name = "Charles"

    context.orders.on_before_insert += rename_peter

Bulk paths (``insert_range``, ``delete_where``, the context's generic
``insert``/``update``/``delete``) never raise events.

Tags:
    events, hooks, lifecycle, litelib
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from litelib.core.entity_set import EntitySet

T = TypeVar("T")

EntityEventHandler = Callable[["EntitySet[Any]", "EntityEventArgs[Any]"], None]


@dataclass(eq=False)
class EntityEventArgs(Generic[T]):
    """Arguments shared by the handlers of one operation.

    A fresh instance is created per call; the before- and after-handlers of
    that call receive the same object.
    """

    entity: T
    entity_set: EntitySet[T]
    cancel: bool = False


class EntityEvent:
    """Ordered list of handlers for one lifecycle event."""

    def __init__(self, name: str, *, cancelable: bool = False) -> None:
        self.name = name
        self.cancelable = cancelable
        self._handlers: list[EntityEventHandler] = []

    def add(self, handler: EntityEventHandler) -> EntityEventHandler:
        """Attach *handler*; returns it so the method works as a decorator."""
        if not callable(handler):
            raise TypeError(f"Event handler must be callable, got {handler!r}")
        self._handlers.append(handler)
        return handler

    def remove(self, handler: EntityEventHandler) -> None:
        """Detach the first registration of *handler*."""
        self._handlers.remove(handler)

    def clear(self) -> None:
        self._handlers.clear()

    def __iadd__(self, handler: EntityEventHandler) -> EntityEvent:
        self.add(handler)
        return self

    def __isub__(self, handler: EntityEventHandler) -> EntityEvent:
        self.remove(handler)
        return self

    def __len__(self) -> int:
        return len(self._handlers)

    def __iter__(self) -> Iterator[EntityEventHandler]:
        return iter(list(self._handlers))

    def fire(self, sender: EntitySet[Any], args: EntityEventArgs[Any]) -> EntityEventArgs[Any]:
        """Run the handlers in order, stopping at a veto on cancelable events."""
        for handler in list(self._handlers):
            handler(sender, args)
            if self.cancelable and args.cancel:
                break
        return args

    def __repr__(self) -> str:
        return f"EntityEvent({self.name!r}, handlers={len(self._handlers)})"


__all__ = [
    "EntityEvent",
    "EntityEventArgs",
    "EntityEventHandler",
]
