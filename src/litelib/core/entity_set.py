"""
Typed CRUD facade over one mapped table.

An :class:`EntitySet` is bound to one record type and, once a context
discovers it, to that context's connection. It runs the command templates of
the type's :class:`~litelib.core.definition.TableDefinition` and raises the
before/after lifecycle events around single-entity mutations.

Manifesto:
    - **Templates, not query building:** Every command is a cached template
      plus bound parameters
    - **Cancelable hooks:** A before-handler can veto a mutation before any
      SQL runs
    - **Bulk paths stay bulk:** ``insert_range`` and ``delete_where`` never
      raise events
    - **Sync/async parity:** Each operation has an ``*_async`` twin that
      suspends only at the store call

Architecture:
    ::

        insert / update / delete(entity)

        Invoked ──► before-event ──► cancel? ──yes──► return 0
                                        │
                                        no
                                        ▼
                                   execute template
                                        │
                               mutate RowId (insert/delete)
                                        │
                                        ▼
                                   after-event ──► return affected count

        Store errors (sqlite3.IntegrityError, OperationalError, ...)
        escape from "execute template" untouched; nothing is retried.

Examples:
    >>> class ShopContext(LiteContext):
    ...     orders: EntitySet[Order]
    >>> with ShopContext("shop.db") as ctx:
    ...     order = Order(customer_name="John", shipper_city="Leon")
    ...     ctx.orders.insert(order)
    ...     ctx.orders.single(order.RowId).customer_name
    1
    'John'

Guardrails:
    ❌ DON'T: Pass untrusted text as a ``where`` predicate
    ✅ DO: Keep predicates literal and pass values through ``params``

Tags:
    crud, entity-set, events, async, litelib
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from litelib.core.binding import bind_parameters, to_store_value
from litelib.core.definition import TableDefinition, build_definition
from litelib.core.errors import (
    EmptyRangeError,
    EntitySetNotAttachedError,
    ErrorContext,
    MissingRowIdError,
)
from litelib.core.events import EntityEvent, EntityEventArgs
from litelib.core.model import DEFAULT_ROW_ID, IDENTITY_COLUMN, has_identity

if TYPE_CHECKING:
    from litelib.core.adapters import DatabaseAdapter
    from litelib.core.context import LiteContext

T = TypeVar("T")

MATCH_ALL = "1 = 1"

EVENT_NAMES = (
    "on_before_insert",
    "on_after_insert",
    "on_before_update",
    "on_after_update",
    "on_before_delete",
    "on_after_delete",
)


class EntitySet(Generic[T]):
    """
    CRUD operations and lifecycle events for entities of one type.

    The table definition is built (or fetched from the process-wide cache)
    when the set is constructed, so a type that cannot be mapped fails here.
    """

    def __init__(self, entity_type: type[T], context: LiteContext | None = None) -> None:
        self._entity_type = entity_type
        self._definition: TableDefinition = build_definition(entity_type)
        self._context: LiteContext | None = None
        self.name: str | None = None

        self.on_before_insert = EntityEvent("before_insert", cancelable=True)
        self.on_after_insert = EntityEvent("after_insert")
        self.on_before_update = EntityEvent("before_update", cancelable=True)
        self.on_after_update = EntityEvent("after_update")
        self.on_before_delete = EntityEvent("before_delete", cancelable=True)
        self.on_after_delete = EntityEvent("after_delete")

        if context is not None:
            self.attach(context)

    def attach(self, context: LiteContext, name: str | None = None) -> None:
        """Bind this set to *context* under the declared *name*."""
        self._context = context
        self.name = name

    def copy_handlers(self, source: EntitySet[T]) -> None:
        """Append every lifecycle handler of *source* to this set's events."""
        for event_name in EVENT_NAMES:
            target = getattr(self, event_name)
            for handler in getattr(source, event_name):
                target.add(handler)

    # -- Metadata ----------------------------------------------------------

    @property
    def entity_type(self) -> type[T]:
        return self._entity_type

    @property
    def definition(self) -> TableDefinition:
        return self._definition

    @property
    def context(self) -> LiteContext:
        if self._context is None:
            raise EntitySetNotAttachedError(
                f"Entity set for {self._entity_type.__qualname__} is not attached to a context",
                context=ErrorContext(
                    table=self._definition.table_name,
                    entity_type=self._entity_type.__qualname__,
                ),
            )
        return self._context

    @property
    def table_name(self) -> str:
        return self._definition.table_name

    @property
    def table_definition(self) -> str:
        return self._definition.table_definition

    @property
    def property_names(self) -> tuple[str, ...]:
        return self._definition.property_names

    @property
    def select_template(self) -> str:
        return self._definition.select_template

    @property
    def insert_template(self) -> str:
        return self._definition.insert_template

    @property
    def update_template(self) -> str:
        return self._definition.update_template

    @property
    def delete_template(self) -> str:
        return self._definition.delete_template

    @property
    def delete_where_template(self) -> str:
        return self._definition.delete_where_template

    @property
    def exists_template(self) -> str:
        return self._definition.exists_template

    @property
    def _adapter(self) -> DatabaseAdapter:
        return self.context.open_adapter

    # -- Helpers -----------------------------------------------------------

    def _raise_event(self, event: EntityEvent, args: EntityEventArgs[T]) -> EntityEventArgs[T]:
        return event.fire(self, args)

    def _require_identity(self, entity: T) -> None:
        if not has_identity(entity):
            raise MissingRowIdError(
                f"{IDENTITY_COLUMN} must be set to delete an entity",
                context=ErrorContext(
                    table=self._definition.table_name,
                    entity_type=self._entity_type.__qualname__,
                ),
            )

    def _range_commands(self, entities: Iterable[T] | None, max_parameters: int) -> list[tuple[str, list[Any]]]:
        if entities is None:
            raise EmptyRangeError("entities must not be None")
        items = list(entities)
        if not items:
            raise EmptyRangeError(
                "entities must contain at least one entity",
                context=ErrorContext(table=self._definition.table_name),
            )

        step = self._definition.rows_per_command(max_parameters)
        commands: list[tuple[str, list[Any]]] = []
        for start in range(0, len(items), step):
            chunk = items[start : start + step]
            params = [
                to_store_value(getattr(entity, name))
                for entity in chunk
                for name in self._definition.property_names
            ]
            commands.append((self._definition.insert_range_command(len(chunk)), params))
        return commands

    def _run_range(self, adapter: DatabaseAdapter, commands: list[tuple[str, list[Any]]]) -> int:
        if len(commands) == 1:
            sql, params = commands[0]
            self.context.log_sql_command(sql, params)
            return adapter.execute(sql, params)

        # more rows than one statement can bind: all chunks commit together
        affected = 0
        with adapter.transaction():
            for sql, params in commands:
                self.context.log_sql_command(sql, params)
                affected += adapter.execute(sql, params)
        return affected

    def _count_command(self, where: str | None) -> str:
        if where is None:
            return self._definition.count_template
        return self._definition.count_where(where)

    def _exists_command(self, where: str | None) -> str:
        if where is None:
            return self._definition.exists_template
        return self._definition.exists_where(where)

    # -- Insert ------------------------------------------------------------

    def insert(self, entity: T) -> int:
        """Insert *entity* and assign its generated ``RowId``.

        Returns 1, or 0 when a before-insert handler cancelled the call.
        """
        adapter = self._adapter
        args = self._raise_event(self.on_before_insert, EntityEventArgs(entity, self))
        if args.cancel:
            return 0

        params = bind_parameters(entity)
        self.context.log_sql_command(self.insert_template, params)
        row_id = adapter.scalar(self.insert_template, params)
        if row_id is None:
            return 0

        setattr(entity, IDENTITY_COLUMN, row_id)
        self._raise_event(self.on_after_insert, args)
        return 1

    async def insert_async(self, entity: T) -> int:
        """Async :meth:`insert`."""
        adapter = self._adapter
        args = self._raise_event(self.on_before_insert, EntityEventArgs(entity, self))
        if args.cancel:
            return 0

        params = bind_parameters(entity)
        self.context.log_sql_command(self.insert_template, params)
        row_id = await adapter.scalar_async(self.insert_template, params)
        if row_id is None:
            return 0

        setattr(entity, IDENTITY_COLUMN, row_id)
        self._raise_event(self.on_after_insert, args)
        return 1

    def insert_range(self, entities: Iterable[T]) -> int:
        """Insert all *entities* with multi-row statements.

        One statement carries as many rows as the connection's parameter
        limit allows; larger ranges are split and run in one transaction, so
        either every row is inserted or none is. No events are raised and
        ``RowId`` values are not assigned.
        """
        adapter = self._adapter
        commands = self._range_commands(entities, adapter.max_parameters())
        return self._run_range(adapter, commands)

    async def insert_range_async(self, entities: Iterable[T]) -> int:
        """Async :meth:`insert_range`."""
        adapter = self._adapter
        commands = self._range_commands(entities, adapter.max_parameters())
        return await asyncio.to_thread(self._run_range, adapter, commands)

    # -- Update ------------------------------------------------------------

    def update(self, entity: T) -> int:
        """Write every mapped column of *entity* to the row matching its ``RowId``."""
        adapter = self._adapter
        args = self._raise_event(self.on_before_update, EntityEventArgs(entity, self))
        if args.cancel:
            return 0

        params = bind_parameters(entity)
        self.context.log_sql_command(self.update_template, params)
        affected = adapter.execute(self.update_template, params)
        self._raise_event(self.on_after_update, args)
        return affected

    async def update_async(self, entity: T) -> int:
        """Async :meth:`update`."""
        adapter = self._adapter
        args = self._raise_event(self.on_before_update, EntityEventArgs(entity, self))
        if args.cancel:
            return 0

        params = bind_parameters(entity)
        self.context.log_sql_command(self.update_template, params)
        affected = await adapter.execute_async(self.update_template, params)
        self._raise_event(self.on_after_update, args)
        return affected

    # -- Delete ------------------------------------------------------------

    def delete(self, entity: T) -> int:
        """Delete the row of *entity* and reset its ``RowId``.

        Raises:
            MissingRowIdError: *entity* has no ``RowId``; raised before any
                handler or SQL runs.
        """
        self._require_identity(entity)
        adapter = self._adapter
        args = self._raise_event(self.on_before_delete, EntityEventArgs(entity, self))
        if args.cancel:
            return 0

        params = bind_parameters(entity)
        self.context.log_sql_command(self.delete_template, params)
        affected = adapter.execute(self.delete_template, params)
        setattr(entity, IDENTITY_COLUMN, DEFAULT_ROW_ID)
        self._raise_event(self.on_after_delete, args)
        return affected

    async def delete_async(self, entity: T) -> int:
        """Async :meth:`delete`."""
        self._require_identity(entity)
        adapter = self._adapter
        args = self._raise_event(self.on_before_delete, EntityEventArgs(entity, self))
        if args.cancel:
            return 0

        params = bind_parameters(entity)
        self.context.log_sql_command(self.delete_template, params)
        affected = await adapter.execute_async(self.delete_template, params)
        setattr(entity, IDENTITY_COLUMN, DEFAULT_ROW_ID)
        self._raise_event(self.on_after_delete, args)
        return affected

    def delete_where(self, where: str, params: Any = None) -> int:
        """Delete every row matching the *where* predicate. No events."""
        return self.context.delete_where(self, where, params)

    async def delete_where_async(self, where: str, params: Any = None) -> int:
        """Async :meth:`delete_where`."""
        return await self.context.delete_where_async(self, where, params)

    # -- Reads -------------------------------------------------------------

    def select(self, where: str, params: Any = None) -> Iterator[T]:
        """Entities matching the *where* predicate."""
        return self.context.select(self, where, params)

    async def select_async(self, where: str, params: Any = None) -> Iterator[T]:
        """Async :meth:`select`."""
        return await self.context.select_async(self, where, params)

    def select_all(self) -> Iterator[T]:
        return self.select(MATCH_ALL)

    async def select_all_async(self) -> Iterator[T]:
        return await self.select_async(MATCH_ALL)

    def single(self, row_id: int) -> T | None:
        """The entity whose ``RowId`` is *row_id*, or ``None``."""
        return next(self.select(f"[{IDENTITY_COLUMN}] = @{IDENTITY_COLUMN}", {IDENTITY_COLUMN: row_id}), None)

    async def single_async(self, row_id: int) -> T | None:
        """Async :meth:`single`."""
        rows = await self.select_async(f"[{IDENTITY_COLUMN}] = @{IDENTITY_COLUMN}", {IDENTITY_COLUMN: row_id})
        return next(rows, None)

    def first_or_none(self, field_name: str, value: Any) -> T | None:
        """First entity whose *field_name* column equals *value*, or ``None``."""
        return next(self.select(f"[{field_name}] = @FieldValue", {"FieldValue": value}), None)

    async def first_or_none_async(self, field_name: str, value: Any) -> T | None:
        """Async :meth:`first_or_none`."""
        rows = await self.select_async(f"[{field_name}] = @FieldValue", {"FieldValue": value})
        return next(rows, None)

    def count(self, where: str | None = None, params: Any = None) -> int:
        """Number of rows, optionally restricted by a *where* predicate."""
        sql = self._count_command(where)
        bound = bind_parameters(params)
        self.context.log_sql_command(sql, bound)
        return int(self._adapter.scalar(sql, bound))

    async def count_async(self, where: str | None = None, params: Any = None) -> int:
        """Async :meth:`count`."""
        sql = self._count_command(where)
        bound = bind_parameters(params)
        self.context.log_sql_command(sql, bound)
        return int(await self._adapter.scalar_async(sql, bound))

    def any(self, where: str | None = None, params: Any = None) -> bool:
        """Whether at least one row exists, optionally matching *where*."""
        sql = self._exists_command(where)
        bound = bind_parameters(params)
        self.context.log_sql_command(sql, bound)
        return bool(self._adapter.scalar(sql, bound))

    async def any_async(self, where: str | None = None, params: Any = None) -> bool:
        """Async :meth:`any`."""
        sql = self._exists_command(where)
        bound = bind_parameters(params)
        self.context.log_sql_command(sql, bound)
        return bool(await self._adapter.scalar_async(sql, bound))

    def __repr__(self) -> str:
        return f"EntitySet[{self._entity_type.__qualname__}](table={self.table_name!r}, name={self.name!r})"


__all__ = [
    "EntitySet",
    "MATCH_ALL",
]
