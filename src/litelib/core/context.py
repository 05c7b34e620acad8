"""
Database context: entity-set discovery, schema creation and lifetime.

A context subclass declares its entity sets as annotated attributes. At
construction the context finds them, opens one SQLite connection, creates
every table and index in a single transaction and registers itself in a
:class:`ContextRegistry` until it is closed.

Manifesto:
    - **Declaration is configuration:** ``orders: EntitySet[Order]`` is all a
      context needs to map and create the ``Order`` table
    - **One connection per context:** Every entity set of a context shares
      the adapter the context opened
    - **Idempotent schema:** ``CREATE ... IF NOT EXISTS`` runs at every
      construction, so opening an existing file is a no-op
    - **Explicit lifetime:** Contexts are closed by ``close()`` or a ``with``
      block, never by the garbage collector

Architecture:
    ::

        ShopContext("shop.db")
            │
            ├── discover  EntitySet[T] annotations (declaration order)
            │       └── build TableDefinition (process-wide cache)
            ├── connect   SQLiteAdapter(autocommit, Row factory)
            ├── create_schema
            │       BEGIN ─► every set's DDL ─► COMMIT   (ROLLBACK + raise)
            │       └── database_created(context)
            └── registry.register(context)

Examples:
    >>> class ShopContext(LiteContext):
    ...     orders: EntitySet[Order]
    ...     warehouses: EntitySet[Warehouse]
    >>> with ShopContext(":memory:") as ctx:
    ...     ctx.set_names()
    ['orders', 'warehouses']

Tags:
    context, schema, lifecycle, registry, litelib
"""

from __future__ import annotations

import asyncio
import functools
import os
import threading
import uuid
from collections.abc import Callable, Iterator, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any, TypeVar, get_args, get_origin, get_type_hints

from litelib.core.adapters import SQLiteAdapter
from litelib.core.binding import bind_parameters, materialize
from litelib.core.definition import TableDefinition
from litelib.core.entity_set import EntitySet
from litelib.core.errors import ContextClosedError, EntitySetNotFoundError, ErrorContext, MissingRowIdError
from litelib.core.logging import get_logger
from litelib.core.model import DEFAULT_ROW_ID, IDENTITY_COLUMN, has_identity
from litelib.core.settings import LiteLibSettings, get_settings

logger = get_logger(__name__)

T = TypeVar("T")

DatabaseCreatedHandler = Callable[["LiteContext"], None]


# =============================================================================
# Registry
# =============================================================================


class ContextRegistry:
    """
    Open contexts, keyed by their ``unique_id``.

    Thread-safe. A context registers itself when construction succeeds and
    unregisters when it is closed.
    """

    def __init__(self) -> None:
        self._instances: dict[uuid.UUID, LiteContext] = {}
        self._lock = threading.Lock()

    def register(self, context: LiteContext) -> None:
        with self._lock:
            self._instances[context.unique_id] = context

    def unregister(self, context: LiteContext) -> bool:
        """Remove *context*; returns False if it was not registered."""
        with self._lock:
            return self._instances.pop(context.unique_id, None) is not None

    def get(self, unique_id: uuid.UUID) -> LiteContext | None:
        with self._lock:
            return self._instances.get(unique_id)

    def instances(self) -> tuple[LiteContext, ...]:
        with self._lock:
            return tuple(self._instances.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._instances)

    def __contains__(self, context: object) -> bool:
        with self._lock:
            return any(instance is context for instance in self._instances.values())


default_registry = ContextRegistry()


# =============================================================================
# Entity-set discovery
# =============================================================================


@functools.lru_cache(maxsize=None)
def declared_entity_sets(context_type: type) -> tuple[tuple[str, type], ...]:
    """``(attribute name, entity type)`` for every ``EntitySet[T]`` annotation.

    Base classes come first, then each class's annotations in declaration
    order.
    """
    declared: list[tuple[str, type]] = []
    for name, hint in get_type_hints(context_type).items():
        if name.startswith("_") or get_origin(hint) is not EntitySet:
            continue
        args = get_args(hint)
        if args:
            declared.append((name, args[0]))
    return tuple(declared)


def _resolve_path(database_path: str | os.PathLike[str]) -> str:
    path = os.fspath(database_path)
    if path == ":memory:" or path.startswith("file:"):
        return path
    return str(Path(path).expanduser().resolve())


# =============================================================================
# Context
# =============================================================================


class LiteContext:
    """
    Base class for database contexts.

    Subclasses declare ``name: EntitySet[EntityType]`` attributes. Every
    context gets its own set instances. A class-level :class:`EntitySet`
    value acts as a template: its event handlers are copied into each
    context's set, and the template itself is never attached.

    Args:
        database_path: SQLite file path, ``:memory:`` or a ``file:`` URI.
        settings: Connection and logging settings; defaults to
            :func:`~litelib.core.settings.get_settings`.
        registry: Registry this context joins; defaults to
            :data:`default_registry`.
        on_database_created: Handler appended to :attr:`database_created`
            before the schema is first created.
    """

    def __init__(
        self,
        database_path: str | os.PathLike[str] = ":memory:",
        *,
        settings: LiteLibSettings | None = None,
        registry: ContextRegistry | None = None,
        on_database_created: DatabaseCreatedHandler | None = None,
    ) -> None:
        self.settings = settings if settings is not None else get_settings()
        self.unique_id = uuid.uuid4()
        self.database_path = _resolve_path(database_path)
        self.database_created: list[DatabaseCreatedHandler] = []
        if on_database_created is not None:
            self.database_created.append(on_database_created)

        self._registry = registry if registry is not None else default_registry
        self._entity_sets: dict[str, EntitySet[Any]] = {}
        self._closed = False

        self._load_entity_sets()

        self.adapter = SQLiteAdapter(
            self.database_path,
            timeout=self.settings.sqlite_timeout,
            foreign_keys=self.settings.foreign_keys,
            journal_mode=self.settings.journal_mode,
        )
        self.adapter.connect()
        try:
            self.create_schema()
        except Exception:
            self.adapter.disconnect()
            raise

        self._registry.register(self)

    # -- Setup -------------------------------------------------------------

    def _load_entity_sets(self) -> None:
        for name, entity_type in declared_entity_sets(type(self)):
            entity_set = EntitySet(entity_type)
            template = getattr(type(self), name, None)
            if isinstance(template, EntitySet):
                entity_set.copy_handlers(template)
            entity_set.attach(self, name)
            setattr(self, name, entity_set)
            self._entity_sets[name] = entity_set

        logger.debug(
            "entity_sets_loaded",
            context=type(self).__qualname__,
            entity_sets=list(self._entity_sets),
        )

    def create_schema(self) -> None:
        """Create every table and index in one transaction, then fire ``database_created``."""
        ddl = "".join(entity_set.table_definition for entity_set in self._entity_sets.values())
        adapter = self.open_adapter
        with adapter.transaction():
            adapter.execute_script(ddl)

        logger.info(
            "schema_created",
            context=type(self).__qualname__,
            database=self.database_path,
            tables=[entity_set.table_name for entity_set in self._entity_sets.values()],
        )
        for handler in list(self.database_created):
            handler(self)

    # -- Entity sets -------------------------------------------------------

    @property
    def entity_sets(self) -> Mapping[str, EntitySet[Any]]:
        return MappingProxyType(self._entity_sets)

    def set_names(self) -> list[str]:
        """Names of the declared entity sets, in declaration order."""
        return list(self._entity_sets)

    def set(self, entity_type: type[T]) -> EntitySet[T]:
        """The entity set holding *entity_type*.

        Raises:
            EntitySetNotFoundError: No declared set holds *entity_type*.
        """
        for entity_set in self._entity_sets.values():
            if entity_set.entity_type is entity_type:
                return entity_set
        raise EntitySetNotFoundError(entity_type).with_context(
            metadata={"context": type(self).__qualname__, "entity_sets": self.set_names()}
        )

    def _definition_of(self, entity_type: type) -> TableDefinition | None:
        for entity_set in self._entity_sets.values():
            if entity_set.entity_type is entity_type:
                return entity_set.definition
        return None

    @property
    def open_adapter(self) -> SQLiteAdapter:
        """The adapter, provided the context has not been closed.

        Raises:
            ContextClosedError: :meth:`close` already ran. The adapter is
                never reconnected behind a closed context.
        """
        if self._closed:
            raise ContextClosedError(
                f"{type(self).__qualname__} is closed",
                context=ErrorContext(metadata={"database": self.database_path, "context": str(self.unique_id)}),
            )
        return self.adapter

    @property
    def connection(self):
        """The underlying ``sqlite3.Connection``."""
        return self.open_adapter.get_connection()

    # -- Generic commands (no lifecycle events) ----------------------------

    def _require_identity(self, entity: Any, entity_set: EntitySet[Any]) -> None:
        if not has_identity(entity):
            raise MissingRowIdError(
                f"{IDENTITY_COLUMN} must be set to delete an entity",
                context=ErrorContext(
                    table=entity_set.table_name,
                    entity_type=type(entity).__qualname__,
                    entity_set=entity_set.name,
                ),
            )

    def insert(self, entity: Any) -> int:
        """Insert *entity* through its set's template, without events."""
        entity_set = self.set(type(entity))
        params = bind_parameters(entity)
        self.log_sql_command(entity_set.insert_template, params)
        row_id = self.open_adapter.scalar(entity_set.insert_template, params)
        if row_id is None:
            return 0
        setattr(entity, IDENTITY_COLUMN, row_id)
        return 1

    async def insert_async(self, entity: Any) -> int:
        entity_set = self.set(type(entity))
        params = bind_parameters(entity)
        self.log_sql_command(entity_set.insert_template, params)
        row_id = await self.open_adapter.scalar_async(entity_set.insert_template, params)
        if row_id is None:
            return 0
        setattr(entity, IDENTITY_COLUMN, row_id)
        return 1

    def update(self, entity: Any) -> int:
        """Update *entity* through its set's template, without events."""
        entity_set = self.set(type(entity))
        params = bind_parameters(entity)
        self.log_sql_command(entity_set.update_template, params)
        return self.open_adapter.execute(entity_set.update_template, params)

    async def update_async(self, entity: Any) -> int:
        entity_set = self.set(type(entity))
        params = bind_parameters(entity)
        self.log_sql_command(entity_set.update_template, params)
        return await self.open_adapter.execute_async(entity_set.update_template, params)

    def delete(self, entity: Any) -> int:
        """Delete *entity* through its set's template, without events."""
        entity_set = self.set(type(entity))
        self._require_identity(entity, entity_set)
        params = bind_parameters(entity)
        self.log_sql_command(entity_set.delete_template, params)
        affected = self.open_adapter.execute(entity_set.delete_template, params)
        setattr(entity, IDENTITY_COLUMN, DEFAULT_ROW_ID)
        return affected

    async def delete_async(self, entity: Any) -> int:
        entity_set = self.set(type(entity))
        self._require_identity(entity, entity_set)
        params = bind_parameters(entity)
        self.log_sql_command(entity_set.delete_template, params)
        affected = await self.open_adapter.execute_async(entity_set.delete_template, params)
        setattr(entity, IDENTITY_COLUMN, DEFAULT_ROW_ID)
        return affected

    def delete_where(self, entity_set: EntitySet[Any], where: str, params: Any = None) -> int:
        """Delete the rows of *entity_set* matching *where*."""
        sql = entity_set.definition.delete_where(where)
        bound = bind_parameters(params)
        self.log_sql_command(sql, bound)
        return self.open_adapter.execute(sql, bound)

    async def delete_where_async(self, entity_set: EntitySet[Any], where: str, params: Any = None) -> int:
        sql = entity_set.definition.delete_where(where)
        bound = bind_parameters(params)
        self.log_sql_command(sql, bound)
        return await self.open_adapter.execute_async(sql, bound)

    # -- Reads -------------------------------------------------------------

    def select(self, entity_set: EntitySet[T], where: str, params: Any = None) -> Iterator[T]:
        """Rows of *entity_set* matching *where*, materialized lazily.

        The statement runs before this returns; entities are built as the
        iterator is consumed.
        """
        sql = entity_set.definition.select_where(where)
        bound = bind_parameters(params)
        self.log_sql_command(sql, bound)
        rows = self.open_adapter.query(sql, bound)
        return materialize(rows, entity_set.entity_type, entity_set.definition)

    async def select_async(self, entity_set: EntitySet[T], where: str, params: Any = None) -> Iterator[T]:
        sql = entity_set.definition.select_where(where)
        bound = bind_parameters(params)
        self.log_sql_command(sql, bound)
        rows = await self.open_adapter.query_async(sql, bound)
        return materialize(rows, entity_set.entity_type, entity_set.definition)

    def query(self, entity_type: type[T], sql: str, params: Any = None) -> Iterator[T]:
        """Run raw *sql* and materialize the rows as *entity_type*.

        Result columns are matched to attributes by name; *entity_type* does
        not need a declared set.
        """
        bound = bind_parameters(params)
        self.log_sql_command(sql, bound)
        rows = self.open_adapter.query(sql, bound)
        return materialize(rows, entity_type, self._definition_of(entity_type))

    async def query_async(self, entity_type: type[T], sql: str, params: Any = None) -> Iterator[T]:
        bound = bind_parameters(params)
        self.log_sql_command(sql, bound)
        rows = await self.open_adapter.query_async(sql, bound)
        return materialize(rows, entity_type, self._definition_of(entity_type))

    # -- Maintenance -------------------------------------------------------

    def vacuum(self) -> None:
        """Rebuild the database file, reclaiming free pages."""
        adapter = self.open_adapter
        logger.info("vacuum_started", database=self.database_path)
        adapter.execute("VACUUM")
        logger.info("vacuum_finished", database=self.database_path)

    async def vacuum_async(self) -> None:
        await asyncio.to_thread(self.vacuum)

    def log_sql_command(self, sql: str, params: Any = None) -> None:
        """Log *sql* at debug level when ``log_sql_commands`` is enabled."""
        if self.settings.log_sql_commands:
            logger.debug("sql_command", sql=sql, params=params, context=str(self.unique_id))

    # -- Lifetime ----------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Close the connection and leave the registry. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        self._registry.unregister(self)
        self.adapter.disconnect()
        logger.debug("context_closed", context=str(self.unique_id), open_contexts=len(self._registry))

    def __enter__(self) -> LiteContext:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__qualname__}(database_path={self.database_path!r}, entity_sets={self.set_names()!r})"


__all__ = [
    "ContextRegistry",
    "DatabaseCreatedHandler",
    "LiteContext",
    "declared_entity_sets",
    "default_registry",
]
