"""litelib core -- attribute-driven mapping of Python records to SQLite tables.

Manifesto:
    A record type declares its columns with plain annotations and a handful
    of markers. litelib turns that declaration into DDL and command templates
    once per process, and every entity set of every context reuses them.

    - **Annotations are the schema:** ``Annotated[str, Indexed, MaxLength(30)]``
    - **One definition per type:** Built on first use, cached process-wide
    - **One connection per context:** No pools, no ORM session, no unit of work
    - **Sync/async parity:** Every command has an ``*_async`` twin

Architecture::

    Layer 1 -- Errors, Logging, Settings
        errors.py          LiteLibError hierarchy with categories + context
        logging.py         structlog configuration + get_logger
        settings.py        LiteLibSettings (pydantic-settings, LITELIB_ prefix)

    Layer 2 -- Mapping
        annotations.py     Markers (NotMapped, Indexed, Unique, Required,
                           MaxLength) and the @table decorator
        model.py           LiteModel base + RowId identity column
        definition.py      TableDefinition + TypeDefinitionBuilder cache
        binding.py         Named-parameter binding + row materialization

    Layer 3 -- Storage
        adapters/          DatabaseAdapter ABC + SQLiteAdapter

    Layer 4 -- Data Access
        events.py          EntityEvent + EntityEventArgs lifecycle hooks
        entity_set.py      EntitySet[T] CRUD facade
        context.py         LiteContext + ContextRegistry

Tags:
    litelib, sqlite, mapping, entity-set, context

Doc-Types:
    package-overview, architecture-map, module-index
"""

from litelib.core.adapters import DatabaseAdapter, DatabaseConfig, DatabaseType, SQLiteAdapter
from litelib.core.annotations import (
    Indexed,
    MaxLength,
    NotMapped,
    Required,
    Unique,
    table,
    table_name_of,
)
from litelib.core.binding import bind_parameters, materialize
from litelib.core.context import ContextRegistry, LiteContext, default_registry
from litelib.core.definition import (
    Affinity,
    ColumnDefinition,
    TableDefinition,
    TypeDefinitionBuilder,
    build_definition,
    definition_builder,
)
from litelib.core.entity_set import EntitySet
from litelib.core.errors import (
    ContextClosedError,
    DatabaseConnectionError,
    DefinitionError,
    EmptyRangeError,
    EntitySetNotAttachedError,
    EntitySetNotFoundError,
    ErrorCategory,
    ErrorContext,
    LiteLibError,
    MissingRowIdError,
)
from litelib.core.events import EntityEvent, EntityEventArgs
from litelib.core.logging import configure_logging, get_logger
from litelib.core.model import DEFAULT_ROW_ID, IDENTITY_COLUMN, LiteEntity, LiteModel
from litelib.core.settings import LiteLibSettings, get_settings

__all__ = [
    # Adapters
    "DatabaseAdapter",
    "DatabaseConfig",
    "DatabaseType",
    "SQLiteAdapter",
    # Annotations
    "Indexed",
    "MaxLength",
    "NotMapped",
    "Required",
    "Unique",
    "table",
    "table_name_of",
    # Binding
    "bind_parameters",
    "materialize",
    # Context
    "ContextRegistry",
    "LiteContext",
    "default_registry",
    # Definitions
    "Affinity",
    "ColumnDefinition",
    "TableDefinition",
    "TypeDefinitionBuilder",
    "build_definition",
    "definition_builder",
    # Entity sets + events
    "EntitySet",
    "EntityEvent",
    "EntityEventArgs",
    # Errors
    "ContextClosedError",
    "DatabaseConnectionError",
    "DefinitionError",
    "EmptyRangeError",
    "EntitySetNotAttachedError",
    "EntitySetNotFoundError",
    "ErrorCategory",
    "ErrorContext",
    "LiteLibError",
    "MissingRowIdError",
    # Logging + settings
    "configure_logging",
    "get_logger",
    "LiteLibSettings",
    "get_settings",
    # Model
    "DEFAULT_ROW_ID",
    "IDENTITY_COLUMN",
    "LiteEntity",
    "LiteModel",
]
