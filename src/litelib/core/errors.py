"""
Structured error types for litelib.

Provides a small hierarchy of typed errors for the mapping layer. Every error
raised by litelib itself extends :class:`LiteLibError` and carries a category
and structured context (table, entity type, SQL) for logging.

Errors raised by SQLite while executing a command are *not* part of this
hierarchy. Constraint violations, malformed predicates and any other
execution fault surface as the native :mod:`sqlite3` exception types and are
never caught or translated by the CRUD pipeline.

Manifesto:
    - **Typed Error Hierarchy:** Definition, precondition and argument
      errors are distinct types
    - **Native store errors:** ``sqlite3.Error`` propagates untouched
    - **Rich Context:** Errors carry table / entity metadata for logging
    - **Error Chaining:** Preserve original exceptions while adding context

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       LiteLibError                               │
        │  (category, context, cause)                                      │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  DefinitionError        EntitySetNotFoundError (LookupError)     │
        │  (CONFIG)               EntitySetNotAttachedError                │
        │                         MissingRowIdError (ValueError)           │
        │                         ContextClosedError                       │
        │                         (PRECONDITION)                           │
        │                                                                  │
        │  EmptyRangeError        DatabaseConnectionError                  │
        │  (ARGUMENT, ValueError) (DATABASE)                               │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = DefinitionError("Invalid entity set").with_context(table="Order")
    >>> error.context.table
    'Order'
    >>> error.to_dict()["category"]
    'CONFIG'

Guardrails:
    ❌ DON'T: Wrap ``sqlite3.IntegrityError`` in a LiteLibError
    ✅ DO: Let store errors reach the caller as-is

    ❌ DON'T: Swallow the original exception
    ✅ DO: Pass it as cause= for error chaining

Tags:
    error-handling, exception-hierarchy, error-context, litelib
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Error categories for classification.

    Attributes:
        CONFIG: A mapped type cannot be turned into a table definition
        PRECONDITION: Caller misuse detected before any SQL runs
        ARGUMENT: Invalid argument to a bulk operation
        DATABASE: Connection-level failures
        INTERNAL: Bugs, unexpected state
    """

    CONFIG = "CONFIG"
    PRECONDITION = "PRECONDITION"
    ARGUMENT = "ARGUMENT"
    DATABASE = "DATABASE"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Attributes:
        table: Table name of the mapped type involved
        entity_type: Qualified name of the entity class
        entity_set: Name the entity set was declared under
        sql: Command text being prepared when the error was raised
        metadata: Additional key-value pairs
    """

    table: str | None = None
    entity_type: str | None = None
    entity_set: str | None = None
    sql: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["table", "entity_type", "entity_set", "sql"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class LiteLibError(Exception):
    """
    Base exception for all litelib errors.

    Subclasses set ``default_category`` to classify themselves. Subclasses
    that also inherit a builtin (``LookupError``, ``ValueError``) can be
    caught either way.

    Examples:
        >>> error = LiteLibError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>

        >>> try:
        ...     raise OSError("disk full")
        ... except OSError as e:
        ...     error = LiteLibError("Open failed", cause=e)
        >>> error.cause
        OSError('disk full')
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> LiteLibError:
        """
        Add context to this error (fluent API).

        Usage:
            raise DefinitionError("No columns").with_context(table="Order")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }

        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict

        if self.cause is not None:
            result["cause"] = str(self.cause)

        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# DEFINITION ERRORS
# =============================================================================


class DefinitionError(LiteLibError):
    """
    A record type cannot be mapped to a table.

    Raised while building a table definition, e.g. for a type without a
    single mappable column. This is a misconfiguration of the model and is
    never recoverable at runtime.
    """

    default_category = ErrorCategory.CONFIG


# =============================================================================
# PRECONDITION ERRORS
# =============================================================================


class EntitySetNotFoundError(LiteLibError, LookupError):
    """No entity set is registered for the requested entity type."""

    default_category = ErrorCategory.PRECONDITION

    def __init__(self, entity_type: type, message: str | None = None):
        self.entity_type = entity_type
        super().__init__(
            message or f"No entity set registered for type: {entity_type.__qualname__}",
            context=ErrorContext(entity_type=entity_type.__qualname__),
        )


class EntitySetNotAttachedError(LiteLibError):
    """An entity set was used before being attached to a context."""

    default_category = ErrorCategory.PRECONDITION


class MissingRowIdError(LiteLibError, ValueError):
    """The entity has no identity value (``RowId`` is unset)."""

    default_category = ErrorCategory.PRECONDITION


class ContextClosedError(LiteLibError):
    """A command was issued through a context after it was closed."""

    default_category = ErrorCategory.PRECONDITION


# =============================================================================
# ARGUMENT ERRORS
# =============================================================================


class EmptyRangeError(LiteLibError, ValueError):
    """A bulk operation received an empty or missing sequence."""

    default_category = ErrorCategory.ARGUMENT


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class DatabaseConnectionError(LiteLibError):
    """The SQLite database could not be opened."""

    default_category = ErrorCategory.DATABASE


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "LiteLibError",
    "DefinitionError",
    "EntitySetNotFoundError",
    "EntitySetNotAttachedError",
    "MissingRowIdError",
    "ContextClosedError",
    "EmptyRangeError",
    "DatabaseConnectionError",
]
