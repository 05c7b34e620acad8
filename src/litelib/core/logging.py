"""
litelib logging - structlog wiring for the mapping layer.

Every litelib module logs through ``get_logger(__name__)``. Nothing is
configured on import: an application that already configures structlog keeps
its own pipeline, and ``configure_logging()`` is there for applications that
don't.

Architecture:
    ::

        configure_logging(settings=LiteLibSettings())
            level       ← settings.log_level   (or explicit ``level``)
            renderer    ← settings.log_format  (or explicit ``json_format``)

            ↓

        structlog processor chain:
          1. TimeStamper (iso)        optional
          2. merge_contextvars        (bind_context / LogContext values)
          3. add_log_level
          4. add_logger_name
          5. service metadata
          6. JSONRenderer  or  ConsoleRenderer

            ↓

        stdlib logger "litelib" → StreamHandler(stdout)

Events emitted by the library:
    ==================== ============ ==========================================
    event                level        fields
    ==================== ============ ==========================================
    definition_built     debug        table, entity_type, columns
    entity_sets_loaded   debug        context, entity_sets
    schema_created       info         context, database, tables
    sql_command          debug        sql, params, context
    vacuum_started       info         database
    vacuum_finished      info         database
    context_closed       debug        context, open_contexts
    ==================== ============ ==========================================

Examples:
    >>> from litelib.core.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> get_logger(__name__).debug("sql_command", sql="SELECT 1")

Tags:
    logging, structlog, observability, litelib
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from litelib.core.settings import LiteLibSettings, get_settings

LOGGER_NAME = "litelib"

_service = LOGGER_NAME


def _add_service(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", _service)
    return event_dict


def _processors(json_format: bool, add_timestamp: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _add_service,
    ]
    if add_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return processors


def configure_logging(
    level: str | None = None,
    json_format: bool | None = None,
    service: str = LOGGER_NAME,
    add_timestamp: bool = True,
    *,
    settings: LiteLibSettings | None = None,
) -> None:
    """Configure structlog and the ``litelib`` stdlib logger.

    Args:
        level: Log level name; defaults to ``settings.log_level``
        json_format: JSON (True) or console (False) rendering; defaults to
            ``settings.log_format == "json"``
        service: Value of the ``service`` field on every event
        add_timestamp: Prefix events with an ISO timestamp
        settings: Source of the defaults; :func:`get_settings` when omitted
    """
    global _service

    if level is None or json_format is None:
        if settings is None:
            settings = get_settings()
        if level is None:
            level = settings.log_level
        if json_format is None:
            json_format = settings.log_format.lower() == "json"

    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level!r}")

    _service = service

    structlog.configure(
        processors=_processors(json_format, add_timestamp),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    stdlib_logger = logging.getLogger(LOGGER_NAME)
    stdlib_logger.setLevel(numeric_level)
    if not stdlib_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(message)s"))
        stdlib_logger.addHandler(handler)


def get_logger(name: str | None = None) -> Any:
    """Structured logger for *name* (usually ``__name__``)."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Add *kwargs* to every event logged from the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Scoped context binding, usable with ``with`` and ``async with``.

    Values bound before entering are restored on exit.

    Example:
        with LogContext(context_id=str(ctx.unique_id)):
            ctx.orders.insert(order)
    """

    def __init__(self, **kwargs: Any):
        self._values = kwargs
        self._scope = None

    def __enter__(self) -> LogContext:
        self._scope = structlog.contextvars.bound_contextvars(**self._values)
        self._scope.__enter__()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._scope.__exit__(*exc_info)
        self._scope = None

    async def __aenter__(self) -> LogContext:
        return self.__enter__()

    async def __aexit__(self, *exc_info: Any) -> None:
        self.__exit__(*exc_info)


__all__ = [
    "LOGGER_NAME",
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
