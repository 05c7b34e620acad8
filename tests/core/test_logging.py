"""Tests for ``litelib.core.logging`` and the events the mapping layer logs."""

import logging

import pytest
import structlog
from structlog.testing import capture_logs

from litelib.core.definition import build_definition
from litelib.core.logging import (
    LOGGER_NAME,
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)
from litelib.core.settings import LiteLibSettings

from _support.models import Order, TestDbContext


@pytest.fixture
def reset_structlog():
    yield
    clear_context()
    structlog.reset_defaults()
    stdlib_logger = logging.getLogger(LOGGER_NAME)
    for handler in list(stdlib_logger.handlers):
        stdlib_logger.removeHandler(handler)
    stdlib_logger.setLevel(logging.NOTSET)


class TestConfigureLogging:
    def test_json_configuration(self, reset_structlog):
        configure_logging(level="DEBUG", json_format=True)
        assert structlog.is_configured()

    def test_console_configuration(self, reset_structlog):
        configure_logging(level="WARNING", json_format=False, service="shop")
        assert structlog.is_configured()

    def test_defaults_come_from_settings(self, reset_structlog):
        configure_logging(settings=LiteLibSettings(log_level="DEBUG", log_format="console"))
        stdlib_logger = logging.getLogger(LOGGER_NAME)
        assert stdlib_logger.level == logging.DEBUG
        assert len(stdlib_logger.handlers) == 1

    def test_handler_added_once(self, reset_structlog):
        configure_logging(level="INFO", json_format=True)
        configure_logging(level="INFO", json_format=True)
        assert len(logging.getLogger(LOGGER_NAME).handlers) == 1

    def test_unknown_level(self, reset_structlog):
        with pytest.raises(ValueError, match="Unknown log level"):
            configure_logging(level="LOUD", json_format=True)


class TestContextBinding:
    def test_bind_context(self, reset_structlog):
        bind_context(database="orders.db")
        assert structlog.contextvars.get_contextvars()["database"] == "orders.db"
        with capture_logs() as logs:
            get_logger("test").info("hello")
        assert logs[0]["event"] == "hello"

    def test_log_context_unbinds(self, reset_structlog):
        with LogContext(request="r-1"):
            assert structlog.contextvars.get_contextvars()["request"] == "r-1"
        assert "request" not in structlog.contextvars.get_contextvars()

    def test_log_context_restores_previous_value(self, reset_structlog):
        bind_context(request="outer")
        with LogContext(request="inner"):
            assert structlog.contextvars.get_contextvars()["request"] == "inner"
        assert structlog.contextvars.get_contextvars()["request"] == "outer"

    @pytest.mark.asyncio
    async def test_async_log_context(self, reset_structlog):
        async with LogContext(request="r-2"):
            assert structlog.contextvars.get_contextvars()["request"] == "r-2"
        assert "request" not in structlog.contextvars.get_contextvars()


class TestMappingEvents:
    def test_definition_built(self):
        with capture_logs() as logs:
            build_definition(Order)
            build_definition(Order)
        built = [log for log in logs if log["event"] == "definition_built"]
        assert len(built) == 1
        assert built[0]["table"] == "Order"

    def test_context_lifecycle_events(self, db_path, registry):
        with capture_logs() as logs:
            with TestDbContext(db_path, settings=LiteLibSettings(), registry=registry):
                pass
        events = [log["event"] for log in logs]
        assert "entity_sets_loaded" in events
        assert "schema_created" in events
        assert "context_closed" in events

    def test_sql_commands_logged_when_enabled(self, db):
        with capture_logs() as logs:
            db.orders.insert(Order(customer_name="John"))
        commands = [log for log in logs if log["event"] == "sql_command"]
        assert commands[0]["sql"] == db.orders.insert_template
        assert commands[0]["params"]["customer_name"] == "John"

    def test_sql_commands_silent_by_default(self, db_path, registry):
        with TestDbContext(db_path, settings=LiteLibSettings(), registry=registry) as context:
            with capture_logs() as logs:
                context.orders.count()
        assert [log for log in logs if log["event"] == "sql_command"] == []

    def test_vacuum_events(self, db):
        with capture_logs() as logs:
            db.vacuum()
        events = [log["event"] for log in logs]
        assert events[-2:] == ["vacuum_started", "vacuum_finished"]
