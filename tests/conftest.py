"""
Shared pytest fixtures and configuration for litelib tests.

This module provides:
- Definition-cache and settings cleanup for test isolation
- Per-test context registries
- Temporary database files
- The twelve-order sample data source

Usage:
    Fixtures are auto-discovered by pytest. Request them as test function
    arguments:

    def test_count(db, orders_source):
        db.orders.insert_range(orders_source)
        assert db.orders.count() == 12
"""

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

# Ensure litelib package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from litelib.core.context import ContextRegistry
from litelib.core.definition import definition_builder
from litelib.core.settings import LiteLibSettings, clear_settings_cache

from _support.models import MeasurementContext, Order, TestDbContext, make_orders


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests that need a database file as integration tests."""
    for item in items:
        fixtures = getattr(item, "fixturenames", ())
        if "db" in fixtures or "db_path" in fixtures:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_definitions() -> Iterator[None]:
    """Start every test with an empty definition cache."""
    definition_builder.clear()
    yield
    definition_builder.clear()


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep LITELIB_* variables from the host out of the tests."""
    for name in ("LITELIB_LOG_SQL_COMMANDS", "LITELIB_SQLITE_TIMEOUT", "LITELIB_JOURNAL_MODE"):
        monkeypatch.delenv(name, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def settings() -> LiteLibSettings:
    return LiteLibSettings(log_sql_commands=True)


@pytest.fixture
def registry() -> ContextRegistry:
    return ContextRegistry()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "litelib_test.db"


@pytest.fixture
def db(db_path: Path, settings: LiteLibSettings, registry: ContextRegistry) -> Iterator[TestDbContext]:
    """A fresh file-backed TestDbContext, closed after the test."""
    context = TestDbContext(db_path, settings=settings, registry=registry)
    yield context
    context.close()


@pytest.fixture
def measurements_db(
    db_path: Path, settings: LiteLibSettings, registry: ContextRegistry
) -> Iterator[MeasurementContext]:
    """A MeasurementContext with one column of every storable type."""
    context = MeasurementContext(db_path, settings=settings, registry=registry)
    yield context
    context.close()


@pytest.fixture
def orders_source() -> list[Order]:
    return make_orders()
