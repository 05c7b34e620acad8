"""Tests for ``litelib.core.settings``."""

import pytest
from pydantic import ValidationError

from litelib.core.settings import LiteLibSettings, clear_settings_cache, get_settings


class TestLiteLibSettings:
    def test_defaults(self):
        settings = LiteLibSettings()
        assert settings.log_level == "INFO"
        assert settings.log_format == "json"
        assert settings.log_sql_commands is False
        assert settings.sqlite_timeout == 5.0
        assert settings.foreign_keys is True
        assert settings.journal_mode is None

    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("LITELIB_LOG_SQL_COMMANDS", "true")
        monkeypatch.setenv("LITELIB_JOURNAL_MODE", "WAL")
        settings = LiteLibSettings()
        assert settings.log_sql_commands is True
        assert settings.journal_mode == "WAL"

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            LiteLibSettings(sqlite_timeout=0)

    def test_unknown_environment_ignored(self, monkeypatch):
        monkeypatch.setenv("LITELIB_SOMETHING_ELSE", "1")
        assert not hasattr(LiteLibSettings(), "something_else")


class TestGetSettings:
    def test_cached(self):
        assert get_settings() is get_settings()

    def test_force_reload(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("LITELIB_SQLITE_TIMEOUT", "9")
        reloaded = get_settings(_force_reload=True)
        assert reloaded is not first
        assert reloaded.sqlite_timeout == 9.0

    def test_clear_cache(self):
        first = get_settings()
        clear_settings_cache()
        assert get_settings() is not first


class TestContextUsesSettings:
    def test_journal_mode_applied(self, db_path, registry):
        from _support.models import TestDbContext

        settings = LiteLibSettings(journal_mode="WAL")
        with TestDbContext(db_path, settings=settings, registry=registry) as context:
            assert context.adapter.scalar("PRAGMA journal_mode").lower() == "wal"

    def test_timeout_passed_to_adapter(self, db_path, registry):
        from _support.models import TestDbContext

        settings = LiteLibSettings(sqlite_timeout=2.5)
        with TestDbContext(db_path, settings=settings, registry=registry) as context:
            assert context.adapter.config.timeout == 2.5
