"""Settings for litelib contexts.

Everything a context needs to open its SQLite connection and decide how
chatty it should be is read from ``LITELIB_*`` environment variables (or a
``.env`` file) and validated once by pydantic.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked at startup, not runtime
    - **Environment-driven:** Reads from env vars and .env files
    - **Sensible defaults:** Works out of the box for development

Examples:
    >>> from litelib.core.settings import get_settings
    >>> settings = get_settings()
    >>> settings.sqlite_timeout
    5.0

Tags:
    settings, configuration, pydantic, environment, litelib
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LiteLibSettings(BaseSettings):
    """litelib configuration.

    Fields
    ──────
    log_level         : Structlog log level
    log_format        : ``json`` or ``console``
    log_sql_commands  : Emit a debug ``sql_command`` event for every command
    sqlite_timeout    : Seconds to wait on a locked database
    foreign_keys      : Issue ``PRAGMA foreign_keys = ON`` on connect
    journal_mode      : Optional ``PRAGMA journal_mode`` (e.g. ``WAL``)
    """

    model_config = SettingsConfigDict(
        env_prefix="LITELIB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_sql_commands: bool = Field(default=False)

    # ── SQLite ───────────────────────────────────────────────────
    sqlite_timeout: float = Field(default=5.0, gt=0)
    foreign_keys: bool = Field(default=True)
    journal_mode: str | None = Field(default=None)


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, LiteLibSettings] = {}


def get_settings(*, _force_reload: bool = False) -> LiteLibSettings:
    """Load, validate, and cache a :class:`LiteLibSettings` instance.

    Parameters
    ----------
    _force_reload:
        Bypass cache and re-read the environment.
    """
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]

    settings = LiteLibSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Drop the cached settings (used by tests that patch the environment)."""
    _settings_cache.clear()


__all__ = [
    "LiteLibSettings",
    "get_settings",
    "clear_settings_cache",
]
