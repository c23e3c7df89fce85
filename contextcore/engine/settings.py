"""Service configuration loaded from CTX_* environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class ContextSettings(BaseSettings):
    """Context engine settings.

    All fields are read from environment variables with the ``CTX_`` prefix.
    For example, ``CTX_LOG_LEVEL=DEBUG`` maps to ``log_level``.
    """

    model_config = SettingsConfigDict(
        env_prefix="CTX_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"
    log_json: bool = False
    """Emit one JSON object per log line instead of the coloured text format."""

    # -- State store -----------------------------------------------------------
    redis_url: str | None = None
    """Redis connection string.  When unset, an in-process store is used
    (single worker only -- state is not shared across processes)."""

    key_prefix: str | None = "ctx"
    """Namespace prepended to every Redis key (``{key_prefix}:session:...``)."""

    redis_socket_timeout: float = 5.0

    # -- Lifetimes (seconds) ---------------------------------------------------
    session_ttl_seconds: int = 24 * 60 * 60
    preferences_ttl_seconds: int = 60 * 60
    context_cache_ttl_seconds: int = 5 * 60
    interaction_ttl_seconds: int = 30 * 24 * 60 * 60

    # -- Bounds ----------------------------------------------------------------
    max_interactions: int = 1000
    """Interaction events retained per user/organization."""

    max_recent_items: int = 10

    # -- Server ----------------------------------------------------------------
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8000


def get_settings() -> ContextSettings:
    """Return a cached settings instance.

    Reads from environment variables and ``.env`` on first call, then returns
    the same object.  Call ``_get_settings_cached.cache_clear()`` in tests to
    force a re-read after overriding env vars.
    """
    return _get_settings_cached()


def _get_settings_cached() -> ContextSettings:
    """Inner function wrapped by lru_cache (allows type-safe cache_clear)."""
    return ContextSettings()


# Apply lru_cache at runtime so the function is only called once.
from functools import lru_cache  # noqa: E402

_get_settings_cached = lru_cache(maxsize=1)(_get_settings_cached)
