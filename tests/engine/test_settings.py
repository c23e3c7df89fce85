"""Tests for settings, logging setup and engine wiring."""

from __future__ import annotations

import logging

import pytest
from loguru import logger

from contextcore.engine.factory import create_engine, create_state_store
from contextcore.engine.log import setup_logging
from contextcore.engine.settings import ContextSettings, _get_settings_cached, get_settings
from contextcore.engine.store.memory import MemoryStateStore
from contextcore.engine.store.redis import RedisStateStore


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    _get_settings_cached.cache_clear()
    yield
    _get_settings_cached.cache_clear()


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CTX_REDIS_URL", raising=False)
    settings = ContextSettings(_env_file=None)
    assert settings.redis_url is None
    assert settings.session_ttl_seconds == 86400
    assert settings.preferences_ttl_seconds == 3600
    assert settings.context_cache_ttl_seconds == 300
    assert settings.max_interactions == 1000


def test_env_prefix(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CTX_SESSION_TTL_SECONDS", "60")
    monkeypatch.setenv("CTX_LOG_LEVEL", "debug")
    settings = get_settings()
    assert settings.session_ttl_seconds == 60
    assert settings.log_level == "debug"
    assert get_settings() is settings


def test_store_selection() -> None:
    assert isinstance(create_state_store(ContextSettings(redis_url=None)), MemoryStateStore)
    store = create_state_store(ContextSettings(redis_url="redis://localhost:6379/0"))
    assert isinstance(store, RedisStateStore)
    assert not store.is_connected


def test_create_engine_applies_settings() -> None:
    engine = create_engine(MemoryStateStore(), ContextSettings(redis_url=None, max_recent_items=3))
    assert engine.orchestrator is not None
    assert engine.sessions is not None
    assert engine.preferences._max_recent == 3


def test_setup_logging_intercepts_stdlib() -> None:
    messages: list[str] = []
    setup_logging("DEBUG")
    sink_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    try:
        logging.getLogger("contextcore.test").info("from stdlib")
    finally:
        logger.remove(sink_id)
    assert "from stdlib" in messages
