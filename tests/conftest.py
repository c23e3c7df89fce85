"""Shared test fixtures: testcontainers for Redis.

Integration tests use a real Redis container managed by testcontainers-python.
The container is session-scoped (started once per test run); each test
function gets a connected ``RedisStateStore`` and the database is flushed
afterwards.

Requires Docker to be available. Tests needing the container should be
marked with ``@pytest.mark.integration``.
"""

from __future__ import annotations

import os
from collections.abc import AsyncIterator, Iterator

import pytest
import redis.asyncio as aioredis
from testcontainers.redis import RedisContainer

from contextcore.engine.settings import _get_settings_cached
from contextcore.engine.store.redis import RedisStateStore


def _set_env(key: str, value: str) -> None:
    """Set an env var and invalidate the settings cache."""
    os.environ[key] = value
    _get_settings_cached.cache_clear()


# ---------------------------------------------------------------------------
# Session-scoped: container (started once, shared across all tests)
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def redis_container() -> Iterator[RedisContainer]:
    """Start a Redis 7 container for the test session."""
    with RedisContainer(image="redis:7") as r:
        yield r


@pytest.fixture(scope="session")
def redis_url(redis_container: RedisContainer) -> str:
    """Redis connection URL."""
    host = redis_container.get_container_host_ip()
    port = redis_container.get_exposed_port(6379)
    url = f"redis://{host}:{port}/0"
    _set_env("CTX_REDIS_URL", url)
    return url


# ---------------------------------------------------------------------------
# Function-scoped: Redis client and store with flush
# ---------------------------------------------------------------------------


@pytest.fixture
async def redis_client(redis_url: str) -> AsyncIterator[aioredis.Redis]:
    """Async Redis client; database flushed after each test."""
    client = aioredis.from_url(redis_url, decode_responses=True)
    yield client
    await client.flushdb()
    await client.aclose()


@pytest.fixture
async def redis_store(redis_url: str, redis_client: aioredis.Redis) -> AsyncIterator[RedisStateStore]:
    """Connected ``RedisStateStore`` under a test prefix."""
    store = RedisStateStore(redis_url, prefix="test")
    await store.connect()
    yield store
    await store.close()
