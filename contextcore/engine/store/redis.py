"""Redis state store.

Backed by ``redis.asyncio``.  Keys are optionally namespaced with a prefix::

    {prefix}:{key}

When prefix is None, keys are used verbatim.

Atomicity:

- ``update`` is an optimistic transaction: ``WATCH`` the key, read it, run the
  mutator, then ``MULTI``/``SET``/``EXEC``.  A concurrent write to the key
  aborts the ``EXEC`` with ``WatchError`` and the whole read-modify-write is
  retried against the fresh value, so no writer ever works from a stale read.
- ``hash_set`` and ``push_capped`` run as single ``MULTI``/``EXEC`` pipelines.

Connection and timeout errors surface as ``StoreUnavailableError``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from loguru import logger
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, WatchError
from redis.exceptions import TimeoutError as RedisTimeoutError

from contextcore.engine.errors import NotInitializedError, StoreUnavailableError
from contextcore.engine.store.base import Mutator

_MAX_UPDATE_ATTEMPTS = 32


@asynccontextmanager
async def _translate_errors(operation: str) -> AsyncIterator[None]:
    """Map redis connectivity failures onto ``StoreUnavailableError``."""
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError) as e:
        logger.warning("Redis {} failed: {}", operation, e)
        msg = f"State store unavailable during {operation}: {e}"
        raise StoreUnavailableError(msg) from e


class RedisStateStore:
    """Redis implementation of the StateStore protocol."""

    def __init__(
        self,
        url: str,
        prefix: str | None = None,
        *,
        socket_timeout: float = 5,
        client: aioredis.Redis | None = None,
    ) -> None:
        self._url = url
        self._prefix = prefix
        self._socket_timeout = socket_timeout
        self._client: aioredis.Redis | None = None
        self._pending_client = client

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        client = self._pending_client or aioredis.from_url(
            self._url,
            decode_responses=True,
            socket_connect_timeout=self._socket_timeout,
            socket_timeout=self._socket_timeout,
            retry_on_timeout=True,
        )
        try:
            await client.ping()
        except RedisError as e:
            await client.aclose()
            msg = f"Failed to connect to Redis: {e}"
            raise StoreUnavailableError(msg) from e
        self._client = client
        logger.info("Redis: connected (prefix={})", self._prefix)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Redis: closed")

    # -- Internals -------------------------------------------------------------

    @property
    def client(self) -> aioredis.Redis:
        if self._client is None:
            msg = "State store is not connected; call connect() first"
            raise NotInitializedError(msg)
        return self._client

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}" if self._prefix else key

    # -- Plain values ----------------------------------------------------------

    async def get(self, key: str) -> str | None:
        client = self.client
        async with _translate_errors("get"):
            return await client.get(self._key(key))

    async def set(self, key: str, value: str, *, ttl: int | None = None) -> None:
        client = self.client
        async with _translate_errors("set"):
            await client.set(self._key(key), value, ex=ttl)

    async def update(self, key: str, mutate: Mutator, *, ttl: int | None = None) -> str:
        client = self.client
        full_key = self._key(key)
        async with _translate_errors("update"), client.pipeline(transaction=True) as pipe:
            for attempt in range(1, _MAX_UPDATE_ATTEMPTS + 1):
                try:
                    await pipe.watch(full_key)
                    current = await pipe.get(full_key)
                    new_value = mutate(current)
                    pipe.multi()
                    pipe.set(full_key, new_value, ex=ttl)
                    await pipe.execute()
                except WatchError:
                    logger.debug("Redis: write conflict on {} (attempt {})", full_key, attempt)
                    continue
                else:
                    return new_value
        msg = f"Gave up updating '{key}' after {_MAX_UPDATE_ATTEMPTS} conflicting writes"
        raise StoreUnavailableError(msg)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        client = self.client
        async with _translate_errors("delete"):
            return await client.delete(*(self._key(k) for k in keys))

    async def exists(self, key: str) -> bool:
        client = self.client
        async with _translate_errors("exists"):
            return bool(await client.exists(self._key(key)))

    async def expire(self, key: str, ttl: int) -> bool:
        client = self.client
        async with _translate_errors("expire"):
            return bool(await client.expire(self._key(key), ttl))

    # -- Hashes ----------------------------------------------------------------

    async def hash_get(self, key: str, field: str) -> str | None:
        client = self.client
        async with _translate_errors("hash_get"):
            return await client.hget(self._key(key), field)

    async def hash_set(self, key: str, field: str, value: str, *, ttl: int | None = None) -> None:
        client = self.client
        full_key = self._key(key)
        async with _translate_errors("hash_set"), client.pipeline(transaction=True) as pipe:
            pipe.hset(full_key, field, value)
            if ttl is not None:
                pipe.expire(full_key, ttl)
            await pipe.execute()

    # -- Lists -----------------------------------------------------------------

    async def push_capped(self, key: str, value: str, *, cap: int, ttl: int | None = None) -> None:
        client = self.client
        full_key = self._key(key)
        async with _translate_errors("push_capped"), client.pipeline(transaction=True) as pipe:
            pipe.lpush(full_key, value)
            pipe.ltrim(full_key, 0, cap - 1)
            if ttl is not None:
                pipe.expire(full_key, ttl)
            await pipe.execute()

    async def list_range(self, key: str, start: int, stop: int) -> list[str]:
        client = self.client
        async with _translate_errors("list_range"):
            return await client.lrange(self._key(key), start, stop)
