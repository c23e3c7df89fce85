"""In-process state store.

Implements the ``StateStore`` protocol with plain dicts so that the engine can
run (and be tested) without a Redis server.  State is confined to one
process, so this backend is only suitable for single-worker deployments and
tests.

TTLs are enforced lazily: an expired key is dropped the next time it is
touched.  The clock is injectable so tests can advance time.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from contextcore.engine.errors import NotInitializedError
from contextcore.engine.store.base import Mutator


@dataclass
class _Entry:
    value: Any
    expires_at: float | None = None


class MemoryStateStore:
    """Dict-backed implementation of the StateStore protocol."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, _Entry] = {}
        self._lock = asyncio.Lock()
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self._connected = True

    async def close(self) -> None:
        self._connected = False

    # -- Internals -------------------------------------------------------------

    def _check(self) -> None:
        if not self._connected:
            msg = "State store is not connected; call connect() first"
            raise NotInitializedError(msg)

    def _deadline(self, ttl: int | None) -> float | None:
        return None if ttl is None else self._clock() + ttl

    def _entry(self, key: str) -> _Entry | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            del self._data[key]
            return None
        return entry

    def _typed(self, key: str, kind: type) -> _Entry | None:
        entry = self._entry(key)
        if entry is not None and not isinstance(entry.value, kind):
            msg = f"Key '{key}' holds a {type(entry.value).__name__}, expected {kind.__name__}"
            raise TypeError(msg)
        return entry

    # -- Plain values ----------------------------------------------------------

    async def get(self, key: str) -> str | None:
        self._check()
        entry = self._typed(key, str)
        return None if entry is None else entry.value

    async def set(self, key: str, value: str, *, ttl: int | None = None) -> None:
        self._check()
        self._data[key] = _Entry(value, self._deadline(ttl))

    async def update(self, key: str, mutate: Mutator, *, ttl: int | None = None) -> str:
        self._check()
        async with self._lock:
            entry = self._typed(key, str)
            new_value = mutate(None if entry is None else entry.value)
            self._data[key] = _Entry(new_value, self._deadline(ttl))
            return new_value

    async def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for key in keys:
            if self._entry(key) is not None:
                del self._data[key]
                removed += 1
        return removed

    async def exists(self, key: str) -> bool:
        self._check()
        return self._entry(key) is not None

    async def expire(self, key: str, ttl: int) -> bool:
        self._check()
        entry = self._entry(key)
        if entry is None:
            return False
        entry.expires_at = self._deadline(ttl)
        return True

    # -- Hashes ----------------------------------------------------------------

    async def hash_get(self, key: str, field: str) -> str | None:
        self._check()
        entry = self._typed(key, dict)
        return None if entry is None else entry.value.get(field)

    async def hash_set(self, key: str, field: str, value: str, *, ttl: int | None = None) -> None:
        self._check()
        entry = self._typed(key, dict)
        if entry is None:
            entry = self._data[key] = _Entry({})
        entry.value[field] = value
        if ttl is not None:
            entry.expires_at = self._deadline(ttl)

    # -- Lists -----------------------------------------------------------------

    async def push_capped(self, key: str, value: str, *, cap: int, ttl: int | None = None) -> None:
        self._check()
        entry = self._typed(key, list)
        if entry is None:
            entry = self._data[key] = _Entry([])
        entry.value.insert(0, value)
        del entry.value[cap:]
        if ttl is not None:
            entry.expires_at = self._deadline(ttl)

    async def list_range(self, key: str, start: int, stop: int) -> list[str]:
        self._check()
        entry = self._typed(key, list)
        if entry is None:
            return []
        items = entry.value
        # Redis LRANGE semantics: inclusive stop, negative indices from the tail.
        if stop < 0:
            stop += len(items)
        if start < 0:
            start = max(start + len(items), 0)
        return list(items[start : stop + 1])
