"""State store interface shared across request handlers and processes.

The state store is the sole source of truth for cross-process state: session
documents, cached preferences, interaction logs, and cached context
snapshots.  Components never hold authoritative state in process memory;
they receive a ``StateStore`` through their constructor.

Every key may carry a TTL.  Expired keys are reclaimed passively by the
backend -- nothing in this package sweeps them.

Connect-before-use: operations issued before ``connect()`` succeeded raise
``NotInitializedError`` instead of silently queuing.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

Mutator = Callable[[str | None], str]
"""Receives the current raw value (``None`` if absent) and returns the replacement."""


@runtime_checkable
class StateStore(Protocol):
    """Async protocol for a TTL-capable key-value store.

    Values are opaque strings (JSON documents in practice).  ``update`` is the
    only read-modify-write primitive; it must be atomic with respect to
    concurrent writers on the same key.
    """

    @property
    def is_connected(self) -> bool: ...

    async def connect(self) -> None:
        """Establish the connection.  Raises ``StoreUnavailableError`` on failure."""
        ...

    async def close(self) -> None:
        """Release the connection.  Subsequent operations raise ``NotInitializedError``."""
        ...

    # -- Plain values ----------------------------------------------------------

    async def get(self, key: str) -> str | None:
        """Return the value, or ``None`` if absent or expired."""
        ...

    async def set(self, key: str, value: str, *, ttl: int | None = None) -> None: ...

    async def update(self, key: str, mutate: Mutator, *, ttl: int | None = None) -> str:
        """Atomically replace the value with ``mutate(current)``.

        Exceptions raised by ``mutate`` abort the update and propagate
        unchanged.  Returns the value that was written.
        """
        ...

    async def delete(self, *keys: str) -> int:
        """Delete keys.  Returns the number of keys that existed."""
        ...

    async def exists(self, key: str) -> bool: ...

    async def expire(self, key: str, ttl: int) -> bool:
        """Reset the TTL.  Returns ``False`` if the key does not exist."""
        ...

    # -- Hashes ----------------------------------------------------------------

    async def hash_get(self, key: str, field: str) -> str | None: ...

    async def hash_set(self, key: str, field: str, value: str, *, ttl: int | None = None) -> None: ...

    # -- Lists -----------------------------------------------------------------

    async def push_capped(self, key: str, value: str, *, cap: int, ttl: int | None = None) -> None:
        """Prepend ``value`` and trim the list to the newest ``cap`` entries."""
        ...

    async def list_range(self, key: str, start: int, stop: int) -> list[str]:
        """Return list entries ``start..stop`` inclusive (negative indices allowed)."""
        ...
