"""State store implementations shared across processes."""

from contextcore.engine.store.base import StateStore
from contextcore.engine.store.memory import MemoryStateStore
from contextcore.engine.store.redis import RedisStateStore

__all__ = ["MemoryStateStore", "RedisStateStore", "StateStore"]
