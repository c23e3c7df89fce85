"""Shared fixtures for context-engine tests (in-process state store)."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from httpx import ASGITransport, AsyncClient

from contextcore.engine.app import app
from contextcore.engine.factory import ContextEngine, create_engine
from contextcore.engine.managers.orchestrator import ContextOrchestrator
from contextcore.engine.managers.preferences import PreferenceStore
from contextcore.engine.managers.sessions import SessionMemoryStore
from contextcore.engine.settings import ContextSettings
from contextcore.engine.store.memory import MemoryStateStore


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def store(clock: FakeClock) -> AsyncIterator[MemoryStateStore]:
    store = MemoryStateStore(clock=clock)
    await store.connect()
    yield store
    await store.close()


@pytest.fixture
def engine(store: MemoryStateStore) -> ContextEngine:
    return create_engine(store, ContextSettings(redis_url=None))


@pytest.fixture
def sessions(engine: ContextEngine) -> SessionMemoryStore:
    return engine.sessions


@pytest.fixture
def preferences(engine: ContextEngine) -> PreferenceStore:
    return engine.preferences


@pytest.fixture
def orchestrator(engine: ContextEngine) -> ContextOrchestrator:
    return engine.orchestrator


@pytest.fixture
async def client(engine: ContextEngine) -> AsyncIterator[AsyncClient]:
    """Async HTTP client wired to the app with an in-memory engine.

    The app lifespan does NOT run under ``ASGITransport``, so the engine is
    pre-set on ``app.state``.
    """
    app.state.engine = engine

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.state.engine = None
