"""Wiring helpers: build the store and the three components from settings.

Used by the HTTP app lifespan and by library callers that embed the engine
in their own request-handling tier.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from contextcore.engine.managers.orchestrator import ContextOrchestrator
from contextcore.engine.managers.preferences import PreferenceStore
from contextcore.engine.managers.sessions import SessionMemoryStore
from contextcore.engine.settings import ContextSettings
from contextcore.engine.sources import AgentDirectory, ConnectorSource, KnowledgeSource, ProfileStore
from contextcore.engine.store.base import StateStore
from contextcore.engine.store.memory import MemoryStateStore
from contextcore.engine.store.redis import RedisStateStore


@dataclass(frozen=True)
class ContextEngine:
    store: StateStore
    sessions: SessionMemoryStore
    preferences: PreferenceStore
    orchestrator: ContextOrchestrator


def create_state_store(settings: ContextSettings) -> StateStore:
    """Redis when ``CTX_REDIS_URL`` is set, otherwise the in-process store."""
    if settings.redis_url:
        return RedisStateStore(
            settings.redis_url,
            prefix=settings.key_prefix,
            socket_timeout=settings.redis_socket_timeout,
        )
    logger.warning("CTX_REDIS_URL not set -- using in-process state store (single worker only)")
    return MemoryStateStore()


def create_engine(
    store: StateStore,
    settings: ContextSettings,
    *,
    profiles: ProfileStore | None = None,
    agents: AgentDirectory | None = None,
    connectors: ConnectorSource | None = None,
    knowledge: KnowledgeSource | None = None,
) -> ContextEngine:
    """Assemble the components around an (already connected or not) store."""
    sessions = SessionMemoryStore(store, ttl_seconds=settings.session_ttl_seconds)
    preferences = PreferenceStore(
        store,
        profiles=profiles,
        cache_ttl_seconds=settings.preferences_ttl_seconds,
        interaction_ttl_seconds=settings.interaction_ttl_seconds,
        max_interactions=settings.max_interactions,
        max_recent=settings.max_recent_items,
    )
    orchestrator = ContextOrchestrator(
        sessions,
        preferences,
        store,
        agents=agents,
        connectors=connectors,
        knowledge=knowledge,
        cache_ttl_seconds=settings.context_cache_ttl_seconds,
    )
    return ContextEngine(store=store, sessions=sessions, preferences=preferences, orchestrator=orchestrator)
