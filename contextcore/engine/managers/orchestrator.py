"""Context orchestrator -- composes versioned snapshots for agent execution.

Hides the session memory store and the preference store behind one API and
caches built snapshots in the state store::

    context:{session_id}    hash, field = agent_id, value = ContextSnapshot JSON

Every session mutation issued through the orchestrator deletes the whole hash.
As a second line of defence, a cached snapshot is only returned while its
``metadata.session_revision`` still matches the live session, so mutations
made by another process without going through this cache cannot leak stale
snapshots.

Lifecycle per session: CREATED -> ACTIVE (build/add/update, any number of
times) -> ENDED.  Nothing is valid after ENDED; calls raise
``SessionNotFoundError`` just like the session store does after deletion.
"""

from __future__ import annotations

import asyncio
import json
import time
import uuid
from typing import Any

import pydantic
from loguru import logger

from contextcore.engine.errors import SessionNotFoundError, ValidationError
from contextcore.engine.managers.preferences import PreferenceStore
from contextcore.engine.managers.sessions import SessionMemoryStore, new_message
from contextcore.engine.models.context import (
    AgentView,
    ConnectorView,
    ContextBuildOptions,
    ContextSnapshot,
    ContextStats,
    ContextUpdate,
    KnowledgeItem,
    PreferencesView,
    SessionCounters,
    SessionView,
    SnapshotMessage,
    SnapshotMetadata,
    UserInsights,
    UserView,
)
from contextcore.engine.models.enums import EnrichmentType, InteractionType, MessageRole
from contextcore.engine.models.preferences import InteractionEvent
from contextcore.engine.models.session import Message, MessageMetadata, Session
from contextcore.engine.sources import AgentDirectory, ConnectorSource, KnowledgeSource
from contextcore.engine.store.base import StateStore

DEFAULT_CONTEXT_CACHE_TTL = 5 * 60


def _request_id() -> str:
    return f"req_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


class ContextOrchestrator:
    """Single entry point for controllers and the agent-execution step."""

    def __init__(
        self,
        sessions: SessionMemoryStore,
        preferences: PreferenceStore,
        store: StateStore,
        *,
        agents: AgentDirectory | None = None,
        connectors: ConnectorSource | None = None,
        knowledge: KnowledgeSource | None = None,
        cache_ttl_seconds: int = DEFAULT_CONTEXT_CACHE_TTL,
    ) -> None:
        self._sessions = sessions
        self._preferences = preferences
        self._store = store
        self._agents = agents
        self._connectors = connectors
        self._knowledge = knowledge
        self._cache_ttl = cache_ttl_seconds

    @staticmethod
    def _cache_key(session_id: str) -> str:
        return f"context:{session_id}"

    async def _require_session(self, session_id: str) -> Session:
        session = await self._sessions.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def _invalidate(self, session_id: str) -> None:
        if await self._store.delete(self._cache_key(session_id)):
            logger.debug("Context cache invalidated: {}", session_id)

    # Tracking runs after the primary write has committed; a failure here must
    # not make the caller believe the write failed and retry it.

    async def _track(self, event: InteractionEvent) -> None:
        try:
            await self._preferences.track_interaction(event)
        except Exception:
            logger.exception("Failed to track interaction {} {}", event.resource, event.resource_id)

    async def _track_agent_use(self, session_id: str, message_length: int) -> None:
        try:
            session = await self._sessions.get_session(session_id)
        except Exception:
            logger.exception("Failed to load session {} for interaction tracking", session_id)
            return
        if session is None:
            return
        await self._track(
            InteractionEvent(
                user_id=session.user_id,
                organization_id=session.organization_id,
                type=InteractionType.AGENT_EXECUTION,
                resource="agent",
                resource_id=session.agent_id,
                metadata={"message_length": message_length},
            )
        )

    # -- Session lifecycle -----------------------------------------------------

    async def create_session(
        self,
        user_id: str,
        organization_id: str,
        agent_id: str,
        initial_context: dict[str, Any] | None = None,
    ) -> str:
        session_id = await self._sessions.create_session(user_id, organization_id, agent_id, initial_context)
        await self._track(
            InteractionEvent(
                user_id=user_id,
                organization_id=organization_id,
                type=InteractionType.AGENT_EXECUTION,
                resource="session",
                resource_id=session_id,
                metadata={"agent_id": agent_id},
            )
        )
        return session_id

    async def get_session(self, session_id: str) -> Session | None:
        return await self._sessions.get_session(session_id)

    async def get_history(self, session_id: str, limit: int) -> list[Message]:
        return await self._sessions.get_history(session_id, limit)

    async def refresh_session(self, session_id: str) -> None:
        await self._sessions.refresh_session(session_id)

    async def end_session(self, session_id: str) -> None:
        """Delete the session and evict its cached snapshots."""
        deleted = await self._sessions.delete_session(session_id)
        await self._invalidate(session_id)
        if not deleted:
            raise SessionNotFoundError(session_id)
        logger.info("Session ended: {}", session_id)

    # -- Mutations -------------------------------------------------------------

    async def update_context(self, update: ContextUpdate) -> None:
        await self._sessions.update_context(update.session_id, update.updates)
        await self._invalidate(update.session_id)
        logger.info(
            "Session context updated: {} (user={}, keys={})",
            update.session_id,
            update.user_id,
            sorted(update.updates),
        )

    async def add_message(
        self,
        session_id: str,
        role: MessageRole | str,
        content: str,
        metadata: MessageMetadata | dict | None = None,
    ) -> Message:
        message = new_message(role, content, metadata)
        stored = await self._sessions.add_message(session_id, message)
        await self._invalidate(session_id)

        if stored.role == MessageRole.USER:
            await self._track_agent_use(session_id, len(content))
        return stored

    # -- Snapshots -------------------------------------------------------------

    async def build_context(
        self,
        session_id: str,
        user_id: str,
        organization_id: str,
        agent_id: str,
        options: ContextBuildOptions | dict[str, Any] | None = None,
    ) -> ContextSnapshot:
        """Compose a fresh snapshot and cache it under (session_id, agent_id)."""
        if not isinstance(options, ContextBuildOptions):
            try:
                options = ContextBuildOptions.model_validate(options or {})
            except pydantic.ValidationError as e:
                raise ValidationError(str(e)) from e

        started = time.perf_counter()
        session = await self._require_session(session_id)

        preferences, agent, connectors, insights = await asyncio.gather(
            self._preferences.get_user_preferences(user_id, organization_id),
            self._load_agent(agent_id, organization_id),
            self._load_connectors(agent_id, organization_id) if options.include_connectors else _none(),
            self._preferences.get_adaptive_insights(user_id, organization_id)
            if options.include_insights
            else _none(),
        )

        knowledge = None
        if options.include_knowledge and options.knowledge_query:
            knowledge = await self._search_knowledge(organization_id, agent_id, options.knowledge_query)

        messages: list[Message] = []
        if options.include_history and options.history_limit > 0:
            messages = session.messages[-options.history_limit :]

        snapshot = ContextSnapshot(
            session=SessionView(
                id=session.session_id,
                messages=tuple(
                    SnapshotMessage(role=m.role, content=m.content, timestamp=m.timestamp) for m in messages
                ),
                context=session.context,
                metadata=SessionCounters(
                    message_count=session.metadata.total_messages,
                    total_tokens=session.metadata.total_tokens,
                    total_cost=session.metadata.total_cost,
                ),
            ),
            user=UserView(
                id=user_id,
                organization_id=organization_id,
                preferences=PreferencesView.from_preferences(preferences),
                insights=UserInsights.from_insights(insights) if insights is not None else None,
            ),
            agent=agent,
            connectors=tuple(connectors) if connectors else None,
            knowledge=tuple(knowledge) if knowledge else None,
            metadata=SnapshotMetadata(request_id=_request_id(), session_revision=session.revision),
        )

        await self._store.hash_set(
            self._cache_key(session_id), agent_id, snapshot.model_dump_json(), ttl=self._cache_ttl
        )
        logger.info(
            "Context built: session={} agent={} messages={} ({:.1f}ms)",
            session_id,
            agent_id,
            len(messages),
            (time.perf_counter() - started) * 1000,
        )
        return snapshot

    async def get_cached_context(self, session_id: str, agent_id: str) -> ContextSnapshot | None:
        """Return the last built snapshot if still valid.  Never rebuilds."""
        raw = await self._store.hash_get(self._cache_key(session_id), agent_id)
        if raw is None:
            return None
        snapshot = ContextSnapshot.model_validate_json(raw)
        session = await self._sessions.get_session(session_id)
        if session is None or session.revision != snapshot.metadata.session_revision:
            return None
        return snapshot

    async def get_context_stats(self, session_id: str) -> ContextStats:
        session = await self._require_session(session_id)
        return ContextStats(
            message_count=session.metadata.total_messages,
            total_tokens=session.metadata.total_tokens,
            total_cost=session.metadata.total_cost,
            context_size=len(json.dumps(session.context, default=str)),
            last_activity=session.metadata.last_activity,
        )

    async def enrich_context(
        self,
        snapshot: ContextSnapshot,
        kind: EnrichmentType | str,
        params: dict[str, Any] | None = None,
    ) -> ContextSnapshot:
        """Return a copy of ``snapshot`` with one component filled in."""
        params = params or {}
        kind = EnrichmentType(kind)
        organization_id = snapshot.user.organization_id
        logger.info("Enriching context: session={} kind={}", snapshot.session.id, kind)

        if kind == EnrichmentType.CONNECTOR_DATA:
            connector_id = params.get("connector_id")
            if not connector_id or self._connectors is None or not snapshot.connectors:
                return snapshot
            query = params.get("query") or {"operation": "read", "limit": 10}
            try:
                data = await self._connectors.query_connector(connector_id, organization_id, query)
            except Exception:
                logger.exception("Connector query failed: {}", connector_id)
                return snapshot
            connectors = tuple(
                ConnectorView.model_validate({**c.model_dump(), "recent_data": data}) if c.id == connector_id else c
                for c in snapshot.connectors
            )
            return snapshot.model_copy(update={"connectors": connectors})

        if kind == EnrichmentType.KNOWLEDGE_SEARCH:
            query = params.get("query")
            if not query:
                return snapshot
            knowledge = await self._search_knowledge(organization_id, snapshot.agent.id, query)
            return snapshot.model_copy(update={"knowledge": tuple(knowledge) or None})

        insights = await self._preferences.get_adaptive_insights(snapshot.user.id, organization_id)
        user = snapshot.user.model_copy(update={"insights": UserInsights.from_insights(insights)})
        return snapshot.model_copy(update={"user": user})

    # -- External enrichers ----------------------------------------------------

    async def _load_agent(self, agent_id: str, organization_id: str) -> AgentView:
        if self._agents is None:
            return AgentView(id=agent_id)
        agent = await self._agents.get_agent(agent_id, organization_id)
        if agent is None:
            logger.warning("Agent {} not found in directory (org={})", agent_id, organization_id)
            return AgentView(id=agent_id)
        return agent

    async def _load_connectors(self, agent_id: str, organization_id: str) -> list[ConnectorView]:
        if self._connectors is None:
            return []
        try:
            return await self._connectors.list_connectors(agent_id, organization_id)
        except Exception:
            logger.exception("Failed to load connectors for agent {}", agent_id)
            return []

    async def _search_knowledge(self, organization_id: str, agent_id: str, query: str) -> list[KnowledgeItem]:
        if self._knowledge is None:
            return []
        try:
            return await self._knowledge.search(organization_id, agent_id, query)
        except Exception:
            logger.exception("Knowledge search failed (org={}, agent={})", organization_id, agent_id)
            return []


async def _none() -> None:
    return None

