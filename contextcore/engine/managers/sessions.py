"""Session memory store -- the single authority for conversational state.

Each session is one JSON document in the state store::

    session:{session_id}

Every mutation goes through ``StateStore.update``, so concurrent appends on
the same session each observe the previous append and the bounded-window
eviction is always computed against the post-append state.  Each mutation
also resets the key's TTL; sessions that see no activity expire passively.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from typing import Any, TypeVar

import pydantic
from loguru import logger

from contextcore.engine.errors import SessionNotFoundError, ValidationError
from contextcore.engine.models.session import (
    MAX_MESSAGES,
    Message,
    MessageMetadata,
    Session,
    SessionStats,
    utcnow,
)
from contextcore.engine.store.base import StateStore

T = TypeVar("T")

DEFAULT_SESSION_TTL = 24 * 60 * 60


def new_message(role: str, content: str, metadata: MessageMetadata | dict | None = None) -> Message:
    """Build a message from caller input.  Raises ``ValidationError`` on bad role/content."""
    if not content:
        msg = "Message content must not be empty"
        raise ValidationError(msg)
    try:
        return Message(role=role, content=content, metadata=metadata)
    except pydantic.ValidationError as e:
        raise ValidationError(str(e)) from e


def _require_id(name: str, value: str) -> None:
    if not value:
        msg = f"{name} must not be empty"
        raise ValidationError(msg)


class SessionMemoryStore:
    """Creates, mutates, and expires conversation sessions.

    Stateless beyond its reference to the state store; safe to share across
    concurrent request handlers.
    """

    def __init__(
        self,
        store: StateStore,
        *,
        ttl_seconds: int = DEFAULT_SESSION_TTL,
        max_messages: int = MAX_MESSAGES,
    ) -> None:
        self._store = store
        self._ttl = ttl_seconds
        self._max_messages = max_messages

    @staticmethod
    def _key(session_id: str) -> str:
        return f"session:{session_id}"

    async def _mutate(self, session_id: str, apply: Callable[[Session], T]) -> T:
        """Apply ``apply`` to the live session atomically and persist the result."""
        result: T | None = None

        def mutate(current: str | None) -> str:
            nonlocal result
            if current is None:
                raise SessionNotFoundError(session_id)
            session = Session.model_validate_json(current)
            result = apply(session)
            return session.model_dump_json()

        await self._store.update(self._key(session_id), mutate, ttl=self._ttl)
        return result  # type: ignore[return-value]

    async def _require(self, session_id: str) -> Session:
        session = await self.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    # -- Create ----------------------------------------------------------------

    async def create_session(
        self,
        user_id: str,
        organization_id: str,
        agent_id: str,
        initial_context: dict[str, Any] | None = None,
    ) -> str:
        """Allocate a new session and return its id."""
        _require_id("user_id", user_id)
        _require_id("organization_id", organization_id)
        _require_id("agent_id", agent_id)

        session_id = uuid.uuid4().hex
        session = Session(
            session_id=session_id,
            user_id=user_id,
            organization_id=organization_id,
            agent_id=agent_id,
            context=dict(initial_context or {}),
        )
        await self._store.set(self._key(session_id), session.model_dump_json(), ttl=self._ttl)
        logger.info("Session created: {} (user={}, org={}, agent={})", session_id, user_id, organization_id, agent_id)
        return session_id

    # -- Read ------------------------------------------------------------------

    async def get_session(self, session_id: str) -> Session | None:
        """Return the session, or ``None`` if it never existed or has expired."""
        raw = await self._store.get(self._key(session_id))
        if raw is None:
            return None
        return Session.model_validate_json(raw)

    async def get_history(self, session_id: str, limit: int) -> list[Message]:
        """Return the last ``limit`` retained messages, oldest first."""
        if limit < 0:
            msg = f"limit must be >= 0, got {limit}"
            raise ValidationError(msg)
        session = await self._require(session_id)
        if limit == 0:
            return []
        return session.messages[-limit:]

    async def get_session_stats(self, session_id: str) -> SessionStats:
        session = await self._require(session_id)
        retained = session.messages
        avg_length = sum(len(m.content) for m in retained) / len(retained) if retained else 0.0
        return SessionStats(
            message_count=session.metadata.total_messages,
            total_tokens=session.metadata.total_tokens,
            total_cost=session.metadata.total_cost,
            duration=(utcnow() - session.created_at).total_seconds(),
            avg_message_length=avg_length,
        )

    # -- Mutate ----------------------------------------------------------------

    async def add_message(self, session_id: str, message: Message) -> Message:
        """Append to the bounded buffer; the oldest messages are evicted past capacity."""
        stored = await self._mutate(session_id, lambda s: s.append_message(message, self._max_messages))
        logger.debug("Session {}: appended {} message #{}", session_id, stored.role, stored.sequence)
        return stored

    async def update_context(self, session_id: str, partial_context: dict[str, Any]) -> None:
        """Shallow-merge ``partial_context`` into the session's context map."""
        await self._mutate(session_id, lambda s: s.merge_context(partial_context))
        logger.debug("Session {}: context updated (keys={})", session_id, sorted(partial_context))

    # -- Lifecycle -------------------------------------------------------------

    async def refresh_session(self, session_id: str) -> None:
        """Reset the TTL without touching content."""
        if not await self._store.expire(self._key(session_id), self._ttl):
            raise SessionNotFoundError(session_id)

    async def delete_session(self, session_id: str) -> bool:
        """Remove the session immediately.  Returns ``False`` if it did not exist."""
        deleted = await self._store.delete(self._key(session_id)) > 0
        if deleted:
            logger.info("Session deleted: {}", session_id)
        return deleted
