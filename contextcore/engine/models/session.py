"""Session and message data models.

A session is stored as one JSON document in the state store; these models are
both the in-memory view and the wire format of that document.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from contextcore.engine.models.enums import MessageRole

MAX_MESSAGES = 50
"""Capacity of the per-session message buffer."""


def utcnow() -> datetime:
    return datetime.now(UTC)


# -- Message -----------------------------------------------------------------


class MessageMetadata(BaseModel):
    """Accounting attached to a message.  Missing tokens/cost count as zero.

    Fields beyond the known ones (``tool_calls``, ``components``, ...) are kept
    verbatim and round-trip through the stored session document.
    """

    model_config = ConfigDict(extra="allow")

    model: str | None = None
    tokens: int | None = Field(default=None, ge=0)
    cost: float | None = Field(default=None, ge=0)
    extra: dict[str, Any] = Field(default_factory=dict)


class Message(BaseModel):
    """One conversational turn.  Immutable once appended."""

    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str
    metadata: MessageMetadata | None = None
    timestamp: datetime = Field(default_factory=utcnow)
    sequence: int = Field(0, description="Position in the session's full append history")


# -- Session -----------------------------------------------------------------


class SessionMetadata(BaseModel):
    """Cumulative counters.  Never decremented, even when messages are evicted."""

    total_messages: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0
    last_activity: datetime = Field(default_factory=utcnow)


class Session(BaseModel):
    session_id: str
    user_id: str
    organization_id: str
    agent_id: str
    created_at: datetime = Field(default_factory=utcnow)
    messages: list[Message] = Field(default_factory=list)
    context: dict[str, Any] = Field(default_factory=dict)
    metadata: SessionMetadata = Field(default_factory=SessionMetadata)
    revision: int = Field(0, description="Bumped on every mutation; used to validate cached snapshots")

    def append_message(self, message: Message, max_messages: int = MAX_MESSAGES) -> Message:
        """Append to the tail, then evict from the head down to ``max_messages``.

        Returns the stored message (with its sequence number assigned).
        """
        stored = message.model_copy(update={"sequence": self.metadata.total_messages})
        self.messages.append(stored)
        overflow = len(self.messages) - max_messages
        if overflow > 0:
            del self.messages[:overflow]

        meta = stored.metadata
        self.metadata.total_messages += 1
        self.metadata.total_tokens += (meta.tokens or 0) if meta else 0
        self.metadata.total_cost += (meta.cost or 0.0) if meta else 0.0
        self.touch()
        return stored

    def merge_context(self, updates: dict[str, Any]) -> None:
        """Shallow merge: overwrite given keys, leave the rest untouched."""
        self.context.update(updates)
        self.touch()

    def touch(self) -> None:
        self.metadata.last_activity = utcnow()
        self.revision += 1


class SessionStats(BaseModel):
    message_count: int
    total_tokens: int
    total_cost: float
    duration: float = Field(description="Seconds elapsed since session creation")
    avg_message_length: float
