"""Context snapshot models handed to the agent-execution step.

``ContextSnapshot.metadata.version`` is the compatibility contract with
downstream consumers: bump it whenever the snapshot shape changes.

Snapshots are deeply immutable: every model is frozen, sequences are tuples,
and free-form maps are stored as read-only ``MappingProxyType`` views (nested
maps and lists included).  Serialisation turns them back into plain JSON.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from types import MappingProxyType
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, PlainSerializer

from contextcore.engine.models.enums import MessageRole, Theme, UIMode
from contextcore.engine.models.preferences import AdaptiveInsights, UserPreferences
from contextcore.engine.models.session import utcnow

SNAPSHOT_VERSION = "3.0"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, list | tuple):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


FrozenMap = Annotated[dict[str, Any], AfterValidator(_freeze), PlainSerializer(_thaw)]
"""Read-only mapping inside a snapshot; serialises as a plain JSON object."""

FrozenValue = Annotated[Any, AfterValidator(_freeze), PlainSerializer(_thaw)]


# -- Build options -----------------------------------------------------------


class ContextBuildOptions(BaseModel):
    """Recognised ``build_context`` flags plus an explicit ``extra`` map."""

    model_config = ConfigDict(extra="forbid")

    include_history: bool = True
    history_limit: int = Field(10, ge=0)
    include_connectors: bool = False
    include_knowledge: bool = False
    knowledge_query: str = ""
    include_insights: bool = False
    extra: dict[str, Any] = Field(default_factory=dict)


class ContextUpdate(BaseModel):
    session_id: str
    user_id: str
    organization_id: str
    updates: dict[str, Any]


# -- Snapshot parts ----------------------------------------------------------


class SnapshotMessage(_Frozen):
    role: MessageRole
    content: str
    timestamp: datetime


class SessionCounters(_Frozen):
    message_count: int
    total_tokens: int
    total_cost: float


class SessionView(_Frozen):
    id: str
    messages: tuple[SnapshotMessage, ...] = ()
    context: FrozenMap = Field(default_factory=dict, validate_default=True)
    metadata: SessionCounters


class UserInsights(_Frozen):
    most_used_agents: tuple[str, ...] = ()
    preferred_models: tuple[str, ...] = ()

    @classmethod
    def from_insights(cls, insights: AdaptiveInsights) -> UserInsights:
        return cls(
            most_used_agents=tuple(a.id for a in insights.most_used_agents),
            preferred_models=tuple(m.model for m in insights.preferred_models),
        )


class PreferencesView(_Frozen):
    """Read-only copy of ``UserPreferences`` embedded in a snapshot."""

    theme: Theme
    ui_mode: UIMode
    language: str
    timezone: str
    default_view: str | None = None
    favorite_views: tuple[str, ...] = ()
    shortcuts: FrozenMap = Field(default_factory=dict, validate_default=True)
    pinned: FrozenMap = Field(default_factory=dict, validate_default=True)
    recently_used: FrozenMap = Field(default_factory=dict, validate_default=True)
    notifications: FrozenMap = Field(default_factory=dict, validate_default=True)
    agent_defaults: FrozenMap = Field(default_factory=dict, validate_default=True)
    updated_at: datetime | None = None

    @classmethod
    def from_preferences(cls, preferences: UserPreferences) -> PreferencesView:
        return cls.model_validate(preferences.model_dump())


class UserView(_Frozen):
    id: str
    organization_id: str
    preferences: PreferencesView
    insights: UserInsights | None = None


class AgentTool(_Frozen):
    id: str
    name: str
    type: str


class AgentView(_Frozen):
    id: str
    name: str | None = None
    config: FrozenMap = Field(default_factory=dict, validate_default=True)
    tools: tuple[AgentTool, ...] = ()


class ConnectorView(_Frozen):
    id: str
    name: str
    type: str
    schema_: FrozenMap | None = Field(default=None, alias="schema")
    recent_data: FrozenValue = None

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class KnowledgeItem(_Frozen):
    id: str
    content: str
    relevance: float
    source: str


class SnapshotMetadata(_Frozen):
    timestamp: datetime = Field(default_factory=utcnow)
    request_id: str
    version: str = SNAPSHOT_VERSION
    session_revision: int = 0


class ContextSnapshot(_Frozen):
    """Point-in-time composite of session, user, and agent views."""

    session: SessionView
    user: UserView
    agent: AgentView
    connectors: tuple[ConnectorView, ...] | None = None
    knowledge: tuple[KnowledgeItem, ...] | None = None
    metadata: SnapshotMetadata


class ContextStats(BaseModel):
    message_count: int
    total_tokens: int
    total_cost: float
    context_size: int = Field(description="Length of the JSON-encoded session context")
    last_activity: datetime
