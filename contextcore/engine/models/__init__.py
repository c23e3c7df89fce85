"""Data models for the context engine."""

from contextcore.engine.models.context import (
    SNAPSHOT_VERSION,
    AgentTool,
    AgentView,
    ConnectorView,
    ContextBuildOptions,
    ContextSnapshot,
    ContextStats,
    ContextUpdate,
    KnowledgeItem,
    PreferencesView,
    SessionView,
    SnapshotMetadata,
    UserInsights,
    UserView,
)
from contextcore.engine.models.enums import EnrichmentType, InteractionType, MessageRole, Theme, UIMode
from contextcore.engine.models.preferences import (
    AdaptiveInsights,
    AgentDefaults,
    InteractionEvent,
    NotificationSettings,
    PreferencesUpdate,
    UserPreferences,
)
from contextcore.engine.models.session import (
    MAX_MESSAGES,
    Message,
    MessageMetadata,
    Session,
    SessionMetadata,
    SessionStats,
)

__all__ = [
    "MAX_MESSAGES",
    "SNAPSHOT_VERSION",
    # Preferences
    "AdaptiveInsights",
    "AgentDefaults",
    # Context
    "AgentTool",
    "AgentView",
    "ConnectorView",
    "ContextBuildOptions",
    "ContextSnapshot",
    "ContextStats",
    "ContextUpdate",
    # Enums
    "EnrichmentType",
    "InteractionEvent",
    "InteractionType",
    "KnowledgeItem",
    # Session
    "Message",
    "MessageMetadata",
    "MessageRole",
    "NotificationSettings",
    "PreferencesUpdate",
    "PreferencesView",
    "Session",
    "SessionMetadata",
    "SessionStats",
    "SessionView",
    "SnapshotMetadata",
    "Theme",
    "UIMode",
    "UserInsights",
    "UserPreferences",
    "UserView",
]
