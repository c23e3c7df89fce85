"""User preference, interaction, and insight models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from contextcore.engine.models.enums import InteractionType, Theme, UIMode
from contextcore.engine.models.session import utcnow

MAX_RECENT_ITEMS = 10

# -- Preferences -------------------------------------------------------------


class NotificationSettings(BaseModel):
    email: bool = True
    push: bool = True
    desktop: bool = False
    channels: list[str] = Field(default_factory=list)


class AgentDefaults(BaseModel):
    model: str | None = None
    temperature: float | None = Field(default=None, ge=0, le=2)
    max_tokens: int | None = Field(default=None, gt=0)


class UserPreferences(BaseModel):
    """Per-(user, organization) settings.  Defaults apply to never-seen pairs."""

    user_id: str
    organization_id: str
    theme: Theme = Theme.AUTO
    ui_mode: UIMode = UIMode.COMFORTABLE
    language: str = "en"
    timezone: str = "UTC"
    default_view: str | None = None
    favorite_views: list[str] = Field(default_factory=list)
    shortcuts: dict[str, str] = Field(default_factory=dict)
    pinned: dict[str, list[str]] = Field(default_factory=dict, description="Pinned ids per resource type")
    recently_used: dict[str, list[str]] = Field(
        default_factory=dict, description="Most-recent-first ids per resource type"
    )
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    agent_defaults: AgentDefaults = Field(default_factory=AgentDefaults)
    updated_at: datetime | None = None
    revision: int = Field(default=0, ge=0, description="Bumped on every mutation; orders durable writes")

    @property
    def pinned_agents(self) -> list[str]:
        return self.pinned.get("agent", [])

    @property
    def recent_agents(self) -> list[str]:
        return self.recently_used.get("agent", [])

    def mark_recent(self, resource: str, resource_id: str, limit: int = MAX_RECENT_ITEMS) -> None:
        """Move ``resource_id`` to the front of the resource's recent list."""
        items = [i for i in self.recently_used.get(resource, []) if i != resource_id]
        items.insert(0, resource_id)
        self.recently_used[resource] = items[:limit]

    def toggle_pin(self, resource_type: str, resource_id: str) -> bool:
        """Pin if absent, unpin if present.  Returns the new pinned state."""
        items = self.pinned.setdefault(resource_type, [])
        if resource_id in items:
            items.remove(resource_id)
            return False
        items.append(resource_id)
        return True


class PreferencesUpdate(BaseModel):
    """Partial update of scalar and nested settings.  Only set fields apply."""

    model_config = ConfigDict(extra="forbid")

    theme: Theme | None = None
    ui_mode: UIMode | None = None
    language: str | None = Field(default=None, min_length=1)
    timezone: str | None = Field(default=None, min_length=1)
    default_view: str | None = None
    notifications: NotificationSettings | None = None
    agent_defaults: AgentDefaults | None = None


# -- Interactions ------------------------------------------------------------


class InteractionEvent(BaseModel):
    """An immutable fact appended to the interaction log."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1)
    organization_id: str = Field(min_length=1)
    type: InteractionType
    resource: str = Field(min_length=1, description="Resource type, e.g. 'agent' or 'connector'")
    resource_id: str = Field(min_length=1)
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)


# -- Insights ----------------------------------------------------------------


class UsageCount(BaseModel):
    id: str
    count: int


class ModelUsage(BaseModel):
    model: str
    count: int


class HourActivity(BaseModel):
    hour: int = Field(ge=0, le=23)
    count: int


class AdaptiveInsights(BaseModel):
    user_id: str
    total_interactions: int = 0
    most_used_agents: list[UsageCount] = Field(default_factory=list)
    most_used_connectors: list[UsageCount] = Field(default_factory=list)
    preferred_models: list[ModelUsage] = Field(default_factory=list)
    peak_activity_hours: list[HourActivity] = Field(default_factory=list)
