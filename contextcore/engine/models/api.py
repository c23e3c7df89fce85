"""Request/response schemas for the HTTP surface."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from contextcore.engine.models.context import ContextBuildOptions
from contextcore.engine.models.enums import InteractionType, MessageRole
from contextcore.engine.models.session import MessageMetadata

# -- Sessions ----------------------------------------------------------------


class SessionCreate(BaseModel):
    agent_id: str = Field(min_length=1)
    initial_context: dict[str, Any] | None = None


class SessionCreated(BaseModel):
    session_id: str


class MessageCreate(BaseModel):
    role: MessageRole
    content: str = Field(min_length=1)
    metadata: MessageMetadata | None = None


class ContextPatch(BaseModel):
    updates: dict[str, Any]


class BuildContextRequest(BaseModel):
    session_id: str
    agent_id: str = Field(min_length=1)
    options: ContextBuildOptions = Field(default_factory=ContextBuildOptions)


# -- Preferences -------------------------------------------------------------


class PinToggle(BaseModel):
    resource_type: str = Field(min_length=1)
    resource_id: str = Field(min_length=1)


class PinState(BaseModel):
    resource_type: str
    resource_id: str
    pinned: bool


class FavoriteView(BaseModel):
    view_path: str = Field(min_length=1)


class ShortcutSet(BaseModel):
    key: str = Field(min_length=1)
    action: str = Field(min_length=1)


class InteractionCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: InteractionType
    resource: str = Field(min_length=1)
    resource_id: str = Field(min_length=1)
    metadata: dict[str, Any] = Field(default_factory=dict)
