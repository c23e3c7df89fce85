"""Shared enumerations used across the context engine."""

from __future__ import annotations

from enum import StrEnum

# -- Session -----------------------------------------------------------------


class MessageRole(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


# -- Preferences -------------------------------------------------------------


class Theme(StrEnum):
    LIGHT = "light"
    DARK = "dark"
    AUTO = "auto"


class UIMode(StrEnum):
    COMPACT = "compact"
    COMFORTABLE = "comfortable"
    SPACIOUS = "spacious"


# -- Interactions ------------------------------------------------------------


class InteractionType(StrEnum):
    VIEW = "view"
    ACTION = "action"
    AGENT_EXECUTION = "agent_execution"
    CANVAS_INTERACTION = "canvas_interaction"
    CONNECTOR_USAGE = "connector_usage"


# -- Context -----------------------------------------------------------------


class EnrichmentType(StrEnum):
    CONNECTOR_DATA = "connector_data"
    KNOWLEDGE_SEARCH = "knowledge_search"
    USER_INSIGHTS = "user_insights"
