"""Protocols for external collaborators the engine can be wired to.

Agent configuration, connectors and the knowledge base are owned by the
surrounding application; when one is not supplied, the corresponding feature
degrades to a no-op.  The profile store defaults to a durable record kept in
the state store itself (``StateStoreProfiles``).
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from contextcore.engine.models.context import AgentView, ConnectorView, KnowledgeItem
from contextcore.engine.models.preferences import UserPreferences


@runtime_checkable
class AgentDirectory(Protocol):
    async def get_agent(self, agent_id: str, organization_id: str) -> AgentView | None:
        """Return the agent's name, config, and tools, or ``None`` if unknown."""
        ...


@runtime_checkable
class ConnectorSource(Protocol):
    async def list_connectors(self, agent_id: str, organization_id: str) -> list[ConnectorView]: ...

    async def query_connector(self, connector_id: str, organization_id: str, query: dict[str, Any]) -> Any:
        """Fetch recent data from one connector."""
        ...


@runtime_checkable
class KnowledgeSource(Protocol):
    async def search(self, organization_id: str, agent_id: str, query: str) -> list[KnowledgeItem]: ...


@runtime_checkable
class ProfileStore(Protocol):
    """Durable store of record for preferences."""

    async def load(self, user_id: str, organization_id: str) -> UserPreferences | None: ...

    async def save(self, preferences: UserPreferences) -> None:
        """Persist ``preferences`` unless the stored record has a higher ``revision``."""
        ...
