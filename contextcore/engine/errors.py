"""Error taxonomy shared by the stores and the orchestrator.

Absence of data is not an error on lookups (``get_session`` returns
``None``, preference reads fall back to defaults).  Everything below is raised
to the caller unchanged; the HTTP layer maps each kind to a status code.
"""

from __future__ import annotations


class ContextEngineError(Exception):
    """Base class for all context engine errors."""


class NotInitializedError(ContextEngineError, RuntimeError):
    """Raised when the state store is used before ``connect()`` succeeded."""


class StoreUnavailableError(ContextEngineError, ConnectionError):
    """Raised on connectivity failures or timeouts talking to the state store.

    Retriable: callers should back off rather than treat it as permanent.
    """


class SessionNotFoundError(ContextEngineError, LookupError):
    """Raised when an operation references a session with no live record."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session '{session_id}' not found")
        self.session_id = session_id


class ValidationError(ContextEngineError, ValueError):
    """Raised on malformed input (unknown role, negative limit, ...)."""
