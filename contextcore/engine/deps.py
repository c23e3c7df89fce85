"""FastAPI dependency injection for the engine components and caller identity.

Usage in route handlers::

    @router.post("/things")
    async def do_thing(orchestrator: Orchestrator, caller: Caller) -> dict:
        ...

Identity is extracted by an upstream auth layer and forwarded in the
``X-User-Id`` / ``X-Organization-Id`` headers; requests without them are
rejected with 401.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from pydantic import BaseModel

from contextcore.engine.managers.orchestrator import ContextOrchestrator
from contextcore.engine.managers.preferences import PreferenceStore


class CallerIdentity(BaseModel):
    user_id: str
    organization_id: str


async def get_orchestrator(request: Request) -> ContextOrchestrator:
    engine = request.app.state.engine
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Context engine not initialised.",
        )
    return engine.orchestrator


async def get_preferences(request: Request) -> PreferenceStore:
    engine = request.app.state.engine
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Context engine not initialised.",
        )
    return engine.preferences


async def get_caller(
    x_user_id: Annotated[str | None, Header()] = None,
    x_organization_id: Annotated[str | None, Header()] = None,
) -> CallerIdentity:
    if not x_user_id or not x_organization_id:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Missing caller identity headers.")
    return CallerIdentity(user_id=x_user_id, organization_id=x_organization_id)


# -- Annotated type aliases for concise route signatures ---------------------

Orchestrator = Annotated[ContextOrchestrator, Depends(get_orchestrator)]
"""Annotated dependency: the shared context orchestrator."""

Preferences = Annotated[PreferenceStore, Depends(get_preferences)]
"""Annotated dependency: the shared preference & interaction store."""

Caller = Annotated[CallerIdentity, Depends(get_caller)]
"""Annotated dependency: authenticated (user, organization) pair."""
