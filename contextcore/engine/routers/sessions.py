"""Session and context-building endpoints (RPC-style).

Thin HTTP adapter -- delegates to the context orchestrator.  Every
session-scoped endpoint checks that the caller owns the session.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from contextcore.engine.deps import Caller, CallerIdentity, Orchestrator
from contextcore.engine.managers.orchestrator import ContextOrchestrator
from contextcore.engine.models.api import (
    BuildContextRequest,
    ContextPatch,
    MessageCreate,
    SessionCreate,
    SessionCreated,
)
from contextcore.engine.models.context import ContextSnapshot, ContextStats, ContextUpdate
from contextcore.engine.models.session import Message, Session

router = APIRouter(prefix="/context", tags=["context"])


async def _owned_session(orchestrator: ContextOrchestrator, session_id: str, caller: CallerIdentity) -> Session:
    session = await orchestrator.get_session(session_id)
    if session is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=f"Session '{session_id}' not found.")
    if session.user_id != caller.user_id or session.organization_id != caller.organization_id:
        raise HTTPException(status.HTTP_403_FORBIDDEN, detail="Session belongs to another user.")
    return session


# -- Sessions ----------------------------------------------------------------


@router.post("/sessions/create", response_model=SessionCreated, status_code=status.HTTP_201_CREATED)
async def create_session(body: SessionCreate, orchestrator: Orchestrator, caller: Caller) -> SessionCreated:
    session_id = await orchestrator.create_session(
        caller.user_id,
        caller.organization_id,
        body.agent_id,
        body.initial_context,
    )
    return SessionCreated(session_id=session_id)


@router.get("/sessions/{session_id}/get", response_model=Session)
async def get_session(session_id: str, orchestrator: Orchestrator, caller: Caller) -> Session:
    return await _owned_session(orchestrator, session_id, caller)


@router.post("/sessions/{session_id}/end", status_code=status.HTTP_204_NO_CONTENT)
async def end_session(session_id: str, orchestrator: Orchestrator, caller: Caller) -> None:
    await _owned_session(orchestrator, session_id, caller)
    await orchestrator.end_session(session_id)


@router.post("/sessions/{session_id}/messages", response_model=Message, status_code=status.HTTP_201_CREATED)
async def add_message(session_id: str, body: MessageCreate, orchestrator: Orchestrator, caller: Caller) -> Message:
    await _owned_session(orchestrator, session_id, caller)
    return await orchestrator.add_message(session_id, body.role, body.content, body.metadata)


@router.get("/sessions/{session_id}/history", response_model=list[Message])
async def get_history(
    session_id: str,
    orchestrator: Orchestrator,
    caller: Caller,
    limit: int = Query(10, ge=0, description="Number of most recent messages to return."),
) -> list[Message]:
    await _owned_session(orchestrator, session_id, caller)
    return await orchestrator.get_history(session_id, limit)


@router.post("/sessions/{session_id}/context", status_code=status.HTTP_204_NO_CONTENT)
async def update_context(session_id: str, body: ContextPatch, orchestrator: Orchestrator, caller: Caller) -> None:
    await _owned_session(orchestrator, session_id, caller)
    await orchestrator.update_context(
        ContextUpdate(
            session_id=session_id,
            user_id=caller.user_id,
            organization_id=caller.organization_id,
            updates=body.updates,
        )
    )


@router.get("/sessions/{session_id}/stats", response_model=ContextStats)
async def get_stats(session_id: str, orchestrator: Orchestrator, caller: Caller) -> ContextStats:
    await _owned_session(orchestrator, session_id, caller)
    return await orchestrator.get_context_stats(session_id)


@router.post("/sessions/{session_id}/refresh", status_code=status.HTTP_204_NO_CONTENT)
async def refresh_session(session_id: str, orchestrator: Orchestrator, caller: Caller) -> None:
    await _owned_session(orchestrator, session_id, caller)
    await orchestrator.refresh_session(session_id)


# -- Snapshots ---------------------------------------------------------------


@router.post("/build", response_model=ContextSnapshot)
async def build_context(body: BuildContextRequest, orchestrator: Orchestrator, caller: Caller) -> ContextSnapshot:
    await _owned_session(orchestrator, body.session_id, caller)
    return await orchestrator.build_context(
        body.session_id,
        caller.user_id,
        caller.organization_id,
        body.agent_id,
        body.options,
    )


@router.get("/sessions/{session_id}/cached/{agent_id}", response_model=ContextSnapshot)
async def get_cached_context(
    session_id: str, agent_id: str, orchestrator: Orchestrator, caller: Caller
) -> ContextSnapshot:
    await _owned_session(orchestrator, session_id, caller)
    snapshot = await orchestrator.get_cached_context(session_id, agent_id)
    if snapshot is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="No valid cached context.")
    return snapshot
