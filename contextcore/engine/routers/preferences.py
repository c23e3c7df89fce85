"""Preference and interaction endpoints (RPC-style).

All operations act on the caller's own (user, organization) pair.
"""

from __future__ import annotations

from fastapi import APIRouter, status

from contextcore.engine.deps import Caller, Preferences
from contextcore.engine.models.api import FavoriteView, InteractionCreate, PinState, PinToggle, ShortcutSet
from contextcore.engine.models.preferences import (
    AdaptiveInsights,
    InteractionEvent,
    PreferencesUpdate,
    UserPreferences,
)

router = APIRouter(prefix="/context", tags=["preferences"])


@router.get("/preferences/get", response_model=UserPreferences)
async def get_preferences(preferences: Preferences, caller: Caller) -> UserPreferences:
    return await preferences.get_user_preferences(caller.user_id, caller.organization_id)


@router.post("/preferences/update", response_model=UserPreferences)
async def update_preferences(body: PreferencesUpdate, preferences: Preferences, caller: Caller) -> UserPreferences:
    return await preferences.update_preferences(caller.user_id, caller.organization_id, body)


@router.post("/preferences/pin", response_model=PinState)
async def toggle_pin(body: PinToggle, preferences: Preferences, caller: Caller) -> PinState:
    pinned = await preferences.toggle_pin(caller.user_id, caller.organization_id, body.resource_type, body.resource_id)
    return PinState(resource_type=body.resource_type, resource_id=body.resource_id, pinned=pinned)


@router.post("/preferences/favorites/add", response_model=UserPreferences)
async def add_favorite(body: FavoriteView, preferences: Preferences, caller: Caller) -> UserPreferences:
    return await preferences.add_favorite_view(caller.user_id, caller.organization_id, body.view_path)


@router.post("/preferences/favorites/remove", response_model=UserPreferences)
async def remove_favorite(body: FavoriteView, preferences: Preferences, caller: Caller) -> UserPreferences:
    return await preferences.remove_favorite_view(caller.user_id, caller.organization_id, body.view_path)


@router.post("/preferences/shortcuts", response_model=UserPreferences)
async def set_shortcut(body: ShortcutSet, preferences: Preferences, caller: Caller) -> UserPreferences:
    return await preferences.set_shortcut(caller.user_id, caller.organization_id, body.key, body.action)


@router.get("/preferences/insights", response_model=AdaptiveInsights)
async def get_insights(preferences: Preferences, caller: Caller) -> AdaptiveInsights:
    return await preferences.get_adaptive_insights(caller.user_id, caller.organization_id)


@router.post("/preferences/clear-cache", status_code=status.HTTP_204_NO_CONTENT)
async def clear_cache(preferences: Preferences, caller: Caller) -> None:
    await preferences.clear_cache(caller.user_id, caller.organization_id)


@router.post("/interactions/track", status_code=status.HTTP_202_ACCEPTED)
async def track_interaction(body: InteractionCreate, preferences: Preferences, caller: Caller) -> dict[str, str]:
    await preferences.track_interaction(
        InteractionEvent(
            user_id=caller.user_id,
            organization_id=caller.organization_id,
            type=body.type,
            resource=body.resource,
            resource_id=body.resource_id,
            metadata=body.metadata,
        )
    )
    return {"status": "tracked"}
