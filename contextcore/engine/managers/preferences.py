"""Preference & interaction store.

Keys (per user/organization pair)::

    prefs:{user_id}:{organization_id}          cached UserPreferences document (TTL, refreshed on read)
    profile:{user_id}:{organization_id}        durable record, no TTL (default ProfileStore)
    interactions:{user_id}:{organization_id}   capped list of InteractionEvent, newest first

The cached document is materialised lazily: a read miss loads the record from
the ``ProfileStore`` or falls back to defaults.  Mutations are atomic
read-modify-writes on the cached document that bump ``revision`` and are then
written through to the profile store.  Write-through is serialised per key and
always persists the newest revision seen, so a slow save can never overwrite
a later one.
"""

from __future__ import annotations

import asyncio
import weakref
from collections import Counter
from collections.abc import Callable
from typing import Any, TypeVar

import pydantic
from loguru import logger

from contextcore.engine.errors import ValidationError
from contextcore.engine.models.preferences import (
    MAX_RECENT_ITEMS,
    AdaptiveInsights,
    HourActivity,
    InteractionEvent,
    ModelUsage,
    PreferencesUpdate,
    UsageCount,
    UserPreferences,
)
from contextcore.engine.models.session import utcnow
from contextcore.engine.sources import ProfileStore
from contextcore.engine.store.base import StateStore

T = TypeVar("T")

DEFAULT_CACHE_TTL = 60 * 60
DEFAULT_INTERACTION_TTL = 30 * 24 * 60 * 60
DEFAULT_MAX_INTERACTIONS = 1000

_TOP_RESOURCES = 5
_TOP_HOURS = 3
_NULLABLE_FIELDS = frozenset({"default_view"})


def _require(name: str, value: str) -> None:
    if not value:
        msg = f"{name} must not be empty"
        raise ValidationError(msg)


def _newer(a: UserPreferences, b: UserPreferences | None) -> UserPreferences:
    return a if b is None or a.revision >= b.revision else b


class StateStoreProfiles:
    """Durable preference records kept in the state store without a TTL."""

    def __init__(self, store: StateStore) -> None:
        self._store = store

    @staticmethod
    def _key(user_id: str, organization_id: str) -> str:
        return f"profile:{user_id}:{organization_id}"

    async def load(self, user_id: str, organization_id: str) -> UserPreferences | None:
        raw = await self._store.get(self._key(user_id, organization_id))
        return UserPreferences.model_validate_json(raw) if raw is not None else None

    async def save(self, preferences: UserPreferences) -> None:
        incoming = preferences.model_dump_json()

        def keep_newest(current: str | None) -> str:
            if current is not None and UserPreferences.model_validate_json(current).revision > preferences.revision:
                return current
            return incoming

        await self._store.update(self._key(preferences.user_id, preferences.organization_id), keep_newest)


class PreferenceStore:
    """Per-(user, organization) settings with bounded recency tracking."""

    def __init__(
        self,
        store: StateStore,
        *,
        profiles: ProfileStore | None = None,
        cache_ttl_seconds: int = DEFAULT_CACHE_TTL,
        interaction_ttl_seconds: int = DEFAULT_INTERACTION_TTL,
        max_interactions: int = DEFAULT_MAX_INTERACTIONS,
        max_recent: int = MAX_RECENT_ITEMS,
    ) -> None:
        self._store = store
        self._profiles: ProfileStore = profiles if profiles is not None else StateStoreProfiles(store)
        self._cache_ttl = cache_ttl_seconds
        self._interaction_ttl = interaction_ttl_seconds
        self._max_interactions = max_interactions
        self._max_recent = max_recent
        self._save_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    @staticmethod
    def _prefs_key(user_id: str, organization_id: str) -> str:
        return f"prefs:{user_id}:{organization_id}"

    @staticmethod
    def _interactions_key(user_id: str, organization_id: str) -> str:
        return f"interactions:{user_id}:{organization_id}"

    async def _baseline(self, user_id: str, organization_id: str) -> UserPreferences:
        """Record of truth for a cache miss: the profile store, else defaults."""
        stored = await self._profiles.load(user_id, organization_id)
        if stored is not None:
            return stored
        return UserPreferences(user_id=user_id, organization_id=organization_id)

    async def _write_through(self, key: str, prefs: UserPreferences) -> None:
        lock = self._save_locks.get(key)
        if lock is None:
            lock = self._save_locks[key] = asyncio.Lock()
        async with lock:
            # A later mutation may already be cached; persist that one instead.
            raw = await self._store.get(key)
            cached = UserPreferences.model_validate_json(raw) if raw is not None else None
            await self._profiles.save(_newer(prefs, cached))

    async def _mutate(
        self,
        user_id: str,
        organization_id: str,
        apply: Callable[[UserPreferences], T],
    ) -> tuple[UserPreferences, T]:
        _require("user_id", user_id)
        _require("organization_id", organization_id)
        key = self._prefs_key(user_id, organization_id)

        baseline: str | None = None
        if not await self._store.exists(key):
            baseline = (await self._baseline(user_id, organization_id)).model_dump_json()

        result: T | None = None

        def mutate(current: str | None) -> str:
            nonlocal result
            raw = current or baseline
            if raw is None:
                prefs = UserPreferences(user_id=user_id, organization_id=organization_id)
            else:
                prefs = UserPreferences.model_validate_json(raw)
            result = apply(prefs)
            prefs.updated_at = utcnow()
            prefs.revision += 1
            return prefs.model_dump_json()

        written = await self._store.update(key, mutate, ttl=self._cache_ttl)
        prefs = UserPreferences.model_validate_json(written)
        await self._write_through(key, prefs)
        return prefs, result  # type: ignore[return-value]

    # -- Preferences -----------------------------------------------------------

    async def get_user_preferences(self, user_id: str, organization_id: str) -> UserPreferences:
        """Return the preferences, materialising defaults on first read."""
        _require("user_id", user_id)
        _require("organization_id", organization_id)
        key = self._prefs_key(user_id, organization_id)

        raw = await self._store.get(key)
        if raw is not None:
            await self._store.expire(key, self._cache_ttl)
            return UserPreferences.model_validate_json(raw)

        baseline = (await self._baseline(user_id, organization_id)).model_dump_json()
        # A concurrent writer may have populated the key meanwhile; keep theirs.
        written = await self._store.update(key, lambda current: current or baseline, ttl=self._cache_ttl)
        return UserPreferences.model_validate_json(written)

    async def update_preferences(
        self,
        user_id: str,
        organization_id: str,
        updates: PreferencesUpdate | dict[str, Any],
    ) -> UserPreferences:
        """Apply only the fields explicitly set in ``updates``."""
        if not isinstance(updates, PreferencesUpdate):
            try:
                updates = PreferencesUpdate.model_validate(updates)
            except pydantic.ValidationError as e:
                raise ValidationError(str(e)) from e

        def apply(prefs: UserPreferences) -> None:
            for name in updates.model_fields_set:
                value = getattr(updates, name)
                if value is None and name not in _NULLABLE_FIELDS:
                    continue
                setattr(prefs, name, value)

        prefs, _ = await self._mutate(user_id, organization_id, apply)
        logger.info(
            "Preferences updated: user={} org={} fields={}", user_id, organization_id, sorted(updates.model_fields_set)
        )
        return prefs

    async def toggle_pin(self, user_id: str, organization_id: str, resource_type: str, resource_id: str) -> bool:
        """Pin the resource if unpinned, otherwise unpin it.  Returns the new state."""
        _require("resource_type", resource_type)
        _require("resource_id", resource_id)
        _, pinned = await self._mutate(user_id, organization_id, lambda p: p.toggle_pin(resource_type, resource_id))
        return pinned

    async def add_favorite_view(self, user_id: str, organization_id: str, view_path: str) -> UserPreferences:
        _require("view_path", view_path)

        def apply(prefs: UserPreferences) -> None:
            if view_path not in prefs.favorite_views:
                prefs.favorite_views.append(view_path)

        prefs, _ = await self._mutate(user_id, organization_id, apply)
        return prefs

    async def remove_favorite_view(self, user_id: str, organization_id: str, view_path: str) -> UserPreferences:
        def apply(prefs: UserPreferences) -> None:
            prefs.favorite_views = [v for v in prefs.favorite_views if v != view_path]

        prefs, _ = await self._mutate(user_id, organization_id, apply)
        return prefs

    async def set_shortcut(self, user_id: str, organization_id: str, key_combo: str, action: str) -> UserPreferences:
        _require("key_combo", key_combo)
        _require("action", action)

        def apply(prefs: UserPreferences) -> None:
            prefs.shortcuts[key_combo] = action

        prefs, _ = await self._mutate(user_id, organization_id, apply)
        return prefs

    async def clear_cache(self, user_id: str, organization_id: str) -> None:
        """Drop the cached document; the next read reloads from the store of record."""
        await self._store.delete(self._prefs_key(user_id, organization_id))
        logger.debug("Preferences cache cleared: user={} org={}", user_id, organization_id)

    # -- Interactions ----------------------------------------------------------

    async def track_interaction(self, event: InteractionEvent | dict[str, Any]) -> None:
        """Append to the interaction log and bump the resource's recently-used list."""
        if not isinstance(event, InteractionEvent):
            try:
                event = InteractionEvent.model_validate(event)
            except pydantic.ValidationError as e:
                raise ValidationError(str(e)) from e

        await self._store.push_capped(
            self._interactions_key(event.user_id, event.organization_id),
            event.model_dump_json(),
            cap=self._max_interactions,
            ttl=self._interaction_ttl,
        )
        await self._mutate(
            event.user_id,
            event.organization_id,
            lambda p: p.mark_recent(event.resource, event.resource_id, self._max_recent),
        )
        logger.debug("Interaction tracked: {} {} {}", event.type, event.resource, event.resource_id)

    async def get_interactions(self, user_id: str, organization_id: str) -> list[InteractionEvent]:
        """Return the retained interaction log, newest first."""
        raw = await self._store.list_range(self._interactions_key(user_id, organization_id), 0, -1)
        return [InteractionEvent.model_validate_json(item) for item in raw]

    async def get_adaptive_insights(self, user_id: str, organization_id: str) -> AdaptiveInsights:
        """Derive usage rankings and activity hours purely from the interaction log."""
        events = await self.get_interactions(user_id, organization_id)

        agents: Counter[str] = Counter()
        connectors: Counter[str] = Counter()
        models: Counter[str] = Counter()
        hours: Counter[int] = Counter()
        for event in events:
            if event.resource == "agent":
                agents[event.resource_id] += 1
            elif event.resource == "connector":
                connectors[event.resource_id] += 1
            model = event.metadata.get("model")
            if isinstance(model, str) and model:
                models[model] += 1
            hours[event.timestamp.hour] += 1

        return AdaptiveInsights(
            user_id=user_id,
            total_interactions=len(events),
            most_used_agents=[UsageCount(id=i, count=c) for i, c in agents.most_common(_TOP_RESOURCES)],
            most_used_connectors=[UsageCount(id=i, count=c) for i, c in connectors.most_common(_TOP_RESOURCES)],
            preferred_models=[ModelUsage(model=m, count=c) for m, c in models.most_common(_TOP_RESOURCES)],
            peak_activity_hours=[HourActivity(hour=h, count=c) for h, c in hours.most_common(_TOP_HOURS)],
        )
