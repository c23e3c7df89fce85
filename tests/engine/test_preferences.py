"""Tests for PreferenceStore: preferences, recency tracking, insights."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from contextcore.engine.errors import ValidationError
from contextcore.engine.managers.preferences import PreferenceStore, StateStoreProfiles
from contextcore.engine.models.enums import InteractionType, Theme, UIMode
from contextcore.engine.models.preferences import InteractionEvent, PreferencesUpdate, UserPreferences
from contextcore.engine.store.memory import MemoryStateStore

USER = "user-1"
ORG = "org-1"


def _event(resource: str, resource_id: str, **kwargs) -> InteractionEvent:
    return InteractionEvent(
        user_id=USER,
        organization_id=ORG,
        type=kwargs.pop("type", InteractionType.ACTION),
        resource=resource,
        resource_id=resource_id,
        **kwargs,
    )


class InMemoryProfiles:
    """ProfileStore double that records saves."""

    def __init__(self) -> None:
        self.records: dict[tuple[str, str], UserPreferences] = {}

    async def load(self, user_id: str, organization_id: str) -> UserPreferences | None:
        return self.records.get((user_id, organization_id))

    async def save(self, preferences: UserPreferences) -> None:
        self.records[(preferences.user_id, preferences.organization_id)] = preferences


class SlowFirstSaveProfiles(InMemoryProfiles):
    """Delays the first save so a later mutation's save can overtake it."""

    def __init__(self) -> None:
        super().__init__()
        self.saves = 0

    async def save(self, preferences: UserPreferences) -> None:
        self.saves += 1
        if self.saves == 1:
            await asyncio.sleep(0.05)
        await super().save(preferences)


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------


async def test_defaults_for_new_user(preferences: PreferenceStore) -> None:
    prefs = await preferences.get_user_preferences(USER, ORG)
    assert prefs.user_id == USER
    assert prefs.organization_id == ORG
    assert prefs.theme == Theme.AUTO
    assert prefs.ui_mode == UIMode.COMFORTABLE
    assert prefs.language == "en"
    assert prefs.favorite_views == []
    assert prefs.pinned_agents == []
    assert prefs.recent_agents == []


async def test_get_materialises_cached_document(preferences: PreferenceStore, store: MemoryStateStore) -> None:
    await preferences.get_user_preferences(USER, ORG)
    assert await store.exists(f"prefs:{USER}:{ORG}")


async def test_empty_ids_rejected(preferences: PreferenceStore) -> None:
    with pytest.raises(ValidationError):
        await preferences.get_user_preferences("", ORG)


async def test_update_preferences_applies_only_set_fields(preferences: PreferenceStore) -> None:
    await preferences.update_preferences(USER, ORG, {"language": "de", "default_view": "/dashboard"})
    prefs = await preferences.update_preferences(USER, ORG, PreferencesUpdate(theme=Theme.DARK))

    assert prefs.theme == Theme.DARK
    assert prefs.language == "de"
    assert prefs.default_view == "/dashboard"
    assert prefs.ui_mode == UIMode.COMFORTABLE
    assert prefs.updated_at is not None


async def test_update_preferences_can_clear_default_view(preferences: PreferenceStore) -> None:
    await preferences.update_preferences(USER, ORG, {"default_view": "/dashboard"})
    prefs = await preferences.update_preferences(USER, ORG, {"default_view": None})
    assert prefs.default_view is None


async def test_update_preferences_rejects_unknown_fields(preferences: PreferenceStore) -> None:
    with pytest.raises(ValidationError):
        await preferences.update_preferences(USER, ORG, {"colour": "blue"})
    with pytest.raises(ValidationError):
        await preferences.update_preferences(USER, ORG, {"theme": "neon"})


async def test_preferences_are_scoped_per_organization(preferences: PreferenceStore) -> None:
    await preferences.update_preferences(USER, ORG, {"theme": "dark"})
    other = await preferences.get_user_preferences(USER, "org-2")
    assert other.theme == Theme.AUTO


# ---------------------------------------------------------------------------
# Pins, favorites, shortcuts
# ---------------------------------------------------------------------------


async def test_toggle_pin_twice_restores_state(preferences: PreferenceStore) -> None:
    assert await preferences.toggle_pin(USER, ORG, "agent", "agent-1") is True
    prefs = await preferences.get_user_preferences(USER, ORG)
    assert prefs.pinned_agents == ["agent-1"]

    assert await preferences.toggle_pin(USER, ORG, "agent", "agent-1") is False
    prefs = await preferences.get_user_preferences(USER, ORG)
    assert prefs.pinned_agents == []


async def test_pins_are_kept_per_resource_type(preferences: PreferenceStore) -> None:
    await preferences.toggle_pin(USER, ORG, "agent", "x")
    await preferences.toggle_pin(USER, ORG, "connector", "x")
    prefs = await preferences.get_user_preferences(USER, ORG)
    assert prefs.pinned == {"agent": ["x"], "connector": ["x"]}


async def test_favorite_views_have_no_duplicates(preferences: PreferenceStore) -> None:
    await preferences.add_favorite_view(USER, ORG, "/a")
    await preferences.add_favorite_view(USER, ORG, "/b")
    prefs = await preferences.add_favorite_view(USER, ORG, "/a")
    assert prefs.favorite_views == ["/a", "/b"]

    prefs = await preferences.remove_favorite_view(USER, ORG, "/a")
    assert prefs.favorite_views == ["/b"]
    prefs = await preferences.remove_favorite_view(USER, ORG, "/missing")
    assert prefs.favorite_views == ["/b"]


async def test_set_shortcut_overwrites(preferences: PreferenceStore) -> None:
    await preferences.set_shortcut(USER, ORG, "ctrl+k", "search")
    prefs = await preferences.set_shortcut(USER, ORG, "ctrl+k", "command-palette")
    assert prefs.shortcuts == {"ctrl+k": "command-palette"}


# ---------------------------------------------------------------------------
# Interactions and recency
# ---------------------------------------------------------------------------


async def test_recently_used_is_most_recent_first(preferences: PreferenceStore) -> None:
    await preferences.track_interaction(_event("agent", "A"))
    await preferences.track_interaction(_event("agent", "B"))
    prefs = await preferences.get_user_preferences(USER, ORG)
    assert prefs.recent_agents == ["B", "A"]

    await preferences.track_interaction(_event("agent", "A"))
    prefs = await preferences.get_user_preferences(USER, ORG)
    assert prefs.recent_agents == ["A", "B"]


async def test_recently_used_is_bounded(store: MemoryStateStore) -> None:
    preferences = PreferenceStore(store, max_recent=3)
    for i in range(5):
        await preferences.track_interaction(_event("agent", f"a{i}"))
    prefs = await preferences.get_user_preferences(USER, ORG)
    assert prefs.recent_agents == ["a4", "a3", "a2"]


async def test_interaction_log_is_capped(store: MemoryStateStore) -> None:
    preferences = PreferenceStore(store, max_interactions=5)
    for i in range(8):
        await preferences.track_interaction(_event("view", f"v{i}", type=InteractionType.VIEW))

    events = await preferences.get_interactions(USER, ORG)
    assert [e.resource_id for e in events] == ["v7", "v6", "v5", "v4", "v3"]


async def test_track_interaction_accepts_dict(preferences: PreferenceStore) -> None:
    await preferences.track_interaction(
        {
            "user_id": USER,
            "organization_id": ORG,
            "type": "connector_usage",
            "resource": "connector",
            "resource_id": "crm",
        }
    )
    events = await preferences.get_interactions(USER, ORG)
    assert events[0].type == InteractionType.CONNECTOR_USAGE


async def test_track_interaction_rejects_invalid(preferences: PreferenceStore) -> None:
    with pytest.raises(ValidationError):
        await preferences.track_interaction({"user_id": USER, "organization_id": ORG, "type": "scroll"})


# ---------------------------------------------------------------------------
# Insights
# ---------------------------------------------------------------------------


async def test_insights_empty_for_new_user(preferences: PreferenceStore) -> None:
    insights = await preferences.get_adaptive_insights(USER, ORG)
    assert insights.user_id == USER
    assert insights.total_interactions == 0
    assert insights.most_used_agents == []
    assert insights.most_used_connectors == []
    assert insights.preferred_models == []
    assert insights.peak_activity_hours == []


async def test_insights_rank_usage(preferences: PreferenceStore) -> None:
    at_nine = datetime(2026, 1, 5, 9, 30, tzinfo=UTC)
    at_ten = datetime(2026, 1, 5, 10, 15, tzinfo=UTC)
    large = {"model": "m-large"}
    small = {"model": "m-small"}
    for _ in range(3):
        await preferences.track_interaction(_event("agent", "writer", metadata=large, timestamp=at_nine))
    await preferences.track_interaction(_event("agent", "coder", metadata=small, timestamp=at_ten))
    await preferences.track_interaction(_event("connector", "crm", timestamp=at_ten))

    insights = await preferences.get_adaptive_insights(USER, ORG)
    assert insights.total_interactions == 5
    assert [(u.id, u.count) for u in insights.most_used_agents] == [("writer", 3), ("coder", 1)]
    assert [(u.id, u.count) for u in insights.most_used_connectors] == [("crm", 1)]
    assert [(m.model, m.count) for m in insights.preferred_models] == [("m-large", 3), ("m-small", 1)]
    assert [(h.hour, h.count) for h in insights.peak_activity_hours] == [(9, 3), (10, 2)]


# ---------------------------------------------------------------------------
# Cache and profile store
# ---------------------------------------------------------------------------


async def test_clear_cache_keeps_preferences(preferences: PreferenceStore, store: MemoryStateStore) -> None:
    await preferences.update_preferences(USER, ORG, {"theme": "dark"})
    await preferences.add_favorite_view(USER, ORG, "/reports")

    await preferences.clear_cache(USER, ORG)
    assert not await store.exists(f"prefs:{USER}:{ORG}")

    prefs = await preferences.get_user_preferences(USER, ORG)
    assert prefs.theme == Theme.DARK
    assert prefs.favorite_views == ["/reports"]


async def test_preferences_outlive_cache_ttl(store: MemoryStateStore, clock) -> None:
    preferences = PreferenceStore(store, cache_ttl_seconds=60)
    await preferences.update_preferences(USER, ORG, {"theme": "dark"})
    clock.advance(61)
    assert not await store.exists(f"prefs:{USER}:{ORG}")

    prefs = await preferences.get_user_preferences(USER, ORG)
    assert prefs.theme == Theme.DARK


async def test_reads_refresh_cache_ttl(store: MemoryStateStore, clock) -> None:
    preferences = PreferenceStore(store, cache_ttl_seconds=60)
    await preferences.get_user_preferences(USER, ORG)
    for _ in range(3):
        clock.advance(45)
        await preferences.get_user_preferences(USER, ORG)
    assert await store.exists(f"prefs:{USER}:{ORG}")


async def test_mutations_bump_revision(preferences: PreferenceStore) -> None:
    first = await preferences.update_preferences(USER, ORG, {"theme": "dark"})
    second = await preferences.add_favorite_view(USER, ORG, "/a")
    assert second.revision == first.revision + 1


async def test_state_store_profiles_keep_newest_revision(store: MemoryStateStore) -> None:
    profiles = StateStoreProfiles(store)
    newer = UserPreferences(user_id=USER, organization_id=ORG, theme=Theme.DARK, revision=2)
    older = UserPreferences(user_id=USER, organization_id=ORG, theme=Theme.LIGHT, revision=1)

    await profiles.save(newer)
    await profiles.save(older)

    loaded = await profiles.load(USER, ORG)
    assert loaded.theme == Theme.DARK
    assert loaded.revision == 2
    assert await profiles.load(USER, "org-2") is None


async def test_profile_store_is_written_through_and_reloaded(store: MemoryStateStore) -> None:
    profiles = InMemoryProfiles()
    preferences = PreferenceStore(store, profiles=profiles)

    await preferences.update_preferences(USER, ORG, {"theme": "light"})
    assert profiles.records[(USER, ORG)].theme == Theme.LIGHT

    await preferences.clear_cache(USER, ORG)
    prefs = await preferences.get_user_preferences(USER, ORG)
    assert prefs.theme == Theme.LIGHT


async def test_slow_write_through_does_not_overwrite_later_mutation(store: MemoryStateStore) -> None:
    profiles = SlowFirstSaveProfiles()
    preferences = PreferenceStore(store, profiles=profiles)

    await asyncio.gather(
        preferences.add_favorite_view(USER, ORG, "/a"),
        preferences.add_favorite_view(USER, ORG, "/b"),
    )
    assert profiles.records[(USER, ORG)].favorite_views == ["/a", "/b"]

    await preferences.clear_cache(USER, ORG)
    prefs = await preferences.get_user_preferences(USER, ORG)
    assert prefs.favorite_views == ["/a", "/b"]
