"""
Feature toggle gate tests
"""
import pytest

from hostel_complaints.exceptions import NotFoundError
from hostel_complaints.models.feature_toggle import FeatureToggle
from hostel_complaints.services.feature_toggles import (
    DUPLICATE_DETECTION, DatabaseFeatureToggles, StaticFeatureToggles,
    get_toggle, list_toggles, seed_default_toggles, set_toggle,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


async def test_missing_key_fails_open(db_session):
    provider = DatabaseFeatureToggles(ttl_seconds=30)
    assert await provider.is_enabled(db_session, "no_such_feature") is True


async def test_static_toggles():
    provider = StaticFeatureToggles({DUPLICATE_DETECTION: False})
    assert await provider.is_enabled(None, DUPLICATE_DETECTION) is False
    assert await provider.is_enabled(None, "anything_else") is True


async def test_cache_holds_until_ttl(db_session, seed_data):
    clock = FakeClock()
    provider = DatabaseFeatureToggles(ttl_seconds=30, clock=clock)
    assert await provider.is_enabled(db_session, DUPLICATE_DETECTION) is True

    # Written behind the provider's back: stale value until the ttl passes
    toggle = await get_toggle(db_session, DUPLICATE_DETECTION)
    toggle.enabled = False
    await db_session.commit()
    assert await provider.is_enabled(db_session, DUPLICATE_DETECTION) is True

    clock.now += 31
    assert await provider.is_enabled(db_session, DUPLICATE_DETECTION) is False


async def test_set_toggle_invalidates_provider(db_session, seed_data):
    provider = DatabaseFeatureToggles(ttl_seconds=300, clock=FakeClock())
    assert await provider.is_enabled(db_session, DUPLICATE_DETECTION) is True

    await set_toggle(db_session, DUPLICATE_DETECTION, False, provider=provider)
    await db_session.commit()
    assert await provider.is_enabled(db_session, DUPLICATE_DETECTION) is False


async def test_set_unknown_toggle(db_session):
    with pytest.raises(NotFoundError) as exc:
        await set_toggle(db_session, "mystery", True)
    assert exc.value.message == "Feature not found"


async def test_seed_is_idempotent(db_session):
    assert await seed_default_toggles(db_session) == 1
    assert await seed_default_toggles(db_session) == 0

    db_session.add(FeatureToggle(key="another", name="Another", description="", enabled=False))
    await db_session.flush()
    keys = [t.key for t in await list_toggles(db_session)]
    assert keys == sorted(keys)
    assert DUPLICATE_DETECTION in keys
