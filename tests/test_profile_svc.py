# tests/test_profile_svc.py
from app.domain.models.product import BrowsedItem, CartedItem, UserProfile
from app.domain.services.profile_svc import build_profile, restrict_profile

from conftest import FakeHistory


async def test_anonymous_profile_is_empty():
    history = FakeHistory(browsed=[{"product_id": "1", "total_time_seconds": 10}])
    profile = await build_profile(history, user_id=None, shop="s")
    assert not profile.has_history


async def test_profile_excludes_subjects():
    history = FakeHistory(
        browsed=[{"product_id": "1", "total_time_seconds": 10}, {"product_id": "2", "total_time_seconds": 5}],
        carted=[{"product_id": "1", "count": 2}],
    )
    profile = await build_profile(history, user_id="u1", shop="s", exclude=["1"])
    assert [b.product_id for b in profile.browsed] == ["2"]
    assert profile.carted == []


def test_restrict_profile_drops_non_candidates():
    profile = UserProfile(
        browsed=[BrowsedItem(product_id="1"), BrowsedItem(product_id="9")],
        carted=[CartedItem(product_id="9", count=1), CartedItem(product_id="2", count=1)],
    )
    out = restrict_profile(profile, ["1", "2"])
    assert [b.product_id for b in out.browsed] == ["1"]
    assert [c.product_id for c in out.carted] == ["2"]
