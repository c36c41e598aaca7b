import pytest

from claimwalk.core.geo import GeoPoint
from claimwalk.geometry.projection import in_gcj02_region, wgs84_to_gcj02, wgs84_to_gcj02_many
from claimwalk.rewards.tiers import RewardTier, distance_to_next_tier, next_tier_info


@pytest.mark.parametrize(
    "distance, tier",
    [
        (0, RewardTier.NONE),
        (199.9, RewardTier.NONE),
        (200, RewardTier.BRONZE),
        (499, RewardTier.BRONZE),
        (500, RewardTier.SILVER),
        (1000, RewardTier.GOLD),
        (1999, RewardTier.GOLD),
        (2000, RewardTier.DIAMOND),
        (25_000, RewardTier.DIAMOND),
    ],
)
def test_tier_breakpoints(distance, tier):
    assert RewardTier.from_distance(distance) is tier


def test_tier_is_monotonic_in_distance():
    order = list(RewardTier)
    previous = 0
    for d in range(0, 3000, 25):
        rank = order.index(RewardTier.from_distance(d))
        assert rank >= previous
        previous = rank


def test_next_tier_and_remaining_distance():
    assert next_tier_info(150) == (RewardTier.BRONZE, 50)
    assert next_tier_info(1200) == (RewardTier.DIAMOND, 800)
    assert next_tier_info(2500) is None
    assert distance_to_next_tier(2500) == 0.0
    assert distance_to_next_tier(450) == 50


def test_tier_metadata():
    assert [t.item_count for t in RewardTier] == [0, 1, 2, 3, 5]
    assert RewardTier.GOLD.display_name == "Gold"
    for tier in RewardTier:
        total = sum(tier.rarity_probabilities.values())
        assert total == pytest.approx(0.0 if tier is RewardTier.NONE else 1.0)
    assert RewardTier.DIAMOND.rarity_probabilities["legendary"] == pytest.approx(0.10)


def test_projection_reference_point():
    shifted = wgs84_to_gcj02(GeoPoint(lat=39.915, lon=116.404))
    assert shifted.lat == pytest.approx(39.91640428150164, abs=1e-6)
    assert shifted.lon == pytest.approx(116.41024449916938, abs=1e-6)


def test_projection_is_deterministic():
    p = GeoPoint(lat=31.2304, lon=121.4737)
    assert wgs84_to_gcj02(p) == wgs84_to_gcj02(p)
    assert wgs84_to_gcj02_many([p, p]) == [wgs84_to_gcj02(p)] * 2


def test_projection_leaves_points_outside_china_unchanged():
    for p in [GeoPoint(lat=48.8566, lon=2.3522), GeoPoint(lat=-33.86, lon=151.21), GeoPoint(lat=60.0, lon=100.0)]:
        assert not in_gcj02_region(p.lat, p.lon)
        assert wgs84_to_gcj02(p) == p


def test_projection_shift_is_a_few_hundred_meters():
    p = GeoPoint(lat=31.2304, lon=121.4737)
    shifted = wgs84_to_gcj02(p)
    assert 0 < abs(shifted.lat - p.lat) < 0.01
    assert 0 < abs(shifted.lon - p.lon) < 0.01
