"""
Distance -> reward tier mapping.

Breakpoints are fixed game-design constants (not settings): the same walk must earn the
same tier on every device. Both the claim and exploration flows use this module.
"""

from __future__ import annotations

from enum import Enum

RARITY_LEVELS = ("common", "uncommon", "rare", "epic", "legendary")


class RewardTier(str, Enum):
    NONE = "none"
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    DIAMOND = "diamond"

    @property
    def min_distance_m(self) -> float:
        return _MIN_DISTANCE_M[self]

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def item_count(self) -> int:
        return _ITEM_COUNTS[self]

    @property
    def rarity_probabilities(self) -> dict[str, float]:
        """Chance of each rarity per reward item (sums to 1, or all zeros for NONE)."""
        return dict(zip(RARITY_LEVELS, _RARITY_WEIGHTS[self]))

    @classmethod
    def from_distance(cls, distance_m: float) -> "RewardTier":
        tier = cls.NONE
        for candidate in _ORDER:
            if distance_m >= candidate.min_distance_m:
                tier = candidate
        return tier


_ORDER = (RewardTier.NONE, RewardTier.BRONZE, RewardTier.SILVER, RewardTier.GOLD, RewardTier.DIAMOND)

_MIN_DISTANCE_M = {
    RewardTier.NONE: 0.0,
    RewardTier.BRONZE: 200.0,
    RewardTier.SILVER: 500.0,
    RewardTier.GOLD: 1000.0,
    RewardTier.DIAMOND: 2000.0,
}

_DISPLAY_NAMES = {
    RewardTier.NONE: "No reward",
    RewardTier.BRONZE: "Bronze",
    RewardTier.SILVER: "Silver",
    RewardTier.GOLD: "Gold",
    RewardTier.DIAMOND: "Diamond",
}

_ITEM_COUNTS = {
    RewardTier.NONE: 0,
    RewardTier.BRONZE: 1,
    RewardTier.SILVER: 2,
    RewardTier.GOLD: 3,
    RewardTier.DIAMOND: 5,
}

_RARITY_WEIGHTS = {
    RewardTier.NONE: (0.0, 0.0, 0.0, 0.0, 0.0),
    RewardTier.BRONZE: (0.70, 0.20, 0.10, 0.0, 0.0),
    RewardTier.SILVER: (0.50, 0.25, 0.20, 0.05, 0.0),
    RewardTier.GOLD: (0.30, 0.25, 0.25, 0.15, 0.05),
    RewardTier.DIAMOND: (0.15, 0.20, 0.30, 0.25, 0.10),
}


def next_tier_info(distance_m: float) -> tuple[RewardTier, float] | None:
    """Return (next tier, meters still to walk), or None at the top tier."""
    current = RewardTier.from_distance(distance_m)
    index = _ORDER.index(current)
    if index + 1 >= len(_ORDER):
        return None
    upcoming = _ORDER[index + 1]
    return upcoming, upcoming.min_distance_m - distance_m


def distance_to_next_tier(distance_m: float) -> float:
    info = next_tier_info(distance_m)
    return info[1] if info is not None else 0.0
