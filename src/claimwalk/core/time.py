"""
Time parsing and timezone normalization.

The engine compares fix timestamps, speed deadlines and tick clocks with each other, so
everything is kept timezone-aware to avoid mixing naive and aware datetimes.
"""

from __future__ import annotations

from datetime import datetime, timezone


def ensure_tz(dt: datetime, tz: timezone = timezone.utc) -> datetime:
    """Ensure `dt` has tzinfo; attach `tz` (UTC by default) if naive."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt


def parse_datetime(value: str) -> datetime:
    """Parse ISO-8601 datetime string and ensure tzinfo is present.

    Notes:
    - Accepts a trailing `Z` (UTC) and converts it to `+00:00` for `fromisoformat`.
    - Naive values are treated as UTC.
    """
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return ensure_tz(datetime.fromisoformat(value))


def seconds_between(earlier: datetime, later: datetime) -> float:
    """Elapsed seconds from `earlier` to `later` (negative when out of order)."""
    return (later - earlier).total_seconds()
