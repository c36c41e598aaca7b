"""Display helpers for session metrics."""

from __future__ import annotations


def format_distance(meters: float) -> str:
    if meters >= 1000:
        return f"{meters / 1000:.2f} km"
    return f"{meters:.0f} m"


def format_duration(seconds: float) -> str:
    """`MM:SS`; minutes keep counting past 59."""
    total = max(0, int(seconds))
    minutes, secs = divmod(total, 60)
    return f"{minutes:02d}:{secs:02d}"


def format_speed(kmh: float) -> str:
    return f"{kmh:.1f} km/h"
