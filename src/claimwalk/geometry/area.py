"""
Geodesic polygon area.

Uses the spherical-excess form of the shoelace formula:

    area = |Σ (λ[i+1] − λ[i]) · (2 + sin φ[i] + sin φ[i+1])| · R² / 2

over the ring closed back to its first vertex (λ = longitude, φ = latitude, radians).
Taking the absolute value makes the result independent of winding direction.
"""

from __future__ import annotations

from math import radians, sin
from typing import Sequence

from claimwalk.core.geo import EARTH_RADIUS_M, LatLon


def polygon_area_m2(points: Sequence[LatLon]) -> float:
    """Area in square meters enclosed by `points`; 0.0 for fewer than 3 vertices."""
    n = len(points)
    if n < 3:
        return 0.0

    total = 0.0
    for i in range(n):
        p1 = points[i]
        p2 = points[(i + 1) % n]
        lon1 = radians(p1.lon)
        lon2 = radians(p2.lon)
        lat1 = radians(p1.lat)
        lat2 = radians(p2.lat)
        total += (lon2 - lon1) * (2 + sin(lat1) + sin(lat2))

    return abs(total * EARTH_RADIUS_M * EARTH_RADIUS_M / 2.0)
