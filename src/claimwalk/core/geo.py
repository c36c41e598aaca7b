from __future__ import annotations
from dataclasses import dataclass
from math import asin, cos, radians, sin, sqrt
from typing import Protocol, Sequence

"""
Geospatial helpers.

We keep a tiny geometry layer here so the tracking, validation and collision modules can
share distance and orientation math without pulling in heavier GIS dependencies.

Planar tests (`ccw`, `segments_intersect`, `point_in_polygon`) treat longitude as x and
latitude as y. That approximation holds at the scale of a walked loop.
"""

EARTH_RADIUS_M = 6_371_000.0


class LatLon(Protocol):
    """Anything exposing `lat`/`lon` in decimal degrees (core or domain points)."""

    @property
    def lat(self) -> float: ...

    @property
    def lon(self) -> float: ...


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in decimal degrees."""

    lat: float
    lon: float


def to_geo_point(p: LatLon) -> GeoPoint:
    """Normalize any lat/lon carrier into a core `GeoPoint`."""
    if isinstance(p, GeoPoint):
        return p
    return GeoPoint(lat=float(p.lat), lon=float(p.lon))


def haversine_m(a: LatLon, b: LatLon) -> float:
    """Compute great-circle distance in meters between two points."""
    lat1 = radians(a.lat)
    lon1 = radians(a.lon)
    lat2 = radians(b.lat)
    lon2 = radians(b.lon)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_M * asin(min(1.0, sqrt(h)))


def path_length_m(points: Sequence[LatLon]) -> float:
    """Sum of consecutive great-circle distances (open path, no wrap-around)."""
    return sum(haversine_m(points[i], points[i + 1]) for i in range(len(points) - 1))


def ccw(a: LatLon, b: LatLon, c: LatLon) -> bool:
    """True when a -> b -> c turns counter-clockwise (strictly)."""
    return (c.lat - a.lat) * (b.lon - a.lon) > (b.lat - a.lat) * (c.lon - a.lon)


def segments_intersect(p1: LatLon, p2: LatLon, p3: LatLon, p4: LatLon) -> bool:
    """Whether segment p1-p2 properly crosses segment p3-p4.

    The orientation tests are strict, so collinear overlaps never count as crossings.
    Segments that only share an endpoint may be reported either way; callers skip
    adjacent segments.
    """
    return ccw(p1, p3, p4) != ccw(p2, p3, p4) and ccw(p1, p2, p3) != ccw(p1, p2, p4)


def point_in_polygon(point: LatLon, polygon: Sequence[LatLon]) -> bool:
    """Ray-casting containment test; the polygon is implicitly closed.

    Polygons with fewer than 3 vertices contain nothing.
    """
    n = len(polygon)
    if n < 3:
        return False

    x = point.lon
    y = point.lat
    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = polygon[i].lon, polygon[i].lat
        xj, yj = polygon[j].lon, polygon[j].lat
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def bounding_box(points: Sequence[LatLon]) -> tuple[float, float, float, float]:
    """Return (min_lat, max_lat, min_lon, max_lon); all zeros for an empty sequence."""
    if not points:
        return 0.0, 0.0, 0.0, 0.0
    lats = [p.lat for p in points]
    lons = [p.lon for p in points]
    return min(lats), max(lats), min(lons), max(lons)
