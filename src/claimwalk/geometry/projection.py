"""
WGS-84 -> GCJ-02 display transform.

Maps of mainland China are drawn in the GCJ-02 datum, so raw GPS fixes (WGS-84) are
shifted before display. The transform is closed-form and deterministic. It only applies
inside the rough China bounding box and leaves every other coordinate untouched.

This is presentation only: validation, area and collision math always run on WGS-84.
"""

from __future__ import annotations

from math import cos, pi, sin, sqrt
from typing import Sequence

from claimwalk.core.geo import GeoPoint, LatLon

# Krasovsky 1940 ellipsoid.
SEMI_MAJOR_AXIS = 6378245.0
ECCENTRICITY_SQ = 0.00669342162296594323

CHINA_MIN_LON = 72.004
CHINA_MAX_LON = 137.8347
CHINA_MIN_LAT = 0.8293
CHINA_MAX_LAT = 55.8271


def in_gcj02_region(lat: float, lon: float) -> bool:
    return CHINA_MIN_LON <= lon <= CHINA_MAX_LON and CHINA_MIN_LAT <= lat <= CHINA_MAX_LAT


def _transform_lat(x: float, y: float) -> float:
    ret = -100.0 + 2.0 * x + 3.0 * y + 0.2 * y * y + 0.1 * x * y + 0.2 * sqrt(abs(x))
    ret += (20.0 * sin(6.0 * x * pi) + 20.0 * sin(2.0 * x * pi)) * 2.0 / 3.0
    ret += (20.0 * sin(y * pi) + 40.0 * sin(y / 3.0 * pi)) * 2.0 / 3.0
    ret += (160.0 * sin(y / 12.0 * pi) + 320.0 * sin(y * pi / 30.0)) * 2.0 / 3.0
    return ret


def _transform_lon(x: float, y: float) -> float:
    ret = 300.0 + x + 2.0 * y + 0.1 * x * x + 0.1 * x * y + 0.1 * sqrt(abs(x))
    ret += (20.0 * sin(6.0 * x * pi) + 20.0 * sin(2.0 * x * pi)) * 2.0 / 3.0
    ret += (20.0 * sin(x * pi) + 40.0 * sin(x / 3.0 * pi)) * 2.0 / 3.0
    ret += (150.0 * sin(x / 12.0 * pi) + 300.0 * sin(x / 30.0 * pi)) * 2.0 / 3.0
    return ret


def wgs84_to_gcj02(point: LatLon) -> GeoPoint:
    """Shift a WGS-84 point into GCJ-02; points outside the region are returned as-is."""
    lat = float(point.lat)
    lon = float(point.lon)
    if not in_gcj02_region(lat, lon):
        return GeoPoint(lat=lat, lon=lon)

    d_lat = _transform_lat(lon - 105.0, lat - 35.0)
    d_lon = _transform_lon(lon - 105.0, lat - 35.0)

    rad_lat = lat / 180.0 * pi
    magic = sin(rad_lat)
    magic = 1 - ECCENTRICITY_SQ * magic * magic
    sqrt_magic = sqrt(magic)

    d_lat = (d_lat * 180.0) / ((SEMI_MAJOR_AXIS * (1 - ECCENTRICITY_SQ)) / (magic * sqrt_magic) * pi)
    d_lon = (d_lon * 180.0) / (SEMI_MAJOR_AXIS / sqrt_magic * cos(rad_lat) * pi)

    return GeoPoint(lat=lat + d_lat, lon=lon + d_lon)


def wgs84_to_gcj02_many(points: Sequence[LatLon]) -> list[GeoPoint]:
    return [wgs84_to_gcj02(p) for p in points]
