"""
Append-only walked path shared between the sampler and the collision poller.
"""

from __future__ import annotations

import threading
from typing import Iterable

from claimwalk.core.geo import GeoPoint, LatLon, path_length_m, to_geo_point


class TrackedPath:
    """Ordered points recorded during one session.

    The sampler appends; the collision poller and the validator read `snapshot()` copies,
    so a reader never observes a list that is being appended to.
    """

    def __init__(self, points: Iterable[LatLon] = ()):
        self._lock = threading.Lock()
        self._points: list[GeoPoint] = [to_geo_point(p) for p in points]

    def append(self, point: LatLon) -> int:
        """Append a point and return the new length."""
        with self._lock:
            self._points.append(to_geo_point(point))
            return len(self._points)

    def snapshot(self) -> list[GeoPoint]:
        with self._lock:
            return list(self._points)

    def clear(self) -> None:
        with self._lock:
            self._points.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._points)

    @property
    def first(self) -> GeoPoint | None:
        with self._lock:
            return self._points[0] if self._points else None

    @property
    def last(self) -> GeoPoint | None:
        with self._lock:
            return self._points[-1] if self._points else None

    def length_m(self) -> float:
        return path_length_m(self.snapshot())
