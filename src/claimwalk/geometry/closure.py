"""
Loop-closure detection.

A walk is closed once it has enough points and its latest point is back within
`closure_threshold_m` of its first point. Closure is a one-way latch for a session:
after it fires, further checks report "closed" without re-measuring until `reset()`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from claimwalk.config.settings import ClaimSettings
from claimwalk.core.events import EngineEvent, EventSink, LoggingEventSink
from claimwalk.core.geo import LatLon, haversine_m


@dataclass(frozen=True)
class ClosureStatus:
    is_closed: bool
    point_count: int
    # None until the path has the minimum number of points.
    distance_to_start_m: float | None = None
    remaining_m: float | None = None
    just_closed: bool = False


class ClosureDetector:
    def __init__(
        self,
        *,
        closure_threshold_m: float = 30.0,
        min_path_points: int = 10,
        events: EventSink | None = None,
    ):
        if closure_threshold_m <= 0:
            raise ValueError("closure_threshold_m must be > 0")
        if min_path_points < 2:
            raise ValueError("min_path_points must be >= 2")
        self.closure_threshold_m = float(closure_threshold_m)
        self.min_path_points = int(min_path_points)
        self._events = events or LoggingEventSink("closure")
        self._closed = False
        self._closing_distance_m: float | None = None

    @classmethod
    def from_settings(cls, cfg: ClaimSettings, *, events: EventSink | None = None) -> "ClosureDetector":
        return cls(
            closure_threshold_m=cfg.closure_threshold_m,
            min_path_points=cfg.min_path_points,
            events=events,
        )

    @property
    def is_closed(self) -> bool:
        return self._closed

    def reset(self) -> None:
        self._closed = False
        self._closing_distance_m = None

    def check(self, path: Sequence[LatLon]) -> ClosureStatus:
        """Evaluate closure for the current path (call after every accepted sample)."""
        count = len(path)
        if self._closed:
            return ClosureStatus(
                is_closed=True,
                point_count=count,
                distance_to_start_m=self._closing_distance_m,
                remaining_m=0.0,
            )

        if count < self.min_path_points:
            return ClosureStatus(is_closed=False, point_count=count)

        distance = haversine_m(path[0], path[-1])
        if distance <= self.closure_threshold_m:
            self._closed = True
            self._closing_distance_m = distance
            self._events.emit(
                EngineEvent.CLOSURE_DETECTED,
                f"loop closed {distance:.1f} m from start",
                distance_m=round(distance, 2),
                points=count,
            )
            return ClosureStatus(
                is_closed=True,
                point_count=count,
                distance_to_start_m=distance,
                remaining_m=0.0,
                just_closed=True,
            )

        remaining = distance - self.closure_threshold_m
        self._events.emit(
            EngineEvent.CLOSURE_PROGRESS,
            f"{distance:.1f} m from start (needs <= {self.closure_threshold_m:.0f} m)",
            level=logging.DEBUG,
            distance_m=round(distance, 2),
        )
        return ClosureStatus(
            is_closed=False,
            point_count=count,
            distance_to_start_m=distance,
            remaining_m=remaining,
        )
