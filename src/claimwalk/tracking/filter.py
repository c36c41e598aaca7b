"""
Raw location fix -> path point filter.

Each fix goes through the same ordered checks:

1. accuracy (only when accuracy filtering is enabled for the flow)
2. minimum time since the last recorded fix
3. the first fix is always recorded
4. speed since the last recorded fix, handed to the speed guard (a terminate decision drops the fix)
5. moves shorter than `min_record_distance_m` are dropped
6. moves longer than `max_single_move_m` are dropped as GPS glitches
7. while the guard reports "over the limit" the cursor moves but no point is recorded

Dropped fixes never touch the path. The filter does no I/O beyond emitting events.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from claimwalk.config.settings import Settings
from claimwalk.core.events import EngineEvent, EventSink, LoggingEventSink
from claimwalk.core.geo import GeoPoint, haversine_m
from claimwalk.core.time import seconds_between
from claimwalk.domain.models import TimedFix
from claimwalk.tracking.path import TrackedPath
from claimwalk.tracking.speed import SpeedDecision, SpeedGuard


class SampleVerdict(str, Enum):
    ACCEPTED = "accepted"
    REJECTED_ACCURACY = "rejected_accuracy"
    THROTTLED = "throttled"
    TOO_CLOSE = "too_close"
    JUMP = "jump"
    OVER_LIMIT = "over_limit"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class FilterOutcome:
    verdict: SampleVerdict
    distance_m: float = 0.0
    speed_kmh: float = 0.0
    decision: SpeedDecision | None = None

    @property
    def accepted(self) -> bool:
        return self.verdict is SampleVerdict.ACCEPTED


class SampleFilter:
    def __init__(
        self,
        path: TrackedPath,
        guard: SpeedGuard,
        *,
        accuracy_filter_enabled: bool = True,
        max_accuracy_m: float = 50.0,
        min_time_interval_s: float = 2.0,
        min_record_distance_m: float = 5.0,
        max_single_move_m: float = 100.0,
        events: EventSink | None = None,
    ):
        if min_record_distance_m >= max_single_move_m:
            raise ValueError("min_record_distance_m must be below max_single_move_m")
        self.path = path
        self.guard = guard
        self.accuracy_filter_enabled = bool(accuracy_filter_enabled)
        self.max_accuracy_m = float(max_accuracy_m)
        self.min_time_interval_s = float(min_time_interval_s)
        self.min_record_distance_m = float(min_record_distance_m)
        self.max_single_move_m = float(max_single_move_m)
        self._events = events or LoggingEventSink("sampling")
        self._last_point: GeoPoint | None = None
        self._last_time: datetime | None = None

    @classmethod
    def for_claim(
        cls, settings: Settings, path: TrackedPath, guard: SpeedGuard, *, events: EventSink | None = None
    ) -> "SampleFilter":
        return cls(
            path,
            guard,
            accuracy_filter_enabled=settings.claim.accuracy_filter_enabled,
            max_accuracy_m=settings.sampling.max_accuracy_m,
            min_time_interval_s=settings.sampling.min_time_interval_s,
            min_record_distance_m=settings.claim.min_record_distance_m,
            max_single_move_m=settings.sampling.max_single_move_m,
            events=events,
        )

    @classmethod
    def for_exploration(
        cls, settings: Settings, path: TrackedPath, guard: SpeedGuard, *, events: EventSink | None = None
    ) -> "SampleFilter":
        return cls(
            path,
            guard,
            accuracy_filter_enabled=settings.exploration.accuracy_filter_enabled,
            max_accuracy_m=settings.sampling.max_accuracy_m,
            min_time_interval_s=settings.sampling.min_time_interval_s,
            min_record_distance_m=settings.exploration.min_record_distance_m,
            max_single_move_m=settings.sampling.max_single_move_m,
            events=events,
        )

    @property
    def last_point(self) -> GeoPoint | None:
        return self._last_point

    def reset(self) -> None:
        self._last_point = None
        self._last_time = None

    def _move_cursor(self, point: GeoPoint, at: datetime) -> None:
        self._last_point = point
        self._last_time = at

    def _reject(
        self,
        verdict: SampleVerdict,
        message: str,
        *,
        distance_m: float = 0.0,
        speed_kmh: float = 0.0,
        decision: SpeedDecision | None = None,
    ) -> FilterOutcome:
        self._events.emit(EngineEvent.SAMPLE_REJECTED, message, level=logging.DEBUG, verdict=verdict.value)
        return FilterOutcome(verdict=verdict, distance_m=distance_m, speed_kmh=speed_kmh, decision=decision)

    def offer(self, fix: TimedFix) -> FilterOutcome:
        """Run one fix through the checks and append it to the path when it survives."""
        if self.accuracy_filter_enabled and fix.accuracy_m > self.max_accuracy_m:
            return self._reject(
                SampleVerdict.REJECTED_ACCURACY,
                f"accuracy {fix.accuracy_m:.0f} m worse than {self.max_accuracy_m:.0f} m",
            )

        point = fix.point.to_core()
        at = fix.observed_at

        if self._last_point is None or self._last_time is None:
            self.path.append(point)
            self._move_cursor(point, at)
            self._events.emit(EngineEvent.SAMPLE_ACCEPTED, "first point recorded", level=logging.DEBUG, points=1)
            return FilterOutcome(verdict=SampleVerdict.ACCEPTED)

        elapsed = seconds_between(self._last_time, at)
        # Out-of-order or duplicate timestamps are throttled as well.
        if elapsed <= 0 or elapsed < self.min_time_interval_s:
            return self._reject(SampleVerdict.THROTTLED, f"only {elapsed:.1f} s since last recorded fix")

        distance = haversine_m(self._last_point, point)
        speed_kmh = distance / elapsed * 3.6

        decision = self.guard.evaluate(speed_kmh, at)
        if decision.terminates:
            return FilterOutcome(
                verdict=SampleVerdict.TERMINATED, distance_m=distance, speed_kmh=speed_kmh, decision=decision
            )

        if distance < self.min_record_distance_m:
            return self._reject(
                SampleVerdict.TOO_CLOSE,
                f"moved only {distance:.1f} m",
                distance_m=distance,
                speed_kmh=speed_kmh,
                decision=decision,
            )

        if distance > self.max_single_move_m:
            self._events.emit(
                EngineEvent.SAMPLE_GLITCH,
                f"suspected GPS jump of {distance:.0f} m ignored",
                level=logging.WARNING,
                distance_m=round(distance, 1),
            )
            return FilterOutcome(
                verdict=SampleVerdict.JUMP, distance_m=distance, speed_kmh=speed_kmh, decision=decision
            )

        if self.guard.state.is_over_limit:
            self._move_cursor(point, at)
            return FilterOutcome(
                verdict=SampleVerdict.OVER_LIMIT, distance_m=distance, speed_kmh=speed_kmh, decision=decision
            )

        count = self.path.append(point)
        self._move_cursor(point, at)
        self._events.emit(
            EngineEvent.SAMPLE_ACCEPTED,
            f"point recorded ({distance:.1f} m)",
            level=logging.DEBUG,
            points=count,
            speed_kmh=round(speed_kmh, 2),
        )
        return FilterOutcome(
            verdict=SampleVerdict.ACCEPTED, distance_m=distance, speed_kmh=speed_kmh, decision=decision
        )
