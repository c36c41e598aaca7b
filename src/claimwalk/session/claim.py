"""
Claim session: walk a closed loop to claim the enclosed area.

Flow:
- `start` refuses to begin inside another player's territory
- every fix goes through the sample filter, then the closure detector
- when the loop closes, the path is frozen and validated once
- `poll_collision` runs periodically on a snapshot of the path; a violation ends the session
- a speed above the hard limit ends the session immediately
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from claimwalk.collision.detector import CollisionDetector, CollisionResult
from claimwalk.config.settings import Settings
from claimwalk.core.events import EngineEvent, EventSink
from claimwalk.core.geo import LatLon
from claimwalk.core.time import ensure_tz, seconds_between
from claimwalk.domain.models import Territory, TimedFix
from claimwalk.geometry.closure import ClosureDetector, ClosureStatus
from claimwalk.session.base import SessionPhase, SessionStateError, TrackingSession
from claimwalk.tracking.filter import FilterOutcome, SampleFilter, SampleVerdict
from claimwalk.tracking.speed import ClaimSpeedGuard, SpeedAction, TerminationReason
from claimwalk.validation.territory import TerritoryLimits, ValidationResult, validate_territory


@dataclass(frozen=True)
class ClaimStep:
    """What happened to one offered fix."""

    phase: SessionPhase
    outcome: FilterOutcome | None = None
    closure: ClosureStatus | None = None
    validation: ValidationResult | None = None


class ClaimSession(TrackingSession):
    kind = "claim"

    def __init__(
        self,
        owner_id: str,
        settings: Settings | None = None,
        *,
        events: EventSink | None = None,
    ):
        super().__init__(settings, events=events)
        if not owner_id:
            raise ValueError("owner_id is required")
        self.owner_id = owner_id
        cfg = self.settings.claim
        self.guard = ClaimSpeedGuard.from_settings(cfg)
        self.sample_filter = SampleFilter.for_claim(self.settings, self.path, self.guard, events=self.events)
        self.closure = ClosureDetector.from_settings(cfg, events=self.events)
        self.collision = CollisionDetector.from_settings(self.settings.collision, events=self.events)
        self.limits = TerritoryLimits.from_settings(cfg)
        self.collision_poll_interval_s = cfg.collision_poll_interval_s
        self.validation: ValidationResult | None = None
        self.last_collision: CollisionResult | None = None
        self._last_poll_at: datetime | None = None
        self._polled_points = 0

    def start(
        self, now: datetime, start_point: LatLon | None = None, territories: Sequence[Territory] = ()
    ) -> CollisionResult | None:
        """Begin a claim. Returns the pre-start collision check when a start point is given.

        A violation leaves the session idle.
        """
        result: CollisionResult | None = None
        if start_point is not None:
            result = self.collision.check_point(start_point, self.owner_id, territories)
            self.last_collision = result
            if result.has_collision:
                return result

        self._begin(now)
        self.sample_filter.reset()
        self.closure.reset()
        self.guard.reset()
        self.validation = None
        self._last_poll_at = self.started_at
        self._polled_points = 0
        return result

    def offer_fix(self, fix: TimedFix) -> ClaimStep:
        if not self.is_active:
            return ClaimStep(phase=self.phase)

        outcome = self.sample_filter.offer(fix)
        decision = outcome.decision

        if outcome.verdict is SampleVerdict.TERMINATED and decision is not None:
            self.events.emit(
                EngineEvent.SPEED_HARD_STOP,
                decision.message or "overspeed",
                level=logging.ERROR,
                speed_kmh=round(outcome.speed_kmh, 1),
            )
            reason = decision.reason or TerminationReason.OVERSPEED_HARD_STOP
            self._terminate(reason, decision.message or "", fix.observed_at)
            return ClaimStep(phase=self.phase, outcome=outcome)

        if decision is not None and decision.action is SpeedAction.WARN:
            self.events.emit(
                EngineEvent.SPEED_WARNING,
                decision.message or "moving too fast",
                level=logging.WARNING,
                speed_kmh=round(outcome.speed_kmh, 1),
            )

        if not outcome.accepted:
            return ClaimStep(phase=self.phase, outcome=outcome)

        self.phase = SessionPhase.TRACKING
        status = self.closure.check(self.path.snapshot())
        if not status.just_closed:
            return ClaimStep(phase=self.phase, outcome=outcome, closure=status)

        self.phase = SessionPhase.CLOSED
        self.validation = self._validate()
        return ClaimStep(phase=self.phase, outcome=outcome, closure=status, validation=self.validation)

    def _validate(self) -> ValidationResult:
        result = validate_territory(self.path.snapshot(), self.limits)
        if result.is_valid:
            self.events.emit(EngineEvent.VALIDATION_PASSED, result.detail, area_m2=round(result.area_m2 or 0.0, 1))
        else:
            self.events.emit(
                EngineEvent.VALIDATION_FAILED,
                result.detail,
                level=logging.WARNING,
                reason=result.reason.value if result.reason else None,
            )
        return result

    def tick(self, now: datetime) -> SessionPhase:
        if self.is_active:
            decision = self.guard.check_deadline(ensure_tz(now))
            if decision.terminates and decision.reason is not None:
                self._terminate(decision.reason, decision.message or "", now)
        return self.phase

    def collision_poll_due(self, now: datetime) -> bool:
        if not self.is_active:
            return False
        if self._last_poll_at is None:
            return True
        return seconds_between(self._last_poll_at, ensure_tz(now)) >= self.collision_poll_interval_s

    def poll_collision(self, territories: Sequence[Territory], now: datetime) -> CollisionResult | None:
        """Check the walked path against foreign territories; None when not tracking."""
        if not self.is_active:
            return None
        self._last_poll_at = ensure_tz(now)
        snapshot = self.path.snapshot()
        # Every segment walked since the previous poll, including the one joining it.
        since = max(self._polled_points - 1, 0)
        result = self.collision.check_path(snapshot, self.owner_id, territories, since_index=since)
        self._polled_points = len(snapshot)
        self.last_collision = result
        if result.has_collision:
            self._terminate(TerminationReason.COLLISION_VIOLATION, result.message or "territory collision", now)
        return result

    def to_territory(self, owner_id: str | None = None, *, territory_id: str | None = None) -> Territory:
        """Build the territory record for a loop that closed and passed validation."""
        if self.validation is None or not self.validation.is_valid:
            raise SessionStateError("only a closed, validated loop can become a territory")
        return Territory.from_path(
            owner_id or self.owner_id,
            self.path.snapshot(),
            self.validation.area_m2 or 0.0,
            territory_id=territory_id,
        )

