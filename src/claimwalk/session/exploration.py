"""
Exploration session: walk anywhere, earn a reward tier by distance.

Distance only counts while the player is at or under the speed limit. Going over starts a
countdown; slowing down in time clears it, otherwise the session is terminated (by the next
fix or by `tick`).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from claimwalk.config.settings import Settings
from claimwalk.core.events import EngineEvent, EventSink
from claimwalk.core.time import ensure_tz
from claimwalk.domain.models import TimedFix
from claimwalk.rewards.tiers import RewardTier
from claimwalk.session.base import SessionPhase, SessionStateError, TrackingSession
from claimwalk.tracking.filter import FilterOutcome, SampleFilter, SampleVerdict
from claimwalk.tracking.speed import ExplorationSpeedGuard, TerminationReason


@dataclass(frozen=True)
class ExplorationStep:
    phase: SessionPhase
    outcome: FilterOutcome | None = None
    distance_m: float = 0.0
    tier: RewardTier = RewardTier.NONE
    is_over_limit: bool = False


@dataclass(frozen=True)
class ExplorationResult:
    distance_m: float
    duration_s: float
    tier: RewardTier
    item_count: int
    started_at: datetime
    ended_at: datetime

    def as_dict(self) -> dict[str, Any]:
        return {
            "distance_m": round(self.distance_m, 1),
            "duration_s": round(self.duration_s, 1),
            "tier": self.tier.value,
            "item_count": self.item_count,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
        }


class ExplorationSession(TrackingSession):
    kind = "exploration"

    def __init__(self, settings: Settings | None = None, *, events: EventSink | None = None):
        super().__init__(settings, events=events)
        self.guard = ExplorationSpeedGuard.from_settings(self.settings.exploration)
        self.sample_filter = SampleFilter.for_exploration(self.settings, self.path, self.guard, events=self.events)
        self.distance_m = 0.0
        self.current_speed_kmh = 0.0
        self.tier = RewardTier.NONE

    @property
    def is_over_limit(self) -> bool:
        return self.guard.state.is_over_limit

    def start(self, now: datetime) -> None:
        self._begin(now)
        self.sample_filter.reset()
        self.guard.reset()
        self.distance_m = 0.0
        self.current_speed_kmh = 0.0
        self.tier = RewardTier.NONE

    def _step(self, outcome: FilterOutcome | None = None) -> ExplorationStep:
        return ExplorationStep(
            phase=self.phase,
            outcome=outcome,
            distance_m=self.distance_m,
            tier=self.tier,
            is_over_limit=self.is_over_limit,
        )

    def offer_fix(self, fix: TimedFix) -> ExplorationStep:
        if not self.is_active:
            return self._step()

        was_over = self.is_over_limit
        outcome = self.sample_filter.offer(fix)
        if outcome.verdict not in (SampleVerdict.THROTTLED, SampleVerdict.REJECTED_ACCURACY):
            self.current_speed_kmh = outcome.speed_kmh

        decision = outcome.decision
        if outcome.verdict is SampleVerdict.TERMINATED and decision is not None:
            self.events.emit(EngineEvent.SPEED_TIMEOUT, decision.message or "overspeed", level=logging.ERROR)
            reason = decision.reason or TerminationReason.OVERSPEED_TIMEOUT_EXCEEDED
            self._terminate(reason, decision.message or "", fix.observed_at)
            return self._step(outcome)

        if not was_over and self.is_over_limit:
            self.events.emit(
                EngineEvent.SPEED_OVER_LIMIT,
                (decision.message if decision else None) or "over the speed limit",
                level=logging.WARNING,
                speed_kmh=round(outcome.speed_kmh, 1),
            )
        elif was_over and not self.is_over_limit:
            self.events.emit(
                EngineEvent.SPEED_RECOVERED,
                "speed back under the limit",
                speed_kmh=round(outcome.speed_kmh, 1),
            )

        if outcome.accepted:
            self.phase = SessionPhase.TRACKING
            self.distance_m += outcome.distance_m
            self._update_tier()
        return self._step(outcome)

    def _update_tier(self) -> None:
        tier = RewardTier.from_distance(self.distance_m)
        if tier is self.tier:
            return
        previous, self.tier = self.tier, tier
        self.events.emit(
            EngineEvent.REWARD_TIER_CHANGED,
            f"reward tier {previous.value} -> {tier.value}",
            previous=previous.value,
            tier=tier.value,
            distance_m=round(self.distance_m, 1),
        )

    def tick(self, now: datetime) -> SessionPhase:
        """Enforce the overspeed deadline between fixes."""
        if self.is_active:
            decision = self.guard.check_deadline(ensure_tz(now))
            if decision.terminates and decision.reason is not None:
                self.events.emit(EngineEvent.SPEED_TIMEOUT, decision.message or "overspeed", level=logging.ERROR)
                self._terminate(decision.reason, decision.message or "", now)
        return self.phase

    def finish(self, now: datetime) -> ExplorationResult:
        """End the walk and compute the reward. Raises `SessionStateError` if nothing is active."""
        if self.tick(now) is SessionPhase.TERMINATED or not self.is_active:
            raise SessionStateError(f"no exploration in progress (phase: {self.phase.value})")

        self._end(SessionPhase.COMPLETED, now)
        result = ExplorationResult(
            distance_m=self.distance_m,
            duration_s=self.duration_s(),
            tier=self.tier,
            item_count=self.tier.item_count,
            started_at=self.started_at,
            ended_at=self.ended_at,
        )
        self.events.emit(
            EngineEvent.SESSION_COMPLETED,
            f"exploration completed: {result.distance_m:.0f} m, tier {result.tier.value}",
            kind=self.kind,
            **result.as_dict(),
        )
        return result

    def cancel(self, now: datetime) -> SessionPhase:
        """Abandon the walk without a reward."""
        return self.stop(now)
