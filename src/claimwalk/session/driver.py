"""
Cadence driver for a session.

The engine owns no timers or threads. A host calls `SessionDriver.tick(now)` from whatever
scheduler it has (a UI timer, an asyncio loop, a replay script); the driver decides whether a
fix is due and whether a collision poll is due, and pulls from the injected collaborators.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, Union

from claimwalk.collision.detector import CollisionResult
from claimwalk.core.events import EngineEvent
from claimwalk.core.time import ensure_tz, seconds_between
from claimwalk.domain.models import Territory, TimedFix
from claimwalk.session.base import SessionPhase
from claimwalk.session.claim import ClaimSession
from claimwalk.session.exploration import ExplorationSession

logger = logging.getLogger(__name__)

Session = Union[ClaimSession, ExplorationSession]


class LocationSource(Protocol):
    def latest_fix(self) -> TimedFix | None: ...


class TerritoryProvider(Protocol):
    def territories(self) -> list[Territory]: ...


@dataclass(frozen=True)
class TickReport:
    phase: SessionPhase
    fix_offered: bool = False
    collision: CollisionResult | None = None


class SessionDriver:
    def __init__(
        self,
        session: Session,
        source: LocationSource,
        *,
        territories: TerritoryProvider | None = None,
        sample_interval_s: float | None = None,
    ):
        self.session = session
        self.source = source
        self.territory_provider = territories
        interval = sample_interval_s if sample_interval_s is not None else session.settings.sampling.sample_interval_s
        if interval <= 0:
            raise ValueError("sample_interval_s must be > 0")
        self.sample_interval_s = float(interval)
        self._last_sample_at: datetime | None = None

    def sample_due(self, now: datetime) -> bool:
        if self._last_sample_at is None:
            return True
        return seconds_between(self._last_sample_at, ensure_tz(now)) >= self.sample_interval_s

    def tick(self, now: datetime) -> TickReport:
        now = ensure_tz(now)
        phase = self.session.tick(now)
        if not self.session.is_active:
            return TickReport(phase=phase)

        fix_offered = False
        if self.sample_due(now):
            self._last_sample_at = now
            fix = self.source.latest_fix()
            if fix is None:
                self.session.events.emit(
                    EngineEvent.SESSION_PENDING,
                    "no location fix available yet",
                    level=logging.DEBUG,
                    kind=self.session.kind,
                )
                phase = SessionPhase.PENDING
            else:
                phase = self.session.offer_fix(fix).phase
                fix_offered = True

        collision = None
        session = self.session
        if (
            isinstance(session, ClaimSession)
            and self.territory_provider is not None
            and session.collision_poll_due(now)
        ):
            territories = self.territory_provider.territories()
            logger.debug("Polling collisions against %d territories", len(territories))
            collision = session.poll_collision(territories, now)
            if session.has_ended:
                phase = session.phase

        return TickReport(phase=phase, fix_offered=fix_offered, collision=collision)
