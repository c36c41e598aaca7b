"""
Speed guards (anti-cheat).

A guard turns an instantaneous speed into a decision; it never stops anything itself.
The session that owns the guard applies the decision.

- `ClaimSpeedGuard`: warn above `warn_kmh`, terminate immediately above `hard_kmh`.
- `ExplorationSpeedGuard`: above `hard_kmh` starts a countdown; dropping back to or below
  the limit clears it; still being over the limit when the countdown ends terminates.
  `check_deadline(now)` lets a periodic tick end the session between samples.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Protocol

from claimwalk.config.settings import ClaimSettings, ExplorationSettings


class SpeedAction(str, Enum):
    CONTINUE = "continue"
    WARN = "warn"
    TERMINATE = "terminate"


class TerminationReason(str, Enum):
    OVERSPEED_HARD_STOP = "overspeed_hard_stop"
    OVERSPEED_TIMEOUT_EXCEEDED = "overspeed_timeout_exceeded"
    COLLISION_VIOLATION = "collision_violation"


@dataclass(frozen=True)
class SpeedDecision:
    action: SpeedAction
    message: str | None = None
    reason: TerminationReason | None = None

    @classmethod
    def ok(cls) -> "SpeedDecision":
        return cls(action=SpeedAction.CONTINUE)

    @classmethod
    def warn(cls, message: str) -> "SpeedDecision":
        return cls(action=SpeedAction.WARN, message=message)

    @classmethod
    def terminate(cls, reason: TerminationReason, message: str) -> "SpeedDecision":
        return cls(action=SpeedAction.TERMINATE, message=message, reason=reason)

    @property
    def terminates(self) -> bool:
        return self.action is SpeedAction.TERMINATE


@dataclass(frozen=True)
class SpeedState:
    is_over_limit: bool = False
    violation_deadline: datetime | None = None


class SpeedGuard(Protocol):
    @property
    def state(self) -> SpeedState: ...

    def evaluate(self, speed_kmh: float, now: datetime) -> SpeedDecision: ...

    def check_deadline(self, now: datetime) -> SpeedDecision: ...

    def reset(self) -> None: ...


class ClaimSpeedGuard:
    def __init__(self, *, warn_kmh: float = 15.0, hard_kmh: float = 30.0):
        if not (0 < warn_kmh < hard_kmh):
            raise ValueError("speed limits must satisfy 0 < warn_kmh < hard_kmh")
        self.warn_kmh = float(warn_kmh)
        self.hard_kmh = float(hard_kmh)

    @classmethod
    def from_settings(cls, cfg: ClaimSettings) -> "ClaimSpeedGuard":
        return cls(warn_kmh=cfg.warn_speed_kmh, hard_kmh=cfg.hard_speed_kmh)

    @property
    def state(self) -> SpeedState:
        # Claim mode has no grace period.
        return SpeedState()

    def evaluate(self, speed_kmh: float, now: datetime) -> SpeedDecision:
        if speed_kmh > self.hard_kmh:
            return SpeedDecision.terminate(
                TerminationReason.OVERSPEED_HARD_STOP,
                f"speed {speed_kmh:.1f} km/h exceeds {self.hard_kmh:.0f} km/h; claiming stopped",
            )
        if speed_kmh > self.warn_kmh:
            return SpeedDecision.warn(f"moving too fast ({speed_kmh:.1f} km/h); please walk")
        return SpeedDecision.ok()

    def check_deadline(self, now: datetime) -> SpeedDecision:
        return SpeedDecision.ok()

    def reset(self) -> None:
        return None


class ExplorationSpeedGuard:
    def __init__(self, *, hard_kmh: float = 30.0, timeout_s: float = 10.0):
        if hard_kmh <= 0:
            raise ValueError("hard_kmh must be > 0")
        if timeout_s <= 0:
            raise ValueError("timeout_s must be > 0")
        self.hard_kmh = float(hard_kmh)
        self.timeout_s = float(timeout_s)
        self._state = SpeedState()

    @classmethod
    def from_settings(cls, cfg: ExplorationSettings) -> "ExplorationSpeedGuard":
        return cls(hard_kmh=cfg.hard_speed_kmh, timeout_s=cfg.overspeed_timeout_s)

    @property
    def state(self) -> SpeedState:
        return self._state

    def _timeout_decision(self) -> SpeedDecision:
        return SpeedDecision.terminate(
            TerminationReason.OVERSPEED_TIMEOUT_EXCEEDED,
            f"overspeed above {self.hard_kmh:.0f} km/h for {self.timeout_s:.0f} s",
        )

    def evaluate(self, speed_kmh: float, now: datetime) -> SpeedDecision:
        if speed_kmh <= self.hard_kmh:
            if self._state.is_over_limit:
                self._state = SpeedState()
                return SpeedDecision.warn("speed back under the limit; distance counts again")
            return SpeedDecision.ok()

        if not self._state.is_over_limit:
            deadline = now + timedelta(seconds=self.timeout_s)
            self._state = SpeedState(is_over_limit=True, violation_deadline=deadline)
            return SpeedDecision.warn(
                f"over {self.hard_kmh:.0f} km/h; slow down within {self.timeout_s:.0f} s or exploration ends"
            )

        if self._state.violation_deadline is not None and now >= self._state.violation_deadline:
            return self._timeout_decision()
        return SpeedDecision.warn(f"still over {self.hard_kmh:.0f} km/h; distance is not counted")

    def check_deadline(self, now: datetime) -> SpeedDecision:
        deadline = self._state.violation_deadline
        if self._state.is_over_limit and deadline is not None and now >= deadline:
            return self._timeout_decision()
        return SpeedDecision.ok()

    def reset(self) -> None:
        self._state = SpeedState()
