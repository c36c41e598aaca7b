"""
Shared session lifecycle.

A session is created at start, accumulates a path and metrics, and ends on stop, cancel,
completion or a forced termination. Nothing carries over between sessions. Once a session
has ended, every mutating call is a no-op that reports the final phase.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from claimwalk.config.settings import Settings, get_settings
from claimwalk.core.events import EngineEvent, EventSink, LoggingEventSink
from claimwalk.core.time import ensure_tz, seconds_between
from claimwalk.tracking.path import TrackedPath
from claimwalk.tracking.speed import TerminationReason


class SessionPhase(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    TRACKING = "tracking"
    CLOSED = "closed"
    COMPLETED = "completed"
    STOPPED = "stopped"
    TERMINATED = "terminated"


ACTIVE_PHASES = frozenset({SessionPhase.PENDING, SessionPhase.TRACKING})
ENDED_PHASES = frozenset({SessionPhase.COMPLETED, SessionPhase.STOPPED, SessionPhase.TERMINATED})


class SessionStateError(RuntimeError):
    """Raised when a session method is called in a phase that does not allow it."""


@dataclass(frozen=True)
class Termination:
    reason: TerminationReason
    message: str
    at: datetime


class TrackingSession:
    kind = "session"

    def __init__(self, settings: Settings | None = None, *, events: EventSink | None = None):
        self.settings = settings or get_settings()
        self.events = events or LoggingEventSink("session")
        self.path = TrackedPath()
        self.phase = SessionPhase.IDLE
        self.started_at: datetime | None = None
        self.ended_at: datetime | None = None
        self.termination: Termination | None = None

    @property
    def is_active(self) -> bool:
        return self.phase in ACTIVE_PHASES

    @property
    def has_ended(self) -> bool:
        return self.phase in ENDED_PHASES

    def duration_s(self, now: datetime | None = None) -> float:
        if self.started_at is None:
            return 0.0
        end = self.ended_at or (ensure_tz(now) if now is not None else None)
        if end is None:
            return 0.0
        return max(0.0, seconds_between(self.started_at, end))

    def _begin(self, now: datetime) -> None:
        if self.is_active or self.phase is SessionPhase.CLOSED:
            raise SessionStateError(f"{self.kind} session already in progress")
        self.path.clear()
        self.phase = SessionPhase.PENDING
        self.started_at = ensure_tz(now)
        self.ended_at = None
        self.termination = None
        self.events.emit(EngineEvent.SESSION_STARTED, f"{self.kind} session started", kind=self.kind)

    def _end(self, phase: SessionPhase, now: datetime) -> None:
        self.phase = phase
        self.ended_at = ensure_tz(now)

    def _terminate(self, reason: TerminationReason, message: str, now: datetime) -> None:
        self._end(SessionPhase.TERMINATED, now)
        self.termination = Termination(reason=reason, message=message, at=self.ended_at)
        self.events.emit(
            EngineEvent.SESSION_TERMINATED,
            message,
            level=logging.WARNING,
            kind=self.kind,
            reason=reason.value,
            points=len(self.path),
        )

    def stop(self, now: datetime) -> SessionPhase:
        """End the session at the user's request. Ended sessions are left as they are."""
        if self.has_ended or self.phase is SessionPhase.IDLE:
            return self.phase
        self._end(SessionPhase.STOPPED, now)
        self.events.emit(
            EngineEvent.SESSION_STOPPED,
            f"{self.kind} session stopped with {len(self.path)} points",
            kind=self.kind,
            points=len(self.path),
        )
        return self.phase
