"""
Structured engine events.

Components never write to a process-wide log object. Each one receives an `EventSink`
in its constructor and emits typed events through it:

- `LoggingEventSink` forwards to the standard `logging` module (configured by the
  application entrypoint via `claimwalk.core.logging.configure_logging`).
- `RecordingEventSink` keeps a bounded in-memory history, used by tests and by the
  replay CLI to show what happened during a session.

Event names follow `<area>.<action>` so they stay greppable in aggregated logs.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Protocol


class EngineEvent(str, Enum):
    SESSION_STARTED = "session.started"
    SESSION_PENDING = "session.pending"
    SESSION_STOPPED = "session.stopped"
    SESSION_TERMINATED = "session.terminated"
    SESSION_COMPLETED = "session.completed"

    SAMPLE_ACCEPTED = "sample.accepted"
    SAMPLE_REJECTED = "sample.rejected"
    SAMPLE_GLITCH = "sample.glitch"

    SPEED_WARNING = "speed.warning"
    SPEED_OVER_LIMIT = "speed.over_limit"
    SPEED_RECOVERED = "speed.recovered"
    SPEED_TIMEOUT = "speed.timeout"
    SPEED_HARD_STOP = "speed.hard_stop"

    CLOSURE_PROGRESS = "closure.progress"
    CLOSURE_DETECTED = "closure.detected"

    VALIDATION_PASSED = "validation.passed"
    VALIDATION_FAILED = "validation.failed"

    COLLISION_VIOLATION = "collision.violation"
    COLLISION_PROXIMITY = "collision.proximity"

    REWARD_TIER_CHANGED = "reward.tier_changed"


class EventSink(Protocol):
    def emit(self, event: EngineEvent, message: str, *, level: int = logging.INFO, **fields: Any) -> None: ...


class LoggingEventSink:
    """Forward events to a named stdlib logger as `event message {fields}` lines."""

    def __init__(self, component: str, *, logger_name: str | None = None):
        self.component = component
        self.logger = logging.getLogger(logger_name or f"claimwalk.{component}")

    def emit(self, event: EngineEvent, message: str, *, level: int = logging.INFO, **fields: Any) -> None:
        if not self.logger.isEnabledFor(level):
            return
        if fields:
            self.logger.log(level, "%s %s %s", event.value, message, json.dumps(fields, default=str, sort_keys=True))
        else:
            self.logger.log(level, "%s %s", event.value, message)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class EventRecord:
    event: EngineEvent
    message: str
    level: int
    fields: dict[str, Any] = field(default_factory=dict)
    recorded_at: datetime = field(default_factory=_utcnow)


class RecordingEventSink:
    """Keep the most recent events in memory (oldest dropped first).

    `clock` stamps each record; replays pass one that follows the fix timestamps.
    """

    def __init__(self, max_records: int = 200, *, clock: Callable[[], datetime] | None = None):
        if max_records <= 0:
            raise ValueError("max_records must be > 0")
        self._records: deque[EventRecord] = deque(maxlen=max_records)
        self._clock = clock or _utcnow

    def emit(self, event: EngineEvent, message: str, *, level: int = logging.INFO, **fields: Any) -> None:
        record = EventRecord(event=event, message=message, level=level, fields=dict(fields), recorded_at=self._clock())
        self._records.append(record)

    @property
    def records(self) -> list[EventRecord]:
        return list(self._records)

    def events(self) -> list[EngineEvent]:
        return [r.event for r in self._records]

    def clear(self) -> None:
        self._records.clear()

    def export(self) -> str:
        """Render the history as plain text, one event per line."""
        lines = [f"events: {len(self._records)}"]
        for r in self._records:
            stamp = r.recorded_at.strftime("%Y-%m-%d %H:%M:%S")
            lines.append(f"[{stamp}] [{logging.getLevelName(r.level)}] {r.event.value} {r.message}")
        return "\n".join(lines)


class FanOutEventSink:
    """Deliver each event to several sinks (e.g. logging + recording)."""

    def __init__(self, *sinks: EventSink):
        self._sinks = sinks

    def emit(self, event: EngineEvent, message: str, *, level: int = logging.INFO, **fields: Any) -> None:
        for sink in self._sinks:
            sink.emit(event, message, level=level, **fields)
