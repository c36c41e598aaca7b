"""
Territory collision and proximity detection.

Two hard checks and one advisory score, all against territories owned by *other* players:

- point check: is a point (typically the claim start) inside a foreign polygon?
- path check: does any path segment walked since the previous check cross a foreign
  boundary, or has the latest point entered a foreign polygon?
- proximity: distance from the latest point to the nearest foreign vertex, bucketed into
  a warning level. Advisory only; it never stops tracking.

Malformed records (polygons with fewer than 3 vertices) are skipped, not raised: a corrupt
stored territory must not block validation of the player's own walk.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Sequence

from claimwalk.config.settings import CollisionSettings
from claimwalk.core.events import EngineEvent, EventSink, LoggingEventSink
from claimwalk.core.geo import LatLon, haversine_m, point_in_polygon, segments_intersect
from claimwalk.domain.models import Territory


class CollisionKind(str, Enum):
    POINT_IN_TERRITORY = "point_in_territory"
    PATH_CROSSES_TERRITORY = "path_crosses_territory"


class WarningLevel(str, Enum):
    SAFE = "safe"
    CAUTION = "caution"
    WARNING = "warning"
    DANGER = "danger"
    VIOLATION = "violation"


@dataclass(frozen=True)
class CollisionResult:
    has_collision: bool
    warning_level: WarningLevel
    nearest_distance_m: float
    kind: CollisionKind | None = None
    message: str | None = None
    territory_id: str | None = None

    @classmethod
    def safe(cls, nearest_distance_m: float = math.inf) -> "CollisionResult":
        return cls(has_collision=False, warning_level=WarningLevel.SAFE, nearest_distance_m=nearest_distance_m)

    @classmethod
    def violation(cls, kind: CollisionKind, message: str, territory_id: str | None = None) -> "CollisionResult":
        return cls(
            has_collision=True,
            warning_level=WarningLevel.VIOLATION,
            nearest_distance_m=0.0,
            kind=kind,
            message=message,
            territory_id=territory_id,
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "has_collision": self.has_collision,
            "kind": self.kind.value if self.kind else None,
            "warning_level": self.warning_level.value,
            "nearest_distance_m": None if math.isinf(self.nearest_distance_m) else self.nearest_distance_m,
            "message": self.message,
            "territory_id": self.territory_id,
        }


def _foreign_polygons(territories: Iterable[Territory], owner_id: str) -> list[Territory]:
    return [t for t in territories if not t.is_owned_by(owner_id) and not t.is_degenerate]


def _contains(territory: Territory, point: LatLon) -> bool:
    if territory.bbox is not None and not territory.bbox.contains(point):
        return False
    return point_in_polygon(point, territory.polygon)


def _crosses_boundary(territory: Territory, a: LatLon, b: LatLon) -> bool:
    polygon = territory.polygon
    n = len(polygon)
    for k in range(n):
        if segments_intersect(a, b, polygon[k], polygon[(k + 1) % n]):
            return True
    return False


def _nearest_vertex_m(point: LatLon, foreign: Iterable[Territory]) -> float:
    best = math.inf
    for territory in foreign:
        for vertex in territory.polygon:
            best = min(best, haversine_m(point, vertex))
    return best


class CollisionDetector:
    def __init__(
        self,
        *,
        caution_m: float = 100.0,
        warning_m: float = 50.0,
        danger_m: float = 25.0,
        events: EventSink | None = None,
    ):
        if not (0 < danger_m < warning_m < caution_m):
            raise ValueError("proximity bands must satisfy 0 < danger_m < warning_m < caution_m")
        self.caution_m = float(caution_m)
        self.warning_m = float(warning_m)
        self.danger_m = float(danger_m)
        self._events = events or LoggingEventSink("collision")

    @classmethod
    def from_settings(cls, cfg: CollisionSettings, *, events: EventSink | None = None) -> "CollisionDetector":
        return cls(caution_m=cfg.caution_m, warning_m=cfg.warning_m, danger_m=cfg.danger_m, events=events)

    def classify(self, distance_m: float) -> WarningLevel:
        if distance_m > self.caution_m:
            return WarningLevel.SAFE
        if distance_m > self.warning_m:
            return WarningLevel.CAUTION
        if distance_m > self.danger_m:
            return WarningLevel.WARNING
        return WarningLevel.DANGER

    def nearest_vertex_distance_m(self, point: LatLon, owner_id: str, territories: Iterable[Territory]) -> float:
        """Minimum great-circle distance from `point` to any vertex of a foreign territory."""
        return _nearest_vertex_m(point, _foreign_polygons(territories, owner_id))

    def check_point(self, point: LatLon, owner_id: str, territories: Sequence[Territory]) -> CollisionResult:
        """Pre-start check: a claim may not begin inside someone else's territory."""
        foreign = _foreign_polygons(territories, owner_id)
        if not foreign:
            return CollisionResult.safe()

        for territory in foreign:
            if _contains(territory, point):
                return self._violation(
                    CollisionKind.POINT_IN_TERRITORY,
                    "cannot start claiming inside another player's territory",
                    territory,
                )
        return self._proximity(point, foreign)

    def check_path(
        self,
        path: Sequence[LatLon],
        owner_id: str,
        territories: Sequence[Territory],
        *,
        since_index: int | None = None,
    ) -> CollisionResult:
        """Periodic in-session check on a snapshot of the walked path.

        Every segment starting at `since_index` or later is tested against foreign
        boundaries; by default only the newest segment. The latest point is always
        tested for containment.
        """
        if not path:
            return CollisionResult.safe()
        foreign = _foreign_polygons(territories, owner_id)
        if not foreign:
            return CollisionResult.safe()

        first = len(path) - 2 if since_index is None else max(since_index, 0)
        segments = [(path[k], path[k + 1]) for k in range(max(first, 0), len(path) - 1)]
        latest = path[-1]
        for territory in foreign:
            if any(_crosses_boundary(territory, a, b) for a, b in segments):
                return self._violation(
                    CollisionKind.PATH_CROSSES_TERRITORY,
                    "path may not cross another player's territory boundary",
                    territory,
                )
            if _contains(territory, latest):
                return self._violation(
                    CollisionKind.POINT_IN_TERRITORY,
                    "path may not enter another player's territory",
                    territory,
                )
        return self._proximity(latest, foreign)

    def _proximity(self, point: LatLon, foreign: list[Territory]) -> CollisionResult:
        best = _nearest_vertex_m(point, foreign)

        level = self.classify(best)
        if level is WarningLevel.SAFE:
            return CollisionResult.safe(best)

        messages = {
            WarningLevel.CAUTION: f"note: another player's territory is {int(best)} m away",
            WarningLevel.WARNING: f"warning: approaching another player's territory ({int(best)} m)",
            WarningLevel.DANGER: f"danger: about to enter another player's territory ({int(best)} m)",
        }
        self._events.emit(
            EngineEvent.COLLISION_PROXIMITY,
            messages[level],
            level=logging.WARNING,
            warning_level=level.value,
            distance_m=round(best, 1),
        )
        return CollisionResult(
            has_collision=False,
            warning_level=level,
            nearest_distance_m=best,
            message=messages[level],
        )

    def _violation(self, kind: CollisionKind, message: str, territory: Territory) -> CollisionResult:
        self._events.emit(
            EngineEvent.COLLISION_VIOLATION,
            message,
            level=logging.ERROR,
            kind=kind.value,
            territory_id=territory.id,
        )
        return CollisionResult.violation(kind, message, territory.id)
