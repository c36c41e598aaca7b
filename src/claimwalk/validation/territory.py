"""
Territory validation checklist.

`validate_territory` is a pure function of the path and the limits. It runs the checks
cheapest-first and stops at the first failure, so the reported reason is always the
earliest failing check:

1. point count
2. total walked distance
3. self-intersection
4. enclosed area
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Sequence

from claimwalk.config.settings import ClaimSettings
from claimwalk.core.geo import LatLon, path_length_m
from claimwalk.geometry.area import polygon_area_m2
from claimwalk.geometry.intersection import DEFAULT_SEAM_SEGMENTS, has_self_intersection


class ValidationReason(str, Enum):
    INSUFFICIENT_POINTS = "insufficient_points"
    INSUFFICIENT_DISTANCE = "insufficient_distance"
    SELF_INTERSECTING = "self_intersecting"
    INSUFFICIENT_AREA = "insufficient_area"


@dataclass(frozen=True)
class TerritoryLimits:
    min_path_points: int = 10
    min_total_distance_m: float = 50.0
    min_area_m2: float = 100.0
    seam_segments: int = DEFAULT_SEAM_SEGMENTS

    @classmethod
    def from_settings(cls, cfg: ClaimSettings) -> "TerritoryLimits":
        return cls(
            min_path_points=cfg.min_path_points,
            min_total_distance_m=cfg.min_total_distance_m,
            min_area_m2=cfg.min_area_m2,
            seam_segments=cfg.self_intersection_seam_segments,
        )


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    area_m2: float | None = None
    reason: ValidationReason | None = None
    detail: str = ""

    @classmethod
    def valid(cls, area_m2: float) -> "ValidationResult":
        return cls(is_valid=True, area_m2=area_m2, detail=f"territory area {area_m2:.0f} m2")

    @classmethod
    def invalid(cls, reason: ValidationReason, detail: str) -> "ValidationResult":
        return cls(is_valid=False, reason=reason, detail=detail)

    def as_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "area_m2": self.area_m2,
            "reason": self.reason.value if self.reason else None,
            "detail": self.detail,
        }


def validate_territory(path: Sequence[LatLon], limits: TerritoryLimits | None = None) -> ValidationResult:
    """Decide whether a closed walk is a claimable territory."""
    limits = limits or TerritoryLimits()
    points = list(path)

    if len(points) < limits.min_path_points:
        return ValidationResult.invalid(
            ValidationReason.INSUFFICIENT_POINTS,
            f"{len(points)} points recorded, at least {limits.min_path_points} required",
        )

    total_m = path_length_m(points)
    if total_m < limits.min_total_distance_m:
        return ValidationResult.invalid(
            ValidationReason.INSUFFICIENT_DISTANCE,
            f"walked {total_m:.0f} m, at least {limits.min_total_distance_m:.0f} m required",
        )

    if has_self_intersection(points, seam_segments=limits.seam_segments):
        return ValidationResult.invalid(
            ValidationReason.SELF_INTERSECTING,
            "path crosses itself (figure-eight loops cannot be claimed)",
        )

    area = polygon_area_m2(points)
    if area < limits.min_area_m2:
        return ValidationResult.invalid(
            ValidationReason.INSUFFICIENT_AREA,
            f"enclosed area {area:.0f} m2, at least {limits.min_area_m2:.0f} m2 required",
        )

    return ValidationResult.valid(area)
