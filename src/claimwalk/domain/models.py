"""
Domain models (Pydantic).

These types are the stable "contract" between the engine and its collaborators:
- raw location input (`TimedFix`)
- externally stored territories (`Territory`, `BoundingBox`)
- HTTP request payloads (`PathValidationRequest`, `PointCollisionRequest`, ...)

The geometry algorithms themselves work on the lightweight `claimwalk.core.geo.GeoPoint`
dataclass; anything with `lat`/`lon` attributes is accepted there, so these models can be
handed straight in.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Sequence

from pydantic import BaseModel, Field, field_validator, model_validator

from claimwalk.core.geo import GeoPoint, LatLon, bounding_box
from claimwalk.core.time import ensure_tz


class Coordinate(BaseModel):
    """A geographic point in decimal degrees."""

    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)

    def to_core(self) -> GeoPoint:
        return GeoPoint(lat=self.lat, lon=self.lon)


class TimedFix(BaseModel):
    """One raw location sample from the location service.

    Fixes are ephemeral: the sample filter either turns them into a path point or drops them.
    """

    point: Coordinate
    accuracy_m: float = Field(0.0, ge=0)
    observed_at: datetime

    @field_validator("observed_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        return ensure_tz(value)

    @classmethod
    def at(cls, lat: float, lon: float, observed_at: datetime, accuracy_m: float = 5.0) -> "TimedFix":
        return cls(point=Coordinate(lat=lat, lon=lon), accuracy_m=accuracy_m, observed_at=observed_at)


class BoundingBox(BaseModel):
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    @classmethod
    def around(cls, points: Sequence[LatLon]) -> "BoundingBox":
        min_lat, max_lat, min_lon, max_lon = bounding_box(points)
        return cls(min_lat=min_lat, max_lat=max_lat, min_lon=min_lon, max_lon=max_lon)

    def contains(self, point: LatLon) -> bool:
        return self.min_lat <= point.lat <= self.max_lat and self.min_lon <= point.lon <= self.max_lon


class Territory(BaseModel):
    """A persisted, validated claim owned by one player.

    The polygon is implicitly closed (the last vertex connects back to the first).
    Records come from external storage, so a degenerate polygon (< 3 vertices) is
    accepted here and skipped by the collision checks instead of failing to load.
    """

    id: str | None = None
    owner_id: str
    polygon: list[Coordinate] = Field(default_factory=list)
    area_m2: float = Field(0.0, ge=0)
    bbox: BoundingBox | None = None

    @model_validator(mode="after")
    def _derive_bbox(self) -> "Territory":
        if self.bbox is None and self.polygon:
            self.bbox = BoundingBox.around(self.polygon)
        return self

    @classmethod
    def from_path(
        cls, owner_id: str, path: Sequence[LatLon], area_m2: float, *, territory_id: str | None = None
    ) -> "Territory":
        """Build a territory record from a validated walked loop."""
        polygon = [Coordinate(lat=p.lat, lon=p.lon) for p in path]
        return cls(id=territory_id, owner_id=owner_id, polygon=polygon, area_m2=area_m2)

    @property
    def is_degenerate(self) -> bool:
        return len(self.polygon) < 3

    def is_owned_by(self, owner_id: str) -> bool:
        return self.owner_id.lower() == owner_id.lower()

    def polygon_wkt(self) -> str:
        """PostGIS EWKT with longitude first; the ring is closed explicitly."""
        points = list(self.polygon)
        if points and (points[0].lat != points[-1].lat or points[0].lon != points[-1].lon):
            points.append(points[0])
        body = ", ".join(f"{p.lon} {p.lat}" for p in points)
        return f"SRID=4326;POLYGON(({body}))"

    def path_json(self) -> list[dict[str, float]]:
        return [{"lat": p.lat, "lon": p.lon} for p in self.polygon]

    def storage_row(self) -> dict[str, Any]:
        """Flat row for the territories table (bbox columns, WKT polygon, point count)."""
        bbox = self.bbox or BoundingBox.around(self.polygon)
        return {
            "user_id": self.owner_id,
            "path": self.path_json(),
            "polygon": self.polygon_wkt(),
            "bbox_min_lat": bbox.min_lat,
            "bbox_max_lat": bbox.max_lat,
            "bbox_min_lon": bbox.min_lon,
            "bbox_max_lon": bbox.max_lon,
            "area": self.area_m2,
            "point_count": len(self.polygon),
        }


class PathValidationRequest(BaseModel):
    path: list[Coordinate]
    settings_overrides: dict[str, Any] | None = None


class PointCollisionRequest(BaseModel):
    point: Coordinate
    owner_id: str
    territories: list[Territory] = Field(default_factory=list)


class PathCollisionRequest(BaseModel):
    path: list[Coordinate] = Field(..., min_length=1)
    owner_id: str
    territories: list[Territory] = Field(default_factory=list)
