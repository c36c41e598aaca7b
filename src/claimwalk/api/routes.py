"""
API routes.

Endpoints:
- POST `/api/territories/validate`: run the territory checklist on a closed walk.
- POST `/api/collisions/point`: pre-start check of a point against foreign territories.
- POST `/api/collisions/path`: in-session check of a walked path.
- GET  `/api/rewards/tier`: reward tier for a walked distance.
- GET  `/api/settings`: public engine settings.

The surface is stateless; territories are supplied by the caller on every request.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from claimwalk.collision.detector import CollisionDetector
from claimwalk.config.overrides import apply_settings_overrides
from claimwalk.config.settings import get_settings
from claimwalk.domain.models import PathCollisionRequest, PathValidationRequest, PointCollisionRequest
from claimwalk.rewards.tiers import RewardTier, next_tier_info
from claimwalk.validation.territory import TerritoryLimits, validate_territory

router = APIRouter()


def _bad_request(e: ValueError) -> HTTPException:
    return HTTPException(status_code=400, detail={"code": "VALIDATION_ERROR", "message": str(e)})


@router.post("/api/territories/validate")
def post_validate_territory(request: PathValidationRequest) -> dict:
    """Validate a closed walk and return the verdict (area on success, reason on failure)."""
    try:
        settings = apply_settings_overrides(get_settings(), request.settings_overrides)
    except ValueError as e:
        raise _bad_request(e) from e

    result = validate_territory(request.path, TerritoryLimits.from_settings(settings.claim))
    return result.as_dict()


@router.post("/api/collisions/point")
def post_point_collision(request: PointCollisionRequest) -> dict:
    detector = CollisionDetector.from_settings(get_settings().collision)
    result = detector.check_point(request.point, request.owner_id, request.territories)
    return result.as_dict()


@router.post("/api/collisions/path")
def post_path_collision(request: PathCollisionRequest) -> dict:
    detector = CollisionDetector.from_settings(get_settings().collision)
    result = detector.check_path(request.path, request.owner_id, request.territories)
    return result.as_dict()


@router.get("/api/rewards/tier")
def get_reward_tier(distance_m: float = Query(..., ge=0)) -> dict:
    tier = RewardTier.from_distance(distance_m)
    upcoming = next_tier_info(distance_m)
    return {
        "distance_m": distance_m,
        "tier": tier.value,
        "display_name": tier.display_name,
        "item_count": tier.item_count,
        "rarity_probabilities": tier.rarity_probabilities,
        "next_tier": upcoming[0].value if upcoming else None,
        "distance_to_next_tier_m": upcoming[1] if upcoming else 0.0,
    }


@router.get("/api/settings")
def get_public_settings() -> dict:
    """Return engine settings that clients may display or mirror."""
    data = get_settings().model_dump(mode="json")
    data.pop("app", None)
    return data
