# src/claimwalk/config/settings.py
"""
Engine settings (Pydantic).

Settings are loaded from `src/claimwalk/config/defaults.yaml`, then optionally overridden by:
- environment variables (e.g., `CLAIMWALK_LOG_LEVEL`)
- an external YAML file via `CLAIMWALK_CONFIG_PATH`

Design rule:
- Tuning knobs live in YAML, not hard-coded in the geometry or anti-cheat logic.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator

from claimwalk.core.env import load_dotenv_if_present


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `claimwalk.config`."""
    text = resources.files("claimwalk.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "ClaimWalk"
    log_level: str = "INFO"


class SamplingSettings(BaseModel):
    """Knobs shared by both tracking flows."""

    max_accuracy_m: float = Field(50, gt=0)
    min_time_interval_s: float = Field(2, ge=0)
    max_single_move_m: float = Field(100, gt=0)
    sample_interval_s: float = Field(2, gt=0)


class ClaimSettings(BaseModel):
    accuracy_filter_enabled: bool = False
    min_record_distance_m: float = Field(10, ge=0)
    closure_threshold_m: float = Field(30, gt=0)
    min_path_points: int = Field(10, ge=3)
    min_total_distance_m: float = Field(50, ge=0)
    min_area_m2: float = Field(100, ge=0)
    warn_speed_kmh: float = Field(15, gt=0)
    hard_speed_kmh: float = Field(30, gt=0)
    self_intersection_seam_segments: int = Field(2, ge=0)
    collision_poll_interval_s: float = Field(10, gt=0)

    @model_validator(mode="after")
    def _validate_speed_order(self) -> "ClaimSettings":
        if self.warn_speed_kmh >= self.hard_speed_kmh:
            raise ValueError("claim.warn_speed_kmh must be below claim.hard_speed_kmh")
        return self


class ExplorationSettings(BaseModel):
    accuracy_filter_enabled: bool = True
    min_record_distance_m: float = Field(5, ge=0)
    hard_speed_kmh: float = Field(30, gt=0)
    overspeed_timeout_s: float = Field(10, gt=0)


class CollisionSettings(BaseModel):
    """Proximity bands (meters) for the advisory warning level."""

    caution_m: float = Field(100, gt=0)
    warning_m: float = Field(50, gt=0)
    danger_m: float = Field(25, gt=0)

    @model_validator(mode="after")
    def _validate_band_order(self) -> "CollisionSettings":
        if not (self.danger_m < self.warning_m < self.caution_m):
            raise ValueError("collision bands must satisfy danger_m < warning_m < caution_m")
        return self


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    sampling: SamplingSettings = Field(default_factory=SamplingSettings)
    claim: ClaimSettings = Field(default_factory=ClaimSettings)
    exploration: ExplorationSettings = Field(default_factory=ExplorationSettings)
    collision: CollisionSettings = Field(default_factory=CollisionSettings)

    @model_validator(mode="after")
    def _validate_move_window(self) -> "Settings":
        jump = self.sampling.max_single_move_m
        for section, cfg in (("claim", self.claim), ("exploration", self.exploration)):
            if cfg.min_record_distance_m >= jump:
                raise ValueError(
                    f"{section}.min_record_distance_m ({cfg.min_record_distance_m:g}) must be below "
                    f"sampling.max_single_move_m ({jump:g})"
                )
        return self


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: We intentionally keep this whitelist small; per-session tuning goes through
    `claimwalk.config.overrides` instead.
    """
    load_dotenv_if_present()
    data = dict(data)
    log_level = os.getenv("CLAIMWALK_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    poll = os.getenv("CLAIMWALK_COLLISION_POLL_INTERVAL_S")
    if poll:
        data.setdefault("claim", {})["collision_poll_interval_s"] = float(poll)

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("CLAIMWALK_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
