"""
ClaimWalk CLI entrypoint.

This CLI is intended for offline checks and debugging: validate a recorded loop, test a
point against stored territories, replay a recorded fix log through a session, and inspect
reward tiers and display projection.
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from typing import Any

from claimwalk.collision.detector import CollisionDetector
from claimwalk.config.overrides import apply_settings_overrides
from claimwalk.config.settings import Settings, get_settings
from claimwalk.core.events import FanOutEventSink, LoggingEventSink, RecordingEventSink
from claimwalk.core.env import resolve_project_path
from claimwalk.core.geo import GeoPoint
from claimwalk.core.logging import configure_logging
from claimwalk.core.time import parse_datetime
from claimwalk.domain.models import Coordinate, Territory, TimedFix
from claimwalk.geometry.projection import wgs84_to_gcj02
from claimwalk.rewards.tiers import RewardTier, next_tier_info
from claimwalk.session.base import SessionPhase, SessionStateError
from claimwalk.session.claim import ClaimSession
from claimwalk.session.exploration import ExplorationSession
from claimwalk.session.formatting import format_distance, format_duration
from claimwalk.validation.territory import TerritoryLimits, validate_territory


def _read_json(path: str) -> Any:
    return json.loads(resolve_project_path(path).read_text(encoding="utf-8"))


def _load_points(path: str) -> list[GeoPoint]:
    """Read a JSON list of `{lat, lon}` objects (range-checked via `Coordinate`)."""
    raw = _read_json(path)
    if not isinstance(raw, list):
        raise ValueError(f"{path}: expected a JSON list of points")
    return [Coordinate.model_validate(item).to_core() for item in raw]


def _load_territories(path: str) -> list[Territory]:
    raw = _read_json(path)
    if not isinstance(raw, list):
        raise ValueError(f"{path}: expected a JSON list of territories")
    return [Territory.model_validate(item) for item in raw]


def _load_fixes(path: str) -> list[TimedFix]:
    raw = _read_json(path)
    if not isinstance(raw, list):
        raise ValueError(f"{path}: expected a JSON list of fixes")
    fixes = []
    for item in raw:
        fixes.append(
            TimedFix.at(
                float(item["lat"]),
                float(item["lon"]),
                parse_datetime(str(item["observed_at"])),
                accuracy_m=float(item.get("accuracy_m", 0.0)),
            )
        )
    return fixes


def _settings_with_overrides(raw: str | None) -> Settings:
    settings = get_settings()
    if not raw:
        return settings
    overrides = json.loads(raw)
    if not isinstance(overrides, dict):
        raise ValueError("--overrides must be a JSON object")
    return apply_settings_overrides(settings, overrides)


def _resolve_settings(args: argparse.Namespace) -> Settings | None:
    """Settings for this run, or None (after printing why) when `--overrides` is rejected."""
    try:
        return _settings_with_overrides(args.overrides)
    except ValueError as e:
        print(f"invalid --overrides: {e}", file=sys.stderr)
        return None


def _cmd_validate(args: argparse.Namespace) -> int:
    """Handle the `validate` subcommand."""
    settings = _resolve_settings(args)
    if settings is None:
        return 2
    result = validate_territory(_load_points(args.path_file), TerritoryLimits.from_settings(settings.claim))
    if args.json:
        print(json.dumps(result.as_dict(), ensure_ascii=False, indent=2))
    elif result.is_valid:
        print(f"VALID  area={result.area_m2:.1f} m2")
    else:
        print(f"INVALID  reason={result.reason.value if result.reason else '-'}  {result.detail}")
    return 0 if result.is_valid else 1


def _cmd_collide(args: argparse.Namespace) -> int:
    settings = get_settings()
    detector = CollisionDetector.from_settings(settings.collision)
    point = Coordinate(lat=args.lat, lon=args.lon)
    result = detector.check_point(point, args.owner, _load_territories(args.territories_file))
    print(json.dumps(result.as_dict(), ensure_ascii=False, indent=2))
    return 1 if result.has_collision else 0


class _ReplayClock:
    """Current replay time: the timestamp of the fix being fed."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _replay_claim(
    fixes: list[TimedFix], settings: Settings, events: FanOutEventSink, clock: _ReplayClock, owner: str
) -> dict[str, Any]:
    session = ClaimSession(owner, settings, events=events)
    session.start(fixes[0].observed_at)
    for fix in fixes:
        clock.now = fix.observed_at
        session.tick(fix.observed_at)
        session.offer_fix(fix)
        if not session.is_active:
            break
    clock.now = fixes[-1].observed_at
    session.stop(fixes[-1].observed_at)

    outcome: dict[str, Any] = {
        "mode": "claim",
        "phase": session.phase.value,
        "points": len(session.path),
        "validation": session.validation.as_dict() if session.validation else None,
        "termination": session.termination.reason.value if session.termination else None,
    }
    return outcome


def _replay_exploration(
    fixes: list[TimedFix], settings: Settings, events: FanOutEventSink, clock: _ReplayClock
) -> dict[str, Any]:
    session = ExplorationSession(settings, events=events)
    session.start(fixes[0].observed_at)
    for fix in fixes:
        clock.now = fix.observed_at
        session.tick(fix.observed_at)
        session.offer_fix(fix)
        if not session.is_active:
            break

    clock.now = fixes[-1].observed_at
    outcome: dict[str, Any] = {"mode": "exploration", "points": len(session.path)}
    try:
        result = session.finish(fixes[-1].observed_at)
    except SessionStateError:
        outcome["phase"] = session.phase.value
        outcome["termination"] = session.termination.reason.value if session.termination else None
        outcome["distance"] = format_distance(session.distance_m)
        return outcome

    outcome["phase"] = SessionPhase.COMPLETED.value
    outcome["result"] = result.as_dict()
    outcome["distance"] = format_distance(result.distance_m)
    outcome["duration"] = format_duration(result.duration_s)
    return outcome


def _cmd_replay(args: argparse.Namespace) -> int:
    """Handle the `replay` subcommand (feed a recorded fix log through a session)."""
    settings = _resolve_settings(args)
    if settings is None:
        return 2
    fixes = sorted(_load_fixes(args.fixes_file), key=lambda f: f.observed_at)
    if not fixes:
        print("no fixes to replay")
        return 1

    clock = _ReplayClock(fixes[0].observed_at)
    recorder = RecordingEventSink(clock=clock)
    events = FanOutEventSink(recorder, LoggingEventSink("replay"))
    if args.mode == "claim":
        outcome = _replay_claim(fixes, settings, events, clock, args.owner)
    else:
        outcome = _replay_exploration(fixes, settings, events, clock)

    print(recorder.export())
    print(json.dumps(outcome, ensure_ascii=False, indent=2))
    if outcome.get("termination"):
        return 1
    validation = outcome.get("validation")
    if args.mode == "claim" and not (validation and validation.get("is_valid")):
        return 1
    return 0


def _cmd_tier(args: argparse.Namespace) -> int:
    distance = float(args.distance_m)
    tier = RewardTier.from_distance(distance)
    upcoming = next_tier_info(distance)
    print(f"{format_distance(distance)}: {tier.display_name} ({tier.item_count} items)")
    if upcoming is None:
        print("top tier reached")
    else:
        next_tier, remaining = upcoming
        print(f"next: {next_tier.display_name} in {format_distance(remaining)}")
    return 0


def _cmd_project(args: argparse.Namespace) -> int:
    shifted = wgs84_to_gcj02(Coordinate(lat=args.lat, lon=args.lon))
    print(f"{shifted.lat:.8f} {shifted.lon:.8f}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the ClaimWalk CLI."""
    parser = argparse.ArgumentParser(prog="claimwalk")
    sub = parser.add_subparsers(dest="command", required=True)

    val = sub.add_parser("validate", help="Validate a recorded loop (JSON list of {lat, lon}).")
    val.add_argument("path_file")
    val.add_argument("--overrides", type=str, default=None, help="JSON object of settings overrides")
    val.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    val.set_defaults(func=_cmd_validate)

    col = sub.add_parser("collide", help="Check a point against stored territories.")
    col.add_argument("territories_file")
    col.add_argument("--lat", required=True, type=float)
    col.add_argument("--lon", required=True, type=float)
    col.add_argument("--owner", required=True, help="Player id; their own territories are ignored")
    col.set_defaults(func=_cmd_collide)

    rep = sub.add_parser("replay", help="Replay a recorded fix log through a claim or exploration session.")
    rep.add_argument("fixes_file")
    rep.add_argument("--mode", choices=["claim", "exploration"], default="claim")
    rep.add_argument("--owner", default="replay", help="Player id for claim replays")
    rep.add_argument("--overrides", type=str, default=None, help="JSON object of settings overrides")
    rep.set_defaults(func=_cmd_replay)

    tier = sub.add_parser("tier", help="Show the reward tier for a walked distance.")
    tier.add_argument("distance_m", type=float)
    tier.set_defaults(func=_cmd_tier)

    proj = sub.add_parser("project", help="Convert a WGS-84 point to GCJ-02 display coordinates.")
    proj.add_argument("--lat", required=True, type=float)
    proj.add_argument("--lon", required=True, type=float)
    proj.set_defaults(func=_cmd_project)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m claimwalk.cli`."""
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)
    func: Any = getattr(args, "func")
    return int(func(args))


if __name__ == "__main__":
    raise SystemExit(main())
