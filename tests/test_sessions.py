from datetime import timedelta

import pytest

from claimwalk.collision.detector import CollisionKind
from claimwalk.config.overrides import apply_settings_overrides
from claimwalk.config.settings import get_settings
from claimwalk.core.events import EngineEvent, RecordingEventSink
from claimwalk.rewards.tiers import RewardTier
from claimwalk.session.base import SessionPhase, SessionStateError
from claimwalk.session.claim import ClaimSession
from claimwalk.session.driver import SessionDriver
from claimwalk.session.exploration import ExplorationSession
from claimwalk.session.formatting import format_distance, format_duration, format_speed
from claimwalk.tracking.speed import TerminationReason
from claimwalk.validation.territory import ValidationReason
from walks import BLOCK_100, SQUARE_48, T0, at, fixes, territory


def _seconds(s: float):
    return T0 + timedelta(seconds=s)


def test_claim_square_walk_closes_and_validates():
    events = RecordingEventSink()
    session = ClaimSession("user-a", events=events)
    session.start(T0)

    steps = [session.offer_fix(fix) for fix in fixes(SQUARE_48)]

    assert [s.phase for s in steps[:-1]] == [SessionPhase.TRACKING] * 11
    assert steps[-1].phase is SessionPhase.CLOSED
    assert steps[-1].closure is not None and steps[-1].closure.just_closed
    assert session.validation is not None and session.validation.is_valid
    assert session.validation.area_m2 == pytest.approx(48 * 48, rel=0.10)
    assert EngineEvent.VALIDATION_PASSED in events.events()

    record = session.to_territory()
    assert record.owner_id == "user-a"
    assert len(record.polygon) == 12
    assert record.bbox is not None and record.bbox.contains(at(24, 24))


def test_claim_path_is_frozen_after_closure_and_stop():
    session = ClaimSession("user-a")
    session.start(T0)
    for fix in fixes(SQUARE_48):
        session.offer_fix(fix)

    extra = fixes([(0, 0), (0, 30)], start=_seconds(200))
    assert session.offer_fix(extra[1]).phase is SessionPhase.CLOSED
    assert len(session.path) == 12

    assert session.stop(_seconds(300)) is SessionPhase.STOPPED
    assert session.offer_fix(extra[1]).phase is SessionPhase.STOPPED
    assert session.stop(_seconds(400)) is SessionPhase.STOPPED
    assert len(session.path) == 12


def test_claim_stopped_early_is_not_a_territory():
    session = ClaimSession("user-a")
    session.start(T0)
    for fix in fixes(SQUARE_48[:5]):
        session.offer_fix(fix)
    session.stop(_seconds(60))
    assert session.validation is None
    with pytest.raises(SessionStateError):
        session.to_territory()


def test_claim_invalid_loop_reports_reason():
    settings = apply_settings_overrides(get_settings(), {"claim": {"min_area_m2": 10_000}})
    session = ClaimSession("user-a", settings)
    session.start(T0)
    for fix in fixes(SQUARE_48):
        step = session.offer_fix(fix)
    assert step.validation is not None
    assert step.validation.reason is ValidationReason.INSUFFICIENT_AREA


def test_claim_hard_overspeed_terminates():
    events = RecordingEventSink()
    session = ClaimSession("user-a", events=events)
    session.start(T0)
    session.offer_fix(fixes([(0, 0)])[0])
    # 60 m in 2 s.
    step = session.offer_fix(fixes([(0, 0), (0, 60)], step_s=2)[1])

    assert step.phase is SessionPhase.TERMINATED
    assert session.termination is not None
    assert session.termination.reason is TerminationReason.OVERSPEED_HARD_STOP
    assert len(session.path) == 1
    assert EngineEvent.SPEED_HARD_STOP in events.events()


def test_claim_fast_walk_only_warns():
    events = RecordingEventSink()
    session = ClaimSession("user-a", events=events)
    session.start(T0)
    # 16 m every 2 s is about 29 km/h.
    steps = [session.offer_fix(fix) for fix in fixes([(0, 0), (0, 16), (0, 32)], step_s=2)]
    assert all(s.outcome is not None and s.outcome.accepted for s in steps)
    assert session.phase is SessionPhase.TRACKING
    assert EngineEvent.SPEED_WARNING in events.events()


def test_claim_cannot_start_inside_foreign_territory():
    session = ClaimSession("user-a")
    result = session.start(T0, at(50, 50), [territory("user-b", BLOCK_100)])
    assert result is not None and result.has_collision
    assert session.phase is SessionPhase.IDLE

    result = session.start(T0, at(-300, -300), [territory("user-b", BLOCK_100)])
    assert result is not None and not result.has_collision
    assert session.phase is SessionPhase.PENDING


def test_collision_poll_terminates_on_crossing():
    session = ClaimSession("user-a")
    session.start(T0)
    for fix in fixes([(-30, 50), (-15, 50), (15, 50)]):
        session.offer_fix(fix)

    assert not session.collision_poll_due(_seconds(9))
    assert session.collision_poll_due(_seconds(10))

    result = session.poll_collision([territory("user-b", BLOCK_100)], _seconds(10))
    assert result is not None and result.has_collision
    assert session.phase is SessionPhase.TERMINATED
    assert session.termination is not None
    assert session.termination.reason is TerminationReason.COLLISION_VIOLATION

    # Nothing is appended or polled after a forced stop.
    assert session.offer_fix(fixes([(20, 50)], start=_seconds(30))[0]).phase is SessionPhase.TERMINATED
    assert session.poll_collision([territory("user-b", BLOCK_100)], _seconds(40)) is None
    assert len(session.path) == 3


def test_collision_poll_covers_segments_walked_between_polls():
    session = ClaimSession("user-a")
    session.start(T0)
    block = [territory("user-b", BLOCK_100)]
    walked = fixes([(-40, 40), (-25, 30), (-10, 20), (20, -10), (35, -25), (50, -40)], step_s=12)

    for fix in walked[:2]:
        session.offer_fix(fix)
    first = session.poll_collision(block, _seconds(12))
    assert first is not None and not first.has_collision

    # The (0, 0) corner is cut by the third segment; by the next poll the walker is outside again.
    for fix in walked[2:]:
        session.offer_fix(fix)
    assert len(session.path) == 6

    second = session.poll_collision(block, _seconds(60))
    assert second is not None and second.has_collision
    assert second.kind is CollisionKind.PATH_CROSSES_TERRITORY
    assert session.termination is not None
    assert session.termination.reason is TerminationReason.COLLISION_VIOLATION


def _exploration_fixes(ys, step_s=2.0):
    return fixes([(0, y) for y in ys], step_s=step_s)


def test_exploration_overspeed_recovered_in_time_keeps_going():
    events = RecordingEventSink()
    session = ExplorationSession(events=events)
    session.start(T0)

    # t=0 start, t=2..10 at ~40 km/h, t=12 onward slow again.
    ys = [0, 22, 44, 66, 88, 110, 118, 126]
    for fix in _exploration_fixes(ys):
        session.offer_fix(fix)

    assert session.phase is SessionPhase.TRACKING
    assert session.termination is None
    assert not session.is_over_limit
    # Only the two slow 8 m moves counted.
    assert session.distance_m == pytest.approx(16.0, abs=0.05)
    assert EngineEvent.SPEED_OVER_LIMIT in events.events()
    assert EngineEvent.SPEED_RECOVERED in events.events()


def test_exploration_overspeed_past_deadline_terminates():
    session = ExplorationSession()
    session.start(T0)
    ys = [0, 22, 44, 66, 88, 110, 132, 154]
    steps = [session.offer_fix(fix) for fix in _exploration_fixes(ys)]

    # Over the limit from t=2, so the fix at t=12 ends the session.
    assert steps[6].phase is SessionPhase.TERMINATED
    assert session.termination is not None
    assert session.termination.reason is TerminationReason.OVERSPEED_TIMEOUT_EXCEEDED
    assert session.termination.message == "overspeed above 30 km/h for 10 s"
    assert session.distance_m == 0.0


def test_exploration_tick_enforces_deadline_without_fixes():
    session = ExplorationSession()
    session.start(T0)
    for fix in _exploration_fixes([0, 22]):
        session.offer_fix(fix)
    assert session.is_over_limit

    assert session.tick(_seconds(11.9)) is SessionPhase.TRACKING
    assert session.tick(_seconds(12)) is SessionPhase.TERMINATED
    with pytest.raises(SessionStateError):
        session.finish(_seconds(13))


def test_exploration_finish_reports_tier_and_items():
    events = RecordingEventSink()
    session = ExplorationSession(events=events)
    session.start(T0)
    # 26 steps of 10 m every 5 s: 250 m at 7.2 km/h.
    for fix in fixes([(0, 10 * i) for i in range(26)], step_s=5):
        session.offer_fix(fix)

    result = session.finish(_seconds(150))
    assert result.distance_m == pytest.approx(250, abs=0.5)
    assert result.tier is RewardTier.BRONZE
    assert result.item_count == 1
    assert result.duration_s == 150
    assert session.phase is SessionPhase.COMPLETED
    assert EngineEvent.REWARD_TIER_CHANGED in events.events()

    with pytest.raises(SessionStateError):
        session.finish(_seconds(200))


def test_exploration_finish_without_start_raises():
    with pytest.raises(SessionStateError):
        ExplorationSession().finish(T0)


def test_exploration_cancel_gives_no_reward():
    session = ExplorationSession()
    session.start(T0)
    assert session.cancel(_seconds(5)) is SessionPhase.STOPPED
    with pytest.raises(SessionStateError):
        session.finish(_seconds(6))


def test_session_cannot_start_twice():
    session = ExplorationSession()
    session.start(T0)
    with pytest.raises(SessionStateError):
        session.start(_seconds(1))


class _ScriptedSource:
    def __init__(self, fixes_):
        self.fixes = list(fixes_)

    def latest_fix(self):
        return self.fixes.pop(0) if self.fixes else None


class _StaticTerritories:
    def __init__(self, territories):
        self._territories = territories

    def territories(self):
        return list(self._territories)


def test_driver_reports_pending_when_no_fix_is_available():
    session = ExplorationSession()
    session.start(T0)
    first = fixes([(0, 0)], start=_seconds(2))[0]
    source = _ScriptedSource([None, first])
    driver = SessionDriver(session, source)

    report = driver.tick(T0)
    assert report.phase is SessionPhase.PENDING
    assert not report.fix_offered

    # Not due yet: the source is not consulted.
    assert not driver.tick(_seconds(1)).fix_offered
    assert len(source.fixes) == 1

    report = driver.tick(_seconds(2))
    assert report.fix_offered
    assert report.phase is SessionPhase.TRACKING


def test_driver_polls_collisions_on_cadence():
    session = ClaimSession("user-a")
    session.start(T0)
    walk_fixes = fixes([(-30, 50), (-15, 50), (15, 50)], step_s=5)
    source = _ScriptedSource(walk_fixes)
    driver = SessionDriver(session, source, territories=_StaticTerritories([territory("user-b", BLOCK_100)]))

    assert driver.tick(T0).collision is None
    assert driver.tick(_seconds(5)).collision is None
    report = driver.tick(_seconds(10))
    assert report.collision is not None and report.collision.has_collision
    assert report.phase is SessionPhase.TERMINATED


def test_formatting_helpers():
    assert format_distance(850) == "850 m"
    assert format_distance(1250) == "1.25 km"
    assert format_duration(0) == "00:00"
    assert format_duration(754) == "12:34"
    assert format_duration(3725) == "62:05"
    assert format_speed(12.34) == "12.3 km/h"
