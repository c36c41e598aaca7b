import logging
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from claimwalk.core.events import EngineEvent, FanOutEventSink, LoggingEventSink, RecordingEventSink
from claimwalk.core.time import parse_datetime
from claimwalk.domain.models import Coordinate, Territory, TimedFix
from walks import BLOCK_100, SQUARE_40, walk


def test_recording_sink_is_bounded_and_exportable():
    sink = RecordingEventSink(max_records=3)
    for i in range(5):
        sink.emit(EngineEvent.SAMPLE_ACCEPTED, f"point {i}", points=i)

    assert len(sink.records) == 3
    assert sink.records[0].message == "point 2"
    assert sink.records[-1].fields == {"points": 4}

    text = sink.export()
    assert text.splitlines()[0] == "events: 3"
    assert "[INFO] sample.accepted point 4" in text

    sink.clear()
    assert sink.events() == []


def test_logging_sink_writes_structured_line(caplog):
    sink = LoggingEventSink("closure")
    with caplog.at_level(logging.INFO, logger="claimwalk.closure"):
        sink.emit(EngineEvent.CLOSURE_DETECTED, "loop closed", distance_m=12.5)
        sink.emit(EngineEvent.CLOSURE_PROGRESS, "still walking", level=logging.DEBUG)

    messages = [r.getMessage() for r in caplog.records if r.name == "claimwalk.closure"]
    assert messages == ['closure.detected loop closed {"distance_m": 12.5}']


def test_fan_out_delivers_to_every_sink():
    a, b = RecordingEventSink(), RecordingEventSink()
    FanOutEventSink(a, b).emit(EngineEvent.SESSION_STARTED, "go", level=logging.WARNING)
    assert a.events() == b.events() == [EngineEvent.SESSION_STARTED]
    assert a.records[0].level == logging.WARNING


def test_coordinate_ranges_are_validated():
    with pytest.raises(ValidationError):
        Coordinate(lat=91, lon=0)
    with pytest.raises(ValidationError):
        Coordinate(lat=0, lon=-181)


def test_fix_timestamps_are_timezone_aware():
    fix = TimedFix.at(31.2, 121.4, datetime(2026, 3, 1, 8, 0))
    assert fix.observed_at.tzinfo is not None
    assert parse_datetime("2026-03-01T08:00:00Z") == fix.observed_at


def test_territory_derives_bbox_and_closes_wkt_ring():
    record = Territory.from_path("user-a", walk(SQUARE_40), area_m2=1600.0, territory_id="t-1")
    assert record.bbox is not None
    assert record.bbox.min_lat == min(p.lat for p in record.polygon)
    assert record.bbox.max_lon == max(p.lon for p in record.polygon)

    wkt = record.polygon_wkt()
    assert wkt.startswith("SRID=4326;POLYGON((")
    first = record.polygon[0]
    # Longitude first, and the ring is closed by repeating the first vertex.
    ring = wkt[len("SRID=4326;POLYGON((") : -len("))")].split(", ")
    assert len(ring) == 13
    assert ring[0] == ring[-1] == f"{first.lon} {first.lat}"

    row = record.storage_row()
    assert row["point_count"] == 12
    assert row["user_id"] == "user-a"
    assert row["path"][0] == {"lat": first.lat, "lon": first.lon}


def test_territory_owner_match_is_case_insensitive():
    record = Territory(owner_id="Player-7", polygon=[Coordinate(lat=p.lat, lon=p.lon) for p in walk(BLOCK_100)])
    assert record.is_owned_by("player-7")
    assert not record.is_owned_by("player-8")
    assert not record.is_degenerate


def test_recording_sink_stamps_records_with_injected_clock():
    now = datetime(2026, 3, 1, 8, 0, 0, tzinfo=timezone.utc)
    sink = RecordingEventSink(clock=lambda: now)
    sink.emit(EngineEvent.SESSION_STARTED, "go")
    now = now + timedelta(seconds=90)
    sink.emit(EngineEvent.SESSION_STOPPED, "done")

    assert [r.recorded_at.minute for r in sink.records] == [0, 1]
    lines = sink.export().splitlines()
    assert lines[1] == "[2026-03-01 08:00:00] [INFO] session.started go"
    assert lines[2] == "[2026-03-01 08:01:30] [INFO] session.stopped done"
