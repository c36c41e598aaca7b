import json

from claimwalk.cli import main
from walks import BLOCK_100, FIGURE_EIGHT, SQUARE_40, SQUARE_48, at, fixes, grid, walk


def _write_points(path, points):
    path.write_text(json.dumps([{"lat": p.lat, "lon": p.lon} for p in points]), encoding="utf-8")
    return str(path)


def test_cli_validate_accepts_square(tmp_path, capsys):
    path_file = _write_points(tmp_path / "square.json", walk(SQUARE_40))
    assert main(["validate", path_file]) == 0
    assert capsys.readouterr().out.startswith("VALID")


def test_cli_validate_rejects_figure_eight(tmp_path, capsys):
    path_file = _write_points(tmp_path / "eight.json", grid(FIGURE_EIGHT))
    assert main(["validate", path_file, "--json"]) == 1
    out = json.loads(capsys.readouterr().out)
    assert out["reason"] == "self_intersecting"


def test_cli_collide(tmp_path, capsys):
    territories = [
        {"owner_id": "user-b", "polygon": [{"lat": p.lat, "lon": p.lon} for p in walk(BLOCK_100)]},
    ]
    territories_file = tmp_path / "territories.json"
    territories_file.write_text(json.dumps(territories), encoding="utf-8")
    inside = at(50, 50)

    argv = ["collide", str(territories_file), "--lat", str(inside.lat), "--lon", str(inside.lon)]
    code = main([*argv, "--owner", "user-a"])
    assert code == 1
    assert json.loads(capsys.readouterr().out)["warning_level"] == "violation"


def _write_fixes(path, fix_list):
    payload = [
        {
            "lat": f.point.lat,
            "lon": f.point.lon,
            "accuracy_m": f.accuracy_m,
            "observed_at": f.observed_at.isoformat().replace("+00:00", "Z"),
        }
        for f in fix_list
    ]
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


def test_cli_replay_claim(tmp_path, capsys):
    fixes_file = _write_fixes(tmp_path / "claim.json", fixes(SQUARE_48))
    assert main(["replay", fixes_file, "--mode", "claim"]) == 0
    out = capsys.readouterr().out
    assert "closure.detected" in out
    # Event stamps follow the replayed fixes, not the wall clock.
    assert "[2026-03-01 08:00:00] [INFO] session.started" in out
    assert "validation.passed" in out


def test_cli_replay_exploration(tmp_path, capsys):
    fixes_file = _write_fixes(tmp_path / "walk.json", fixes([(0, 10 * i) for i in range(30)], step_s=5))
    assert main(["replay", fixes_file, "--mode", "exploration"]) == 0
    out = capsys.readouterr().out
    outcome = json.loads(out[out.index("{") :])
    assert outcome["phase"] == "completed"
    assert outcome["result"]["tier"] == "bronze"


def test_cli_tier(capsys):
    assert main(["tier", "1200"]) == 0
    out = capsys.readouterr().out
    assert "Gold" in out
    assert "Diamond in 800 m" in out


def test_cli_project(capsys):
    assert main(["project", "--lat", "39.915", "--lon", "116.404"]) == 0
    lat, lon = (float(v) for v in capsys.readouterr().out.split())
    assert abs(lat - 39.91640428) < 1e-6
    assert abs(lon - 116.41024450) < 1e-6


def test_cli_replay_rejects_inconsistent_overrides(tmp_path, capsys):
    fixes_file = _write_fixes(tmp_path / "claim.json", fixes(SQUARE_48))
    code = main(["replay", fixes_file, "--overrides", '{"sampling": {"max_single_move_m": 8}}'])
    assert code == 2
    captured = capsys.readouterr()
    assert "max_single_move_m" in captured.err
