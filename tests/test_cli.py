"""
Tests for the command-line interface.
"""

import asyncio

import pytest

from conftest import ScriptedSource, make_sample
from live_trail.cli import build_parser, main, run_session
from live_trail.controller import TrackingController
from live_trail.models import TrackerConfig, TrackingState

FAST = ["--tick-ms", "0", "--interval-ms", "0", "--tz", "UTC"]


class TestTrackCommand:
    def test_simulated_session(self, capsys):
        assert main(["track", "--source", "simulate", "--updates", "6", *FAST]) == 0
        out = capsys.readouterr().out
        assert "--- event" in out
        assert "Trail points:" in out
        assert "state=idle" in out

    def test_no_geolocation(self, capsys):
        assert main(["track", "--source", "none", *FAST]) == 2
        assert "not supported" in capsys.readouterr().err

    def test_source_failure(self, capsys):
        assert main(["track", "--source", "simulate", "--fail-after", "2", "--updates", "50", *FAST]) == 1
        assert "Error getting location: Position unavailable" in capsys.readouterr().out

    def test_stop_after(self, capsys):
        assert main(["track", "--source", "simulate", "--updates", "50", "--stop-after", "3", *FAST]) == 0
        assert "events=3" in capsys.readouterr().out

    def test_generate_then_replay(self, tmp_path, capsys):
        path = tmp_path / "track.csv"
        assert main(["generate-sample", "--out", str(path), "--rows", "30", "--tz", "UTC"]) == 0
        assert path.exists()
        capsys.readouterr()

        code = main(["track", "--source", "replay", "--csv", str(path), "--updates", "10", "--json", *FAST])
        assert code == 0
        out = capsys.readouterr().out
        assert '"viewport"' in out
        assert '"panel"' in out

    def test_replay_missing_file(self, tmp_path):
        assert main(["track", "--source", "replay", "--csv", str(tmp_path / "nope.csv"), *FAST]) == 2

    def test_bad_timezone(self):
        with pytest.raises(ValueError):
            main(["track", "--tz", "Not/AZone"])

    def test_parser_requires_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestRunSession:
    def test_session_stops_on_exit(self):
        src = ScriptedSource()
        src.feed(*[make_sample(i * 0.01, 0.0, ts=i) for i in range(3)])
        ctl = TrackingController(src, TrackerConfig(tz_name="UTC"))
        events = asyncio.run(run_session(ctl, updates=100, tick_seconds=0, stop_after=4))
        assert events == 4
        assert ctl.state is TrackingState.IDLE
        assert src.active_requests == 0
        assert len(ctl.trail) == 3
