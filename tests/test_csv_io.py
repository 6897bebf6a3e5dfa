"""
Tests for reading and writing recorded track CSVs.
"""

import pytest

from conftest import make_sample
from live_trail.csv_io import load_position_samples, write_position_samples
from live_trail.sources import ReplayPositionSource


@pytest.fixture
def track_csv(tmp_path):
    """CSV with one bad row, one short row, one out-of-range row and unsorted times."""
    path = tmp_path / "track.csv"
    path.write_text(
        "geoTime,latitude,longitude,horizontalAccuracy,speed\n"
        "2000,37.7510,-122.4010,5.0,1.2\n"
        "1000,37.7500,-122.4000,-1,0\n"
        "oops,37.7520,-122.4020,5.0,0\n"
        "5000,37.7550\n"
        "3000,95.0,-122.4030,5.0,0\n"
        "4000,37.7540,-122.4040,,0\n",
        encoding="utf-8",
    )
    return path


class TestLoad:
    def test_parses_sorts_and_skips(self, track_csv):
        samples, summary = load_position_samples(track_csv)
        assert summary.rows_total == 6
        assert summary.rows_parsed == 3
        assert summary.rows_skipped == 3
        assert [s.timestamp_ms for s in samples] == [1000, 2000, 4000]
        assert samples[0].accuracy_m is None
        assert samples[1].accuracy_m == 5.0
        assert samples[2].accuracy_m is None

    def test_missing_column(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("geoTime,latitude\n1,2\n", encoding="utf-8")
        with pytest.raises(KeyError, match="longitude"):
            load_position_samples(path)

    def test_skipped_rows_are_logged(self, track_csv, caplog):
        with caplog.at_level("WARNING"):
            load_position_samples(track_csv)
        assert "skipped 3" in caplog.text


class TestWrite:
    def test_written_file_replays(self, tmp_path):
        path = tmp_path / "out" / "walk.csv"
        samples = [make_sample(-122.4 - i * 0.001, 37.75, ts=i * 1000) for i in range(4)]
        assert write_position_samples(samples, path) == 4

        src = ReplayPositionSource.from_csv(path, interval_ms=0, clock=lambda: 0)
        assert src.available
        assert src.remaining == 4


def test_short_row_does_not_break_replay(tmp_path):
    path = tmp_path / "short.csv"
    path.write_text("geoTime,latitude,longitude\n1000,37.75,-122.4\n2000,37.76\n", encoding="utf-8")
    samples, summary = load_position_samples(path)
    assert summary.rows_skipped == 1
    assert len(samples) == 1

    src = ReplayPositionSource.from_csv(path, interval_ms=0, clock=lambda: 0)
    assert src.available
    assert src.remaining == 1
