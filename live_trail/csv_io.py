"""CSV input/output for recorded tracks used by the replay source."""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from live_trail.models import Coordinate, PositionSample

logger = logging.getLogger(__name__)

FIELDNAMES: tuple[str, ...] = ("geoTime", "latitude", "longitude", "horizontalAccuracy")


@dataclass(frozen=True, slots=True)
class CsvSummary:
    """Quick summary of CSV parsing."""

    rows_total: int
    rows_parsed: int
    rows_skipped: int
    fieldnames: Sequence[str]


def _parse_int(value: str) -> int:
    return int(value.strip())


def _parse_float(value: str) -> float:
    return float(value.strip())


def _row_to_sample(row: dict[str, str]) -> PositionSample:
    accuracy = _parse_float(row.get("horizontalAccuracy", "-1") or "-1")
    return PositionSample(
        coordinate=Coordinate(
            longitude=_parse_float(row["longitude"]),
            latitude=_parse_float(row["latitude"]),
        ),
        timestamp_ms=_parse_int(row["geoTime"]),
        # -1 is the exporter's "unknown" sentinel
        accuracy_m=accuracy if accuracy >= 0 else None,
    )


def load_position_samples(csv_path: str | Path) -> tuple[list[PositionSample], CsvSummary]:
    """Load a recorded track into memory, sorted by time.

    Args:
        csv_path: Path to a CSV with geoTime (epoch ms), latitude and longitude columns.

    Returns:
        (samples, summary)

    Raises:
        KeyError: If a required column is missing.

    Notes:
        Rows that fail to parse or hold out-of-range coordinates are skipped.
    """

    p = Path(csv_path)
    rows_total = 0
    parsed: list[PositionSample] = []

    with p.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        fieldnames: Sequence[str] = reader.fieldnames or ()
        missing = [c for c in ("geoTime", "latitude", "longitude") if c not in fieldnames]
        if missing:
            raise KeyError(f"CSV is missing required columns: {missing}. Actual columns: {list(fieldnames)}")
        for row in reader:
            rows_total += 1
            try:
                parsed.append(_row_to_sample(row))
            except (ValueError, TypeError, AttributeError):
                # short rows leave missing columns as None
                continue

    parsed.sort(key=lambda s: s.timestamp_ms)
    summary = CsvSummary(
        rows_total=rows_total,
        rows_parsed=len(parsed),
        rows_skipped=rows_total - len(parsed),
        fieldnames=fieldnames,
    )
    if summary.rows_skipped > 0:
        logger.warning("skipped %s CSV rows that failed to parse", summary.rows_skipped)
    return parsed, summary


def write_position_samples(samples: Iterable[PositionSample], out_path: str | Path) -> int:
    """Write samples in the format read by load_position_samples.

    Returns:
        Number of rows written.
    """

    p = Path(out_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    n = 0
    with p.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=list(FIELDNAMES))
        w.writeheader()
        for s in samples:
            w.writerow(
                {
                    "geoTime": s.timestamp_ms,
                    "latitude": f"{s.latitude:.7f}",
                    "longitude": f"{s.longitude:.7f}",
                    "horizontalAccuracy": f"{s.accuracy_m:.1f}" if s.accuracy_m is not None else "-1",
                }
            )
            n += 1
    return n
