"""Coordinate comparison helpers (no external dependencies)."""

from __future__ import annotations

from live_trail.models import Coordinate


def is_significant_move(prev: Coordinate, cur: Coordinate, epsilon: float) -> bool:
    """Check whether cur moved more than epsilon degrees from prev on either axis.

    This is a coarse anti-jitter filter: longitude and latitude deltas are compared
    independently, in degrees. It is not a geodesic distance, so the effective
    threshold in meters shrinks along longitude towards the poles.

    Args:
        prev: Last stored coordinate.
        cur: Candidate coordinate.
        epsilon: Per-axis threshold in degrees.

    Returns:
        True if |Δlon| > epsilon or |Δlat| > epsilon.
    """

    return abs(cur.longitude - prev.longitude) > epsilon or abs(cur.latitude - prev.latitude) > epsilon

