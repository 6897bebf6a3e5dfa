"""Trail accumulation with a per-axis anti-jitter filter."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from live_trail.geo import is_significant_move
from live_trail.models import DEFAULT_EPSILON, Coordinate, PositionSample

logger = logging.getLogger(__name__)

PointTag = Literal["start", "end", ""]


@dataclass(frozen=True, slots=True)
class TrailPoint:
    """A trail coordinate tagged for rendering."""

    index: int
    coordinate: Coordinate
    tag: PointTag = ""

    @property
    def is_start(self) -> bool:
        return self.tag == "start"

    @property
    def is_end(self) -> bool:
        return self.tag == "end"


class TrailAccumulator:
    """Ordered, append-only history of accepted coordinates for one session.

    Growth is unbounded: a trail lives only as long as the interactive session.
    """

    def __init__(self, epsilon: float = DEFAULT_EPSILON, visible: bool = True) -> None:
        if epsilon < 0:
            raise ValueError(f"epsilon must be >= 0, got {epsilon!r}")
        self._epsilon = epsilon
        self._coords: list[Coordinate] = []
        self._visible = visible

    @property
    def epsilon(self) -> float:
        return self._epsilon

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def coordinates(self) -> tuple[Coordinate, ...]:
        return tuple(self._coords)

    def __len__(self) -> int:
        return len(self._coords)

    @property
    def last(self) -> Coordinate | None:
        return self._coords[-1] if self._coords else None

    def offer(self, sample: PositionSample) -> bool:
        """Append the sample's coordinate if it is a significant move.

        Args:
            sample: Accepted position sample.

        Returns:
            True if the trail grew by one entry.
        """

        cur = sample.coordinate
        last = self.last
        if last is not None and not is_significant_move(last, cur, self._epsilon):
            logger.debug("jitter filtered: %s within %s of %s", cur, self._epsilon, last)
            return False
        self._coords.append(cur)
        return True

    def clear(self) -> None:
        """Drop every stored coordinate."""

        n = len(self._coords)
        self._coords.clear()
        logger.info("trail cleared (%s points dropped)", n)

    def toggle_visibility(self) -> bool:
        """Flip the display flag. Stored coordinates are untouched.

        Returns:
            The new visibility.
        """

        self._visible = not self._visible
        return self._visible

    def line(self) -> tuple[Coordinate, ...]:
        """Trail as an ordered polyline. Only meaningful with two or more points."""

        return tuple(self._coords)

    def points(self) -> tuple[TrailPoint, ...]:
        """Trail as discrete points: first tagged "start", last tagged "end" when len > 1."""

        n = len(self._coords)
        out: list[TrailPoint] = []
        for i, c in enumerate(self._coords):
            tag: PointTag = ""
            if i == 0:
                tag = "start"
            elif i == n - 1:
                tag = "end"
            out.append(TrailPoint(index=i, coordinate=c, tag=tag))
        return tuple(out)
