"""Data models for coordinates, position samples and the map viewport."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Final


@dataclass(frozen=True, slots=True)
class Coordinate:
    """A WGS84 position, stored in GeoJSON order (longitude first).

    Raises:
        ValueError: If longitude is outside [-180, 180] or latitude outside [-90, 90].
    """

    longitude: float
    latitude: float

    def __post_init__(self) -> None:
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude!r}")
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude!r}")

    def as_lon_lat(self) -> list[float]:
        """[lon, lat] pair as used by GeoJSON and deck.gl."""

        return [self.longitude, self.latitude]


@dataclass(frozen=True, slots=True)
class PositionSample:
    """A single fix delivered by a position source.

    Attributes:
        coordinate: Reported position.
        timestamp_ms: Unix epoch milliseconds. Non-decreasing per source.
        accuracy_m: Horizontal accuracy in meters, if the source reports one.
        high_accuracy: Whether the fix was requested in high-accuracy mode.
    """

    coordinate: Coordinate
    timestamp_ms: int
    accuracy_m: float | None = None
    high_accuracy: bool = False

    @property
    def latitude(self) -> float:
        return self.coordinate.latitude

    @property
    def longitude(self) -> float:
        return self.coordinate.longitude


class TrackingState(Enum):
    IDLE = "idle"
    ACTIVE = "active"


@dataclass(frozen=True, slots=True)
class PositionOptions:
    """Options passed to a position source on subscribe / fetch_once.

    Attributes:
        high_accuracy: Ask the source for its most precise fix.
        timeout_ms: Max wait for a fix before a TIMEOUT error. None waits forever.
        max_cache_age_ms: Accept a cached fix no older than this. 0 forces a fresh fix.
    """

    high_accuracy: bool = True
    timeout_ms: int | None = 15_000
    max_cache_age_ms: int = 0


POI: Final[Coordinate] = Coordinate(longitude=-122.4376, latitude=37.7577)
DEFAULT_TZ: Final[str] = "America/Los_Angeles"
DEFAULT_EPSILON: Final[float] = 0.00001

WATCH_OPTIONS: Final[PositionOptions] = PositionOptions(high_accuracy=True, timeout_ms=15_000, max_cache_age_ms=0)
ONE_SHOT_OPTIONS: Final[PositionOptions] = PositionOptions(high_accuracy=True, timeout_ms=None, max_cache_age_ms=0)


@dataclass(frozen=True, slots=True)
class ViewportState:
    """Camera of the map view."""

    center: Coordinate = POI
    zoom: float = 8.0
    bearing: float = 0.0
    pitch: float = 0.0

    def recentered(self, center: Coordinate) -> ViewportState:
        """Same zoom/bearing/pitch, new center."""

        return replace(self, center=center)


@dataclass(frozen=True, slots=True)
class TrackerConfig:
    """Parameters of a tracking session.

    Attributes:
        epsilon: Per-axis degree threshold below which a fix counts as jitter.
        watch_options: Options for the continuous subscription.
        one_shot_options: Options for the immediate fetch issued on start.
        initial_viewport: Viewport before any interaction or fix.
        poi: Fixed point of interest shown on the map.
        tz_name: IANA timezone used for the "last updated" clock.
    """

    epsilon: float = DEFAULT_EPSILON
    watch_options: PositionOptions = WATCH_OPTIONS
    one_shot_options: PositionOptions = ONE_SHOT_OPTIONS
    initial_viewport: ViewportState = field(default_factory=ViewportState)
    poi: Coordinate = POI
    tz_name: str = DEFAULT_TZ
