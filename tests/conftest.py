"""
Pytest configuration and fixtures for live_trail tests.

Provides a scripted position source that records subscribe/unsubscribe calls,
and helpers for building samples.
"""

from collections import deque
from typing import Deque, List, Union

import pytest

from live_trail.controller import TrackingController
from live_trail.errors import SourceError
from live_trail.models import Coordinate, PositionSample, TrackerConfig
from live_trail.sources import PositionSource


def make_sample(lon: float, lat: float, ts: int = 0) -> PositionSample:
    """Build a PositionSample from lon/lat."""
    return PositionSample(coordinate=Coordinate(longitude=lon, latitude=lat), timestamp_ms=ts)


class ScriptedSource(PositionSource):
    """Position source fed by the test: each pump() delivers the next queued item.

    Items are PositionSample (delivered as a fix) or SourceError (raised as a failure).
    The clock is the ``now`` attribute and only moves when a test moves it.
    """

    def __init__(self, available: bool = True):
        self.now = 0
        super().__init__(clock=lambda: self.now)
        self._available = available
        self._queue: Deque[Union[PositionSample, SourceError]] = deque()
        self.subscribe_calls = 0
        self.fetch_calls = 0
        self.unsubscribe_calls: List[int] = []

    @property
    def available(self) -> bool:
        return self._available

    def feed(self, *items):
        self._queue.extend(items)

    def subscribe(self, on_sample, on_error, options=None):
        self.subscribe_calls += 1
        if options is None:
            return super().subscribe(on_sample, on_error)
        return super().subscribe(on_sample, on_error, options)

    def fetch_once(self, on_sample, on_error, options=None):
        self.fetch_calls += 1
        if options is None:
            return super().fetch_once(on_sample, on_error)
        return super().fetch_once(on_sample, on_error, options)

    def unsubscribe(self, handle):
        self.unsubscribe_calls.append(handle)
        super().unsubscribe(handle)

    def pump_all(self) -> int:
        """Pump until the queue is drained or nobody is listening."""
        total = 0
        while self._queue and self.active_requests:
            total += self.pump()
        return total

    def _next_fix(self, now):
        if not self._queue:
            return None
        item = self._queue.popleft()
        if isinstance(item, SourceError):
            raise item
        return item


@pytest.fixture
def source():
    """Fixture providing an available scripted source."""
    return ScriptedSource()


@pytest.fixture
def unavailable_source():
    """Fixture providing a scripted source without geolocation capability."""
    return ScriptedSource(available=False)


@pytest.fixture
def config():
    """Fixture providing the default tracker config with a UTC clock."""
    return TrackerConfig(tz_name="UTC")


@pytest.fixture
def controller(source, config):
    """Fixture providing an idle controller wired to the scripted source."""
    ctl = TrackingController(source, config)
    yield ctl
    ctl.close()


@pytest.fixture
def five_point_walk():
    """Fixture providing five fixes, each well beyond the jitter threshold of the last."""
    return [make_sample(-122.40 - i * 0.001, 37.75 + i * 0.001, ts=1000 * i) for i in range(5)]
