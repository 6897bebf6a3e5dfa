"""Position sources: cancellable streams of fixes driven by the host loop.

A source never runs on its own thread. The host (asyncio loop in the CLI,
auto-rerunning fragment in the Streamlit app) calls ``pump()``, and every
sample or error callback runs synchronously inside that call, in delivery
order. ``unsubscribe()`` takes effect immediately, including from inside a
callback: a released handle never sees another callback.
"""

from __future__ import annotations

import itertools
import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Sequence

from live_trail.csv_io import load_position_samples
from live_trail.errors import SourceError, SourceErrorKind, UnsupportedCapability
from live_trail.models import ONE_SHOT_OPTIONS, POI, WATCH_OPTIONS, Coordinate, PositionOptions, PositionSample
from live_trail.timeutils import now_ms

logger = logging.getLogger(__name__)

SampleCallback = Callable[[PositionSample], None]
ErrorCallback = Callable[[SourceError], None]
Clock = Callable[[], int]


@dataclass(eq=False, slots=True)
class _Request:
    handle: int
    on_sample: SampleCallback
    on_error: ErrorCallback
    options: PositionOptions
    one_shot: bool
    # clock time of the last callback (or of creation); timeouts count from here
    last_event_ms: int


class PositionSource(ABC):
    """Base class for sources following the watch / clearWatch / one-shot contract."""

    def __init__(self, clock: Clock = now_ms) -> None:
        self._clock = clock
        self._requests: dict[int, _Request] = {}
        self._ids = itertools.count(1)
        self._last_fix: PositionSample | None = None
        self._last_fix_at_ms: int | None = None

    @property
    def available(self) -> bool:
        """Whether the source can produce fixes at all."""

        return True

    @property
    def active_requests(self) -> int:
        return len(self._requests)

    def subscribe(
        self,
        on_sample: SampleCallback,
        on_error: ErrorCallback,
        options: PositionOptions = WATCH_OPTIONS,
    ) -> int:
        """Start a continuous watch.

        Returns:
            Handle for unsubscribe().

        Raises:
            UnsupportedCapability: If the source is not available.
        """

        return self._add(on_sample, on_error, options, one_shot=False)

    def fetch_once(
        self,
        on_sample: SampleCallback,
        on_error: ErrorCallback,
        options: PositionOptions = ONE_SHOT_OPTIONS,
    ) -> int:
        """Request a single fix. The request ends after its first callback.

        Returns:
            Handle that can be passed to unsubscribe() to cancel the request.
        """

        return self._add(on_sample, on_error, options, one_shot=True)

    def unsubscribe(self, handle: int) -> None:
        """Cancel a watch or pending one-shot. Unknown handles are ignored."""

        if self._requests.pop(handle, None) is not None:
            logger.debug("request %s released", handle)

    def _add(self, on_sample: SampleCallback, on_error: ErrorCallback, options: PositionOptions, one_shot: bool) -> int:
        if not self.available:
            raise UnsupportedCapability()
        handle = next(self._ids)
        self._requests[handle] = _Request(
            handle=handle,
            on_sample=on_sample,
            on_error=on_error,
            options=options,
            one_shot=one_shot,
            last_event_ms=self._clock(),
        )
        logger.debug("request %s opened (one_shot=%s, %s)", handle, one_shot, options)
        return handle

    def pump(self, now_ms: int | None = None) -> int:
        """Deliver every fix, cached answer and timeout that is due.

        Args:
            now_ms: Clock override in epoch ms; defaults to the source clock.

        Returns:
            Number of callbacks invoked.
        """

        if not self._requests:
            return 0
        now = self._clock() if now_ms is None else now_ms
        delivered = self._answer_from_cache(now)
        if not self._requests:
            return delivered

        try:
            fix = self._next_fix(now)
        except SourceError as exc:
            logger.info("source error: %s", exc)
            return delivered + self._broadcast_error(exc, now)

        if fix is not None:
            if self._last_fix is not None and fix.timestamp_ms < self._last_fix.timestamp_ms:
                fix = replace(fix, timestamp_ms=self._last_fix.timestamp_ms)
            self._last_fix = fix
            self._last_fix_at_ms = now
            return delivered + self._broadcast_fix(fix, now)
        return delivered + self._expire(now)

    def _answer_from_cache(self, now: int) -> int:
        if self._last_fix is None or self._last_fix_at_ms is None:
            return 0
        age = now - self._last_fix_at_ms
        n = 0
        for req in list(self._requests.values()):
            if not req.one_shot or req.options.max_cache_age_ms <= 0 or age > req.options.max_cache_age_ms:
                continue
            if self._requests.pop(req.handle, None) is None:
                continue
            req.on_sample(replace(self._last_fix, high_accuracy=req.options.high_accuracy))
            n += 1
        return n

    def _broadcast_fix(self, fix: PositionSample, now: int) -> int:
        n = 0
        for req in list(self._requests.values()):
            if req.handle not in self._requests:
                continue
            if req.one_shot:
                del self._requests[req.handle]
            else:
                req.last_event_ms = now
            req.on_sample(replace(fix, high_accuracy=req.options.high_accuracy))
            n += 1
        return n

    def _broadcast_error(self, exc: SourceError, now: int) -> int:
        n = 0
        for req in list(self._requests.values()):
            if req.handle not in self._requests:
                continue
            if req.one_shot:
                del self._requests[req.handle]
            else:
                req.last_event_ms = now
            req.on_error(exc)
            n += 1
        return n

    def _expire(self, now: int) -> int:
        n = 0
        for req in list(self._requests.values()):
            if req.handle not in self._requests:
                continue
            timeout = req.options.timeout_ms
            if timeout is None or now - req.last_event_ms < timeout:
                continue
            if req.one_shot:
                del self._requests[req.handle]
            else:
                req.last_event_ms = now
            req.on_error(SourceError(SourceErrorKind.TIMEOUT))
            n += 1
        return n

    @abstractmethod
    def _next_fix(self, now: int) -> PositionSample | None:
        """Return the fix due at ``now``, or None if nothing new is available.

        Raises:
            SourceError: If acquiring the fix failed.
        """


class UnavailablePositionSource(PositionSource):
    """A platform without geolocation."""

    @property
    def available(self) -> bool:
        return False

    def _next_fix(self, now: int) -> PositionSample | None:
        return None


class ReplayPositionSource(PositionSource):
    """Replays a recorded track, one fix per interval.

    Once the recording is exhausted no new fixes arrive, so watches with a
    timeout eventually receive a TIMEOUT error.
    """

    def __init__(
        self,
        samples: Sequence[PositionSample],
        interval_ms: int = 1000,
        clock: Clock = now_ms,
        available: bool = True,
    ) -> None:
        super().__init__(clock)
        self._samples = list(samples)
        self._interval_ms = interval_ms
        self._idx = 0
        self._last_emit_ms: int | None = None
        self._available = available

    @classmethod
    def from_csv(cls, csv_path: str | Path, interval_ms: int = 1000, clock: Clock = now_ms) -> ReplayPositionSource:
        """Load a recorded track. A missing file yields an unavailable source."""

        p = Path(csv_path)
        if not p.exists():
            logger.warning("replay file not found: %s", p)
            return cls([], interval_ms=interval_ms, clock=clock, available=False)
        samples, summary = load_position_samples(p)
        logger.info("loaded %s fixes from %s (%s rows skipped)", summary.rows_parsed, p, summary.rows_skipped)
        return cls(samples, interval_ms=interval_ms, clock=clock)

    @property
    def available(self) -> bool:
        return self._available

    @property
    def remaining(self) -> int:
        return len(self._samples) - self._idx

    def _next_fix(self, now: int) -> PositionSample | None:
        if self._idx >= len(self._samples):
            return None
        if self._last_emit_ms is not None and now - self._last_emit_ms < self._interval_ms:
            return None
        fix = self._samples[self._idx]
        self._idx += 1
        self._last_emit_ms = now
        return fix


class SimulatedPositionSource(PositionSource):
    """Seeded random walk with stationary phases.

    While "standing still" the fixes only jitter by less than ``jitter_deg``,
    which is the noise the trail filter is meant to absorb.

    Args:
        center: Starting position.
        seed: Random seed (reproducible walks).
        interval_ms: Minimum spacing between fixes.
        step_deg: Max per-axis displacement of a walking step.
        jitter_deg: Max per-axis noise while standing still.
        stay_probability: Chance that a fix is a stationary one.
        fail_after: Raise one SourceError after this many fixes.
        fail_kind: Kind of the injected error.
        clock: Epoch-ms clock.
    """

    def __init__(
        self,
        center: Coordinate = POI,
        seed: int = 42,
        interval_ms: int = 1000,
        step_deg: float = 0.0003,
        jitter_deg: float = 0.000004,
        stay_probability: float = 0.3,
        fail_after: int | None = None,
        fail_kind: SourceErrorKind = SourceErrorKind.POSITION_UNAVAILABLE,
        clock: Clock = now_ms,
    ) -> None:
        super().__init__(clock)
        self._rng = random.Random(seed)
        self._anchor = center
        self._interval_ms = interval_ms
        self._step = step_deg
        self._jitter = jitter_deg
        self._stay_p = stay_probability
        self._fail_after = fail_after
        self._fail_kind = fail_kind
        self._emitted = 0
        self._last_emit_ms: int | None = None

    def _next_fix(self, now: int) -> PositionSample | None:
        if self._last_emit_ms is not None and now - self._last_emit_ms < self._interval_ms:
            return None
        self._last_emit_ms = now
        if self._fail_after is not None and self._emitted == self._fail_after:
            self._fail_after = None
            raise SourceError(self._fail_kind)

        rng = self._rng
        walking = rng.random() >= self._stay_p
        spread = self._step if walking else self._jitter
        lat = self._anchor.latitude + rng.uniform(-spread, spread)
        lon = self._anchor.longitude + rng.uniform(-spread, spread)
        coord = Coordinate(longitude=max(-180.0, min(180.0, lon)), latitude=max(-90.0, min(90.0, lat)))
        if walking:
            self._anchor = coord
        self._emitted += 1
        return PositionSample(coordinate=coord, timestamp_ms=now, accuracy_m=rng.choice([3.0, 5.0, 8.0, 12.0]))
