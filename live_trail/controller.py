"""Tracking controller: the Idle/Active state machine between source, trail and view.

States and transitions::

    IDLE   --start() [source available]--> ACTIVE  (subscribe + one-shot fetch)
    IDLE   --start() [source unavailable]-> IDLE    (error set, UnsupportedCapability)
    ACTIVE --stop()----------------------> IDLE    (release)
    ACTIVE --source error----------------> IDLE    (release, error set)
    ACTIVE --sample----------------------> ACTIVE  (trail offer, viewport follow)

UI code talks to the controller through the command objects below and reads
it back through ``snapshot()``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import TracebackType
from typing import Callable, Union

from live_trail.errors import SourceError, UnsupportedCapability
from live_trail.models import Coordinate, PositionSample, TrackerConfig, TrackingState, ViewportState
from live_trail.sources import PositionSource
from live_trail.trail import TrailAccumulator, TrailPoint

logger = logging.getLogger(__name__)

ERROR_PREFIX = "Error getting location: "


@dataclass(frozen=True, slots=True)
class StartTracking:
    pass


@dataclass(frozen=True, slots=True)
class StopTracking:
    pass


@dataclass(frozen=True, slots=True)
class ToggleTracking:
    pass


@dataclass(frozen=True, slots=True)
class ToggleTrail:
    pass


@dataclass(frozen=True, slots=True)
class ClearTrail:
    pass


@dataclass(frozen=True, slots=True)
class MoveViewport:
    """User-driven pan/zoom/rotate."""

    viewport: ViewportState


Command = Union[StartTracking, StopTracking, ToggleTracking, ToggleTrail, ClearTrail, MoveViewport]


@dataclass(frozen=True, slots=True)
class TrackerSnapshot:
    """Everything the render mapping needs, frozen at one instant."""

    state: TrackingState
    viewport: ViewportState
    user_location: PositionSample | None
    trail: tuple[Coordinate, ...]
    trail_points: tuple[TrailPoint, ...]
    trail_visible: bool
    error: str | None
    poi: Coordinate

    @property
    def tracking(self) -> bool:
        return self.state is TrackingState.ACTIVE


class TrackingController:
    """Owns TrackingState, the tracking-driven viewport, the last fix and the error text.

    Each start() opens a fresh watch plus one immediate one-shot fetch; both feed
    the same acceptance path. Callbacks from a session that has since been
    stopped are dropped.
    """

    def __init__(
        self,
        source: PositionSource,
        config: TrackerConfig | None = None,
        trail: TrailAccumulator | None = None,
    ) -> None:
        self._source = source
        self._config = config or TrackerConfig()
        self._trail = trail if trail is not None else TrailAccumulator(epsilon=self._config.epsilon)
        self._state = TrackingState.IDLE
        self._viewport = self._config.initial_viewport
        self._user_location: PositionSample | None = None
        self._error: str | None = None
        self._session = 0
        self._watch_handle: int | None = None
        self._one_shot_handle: int | None = None
        self._handlers: dict[type, Callable[..., object]] = {
            StartTracking: lambda _cmd: self.start(),
            StopTracking: lambda _cmd: self.stop(),
            ToggleTracking: lambda _cmd: self.toggle_tracking(),
            ToggleTrail: lambda _cmd: self._trail.toggle_visibility(),
            ClearTrail: lambda _cmd: self._trail.clear(),
            MoveViewport: lambda cmd: self.move_viewport(cmd.viewport),
        }

    @property
    def source(self) -> PositionSource:
        return self._source

    @property
    def config(self) -> TrackerConfig:
        return self._config

    @property
    def state(self) -> TrackingState:
        return self._state

    @property
    def trail(self) -> TrailAccumulator:
        return self._trail

    @property
    def viewport(self) -> ViewportState:
        return self._viewport

    @property
    def user_location(self) -> PositionSample | None:
        return self._user_location

    @property
    def error(self) -> str | None:
        return self._error

    def dispatch(self, command: Command) -> None:
        """Apply a UI command.

        Raises:
            UnsupportedCapability: From StartTracking / ToggleTracking on a source without geolocation.
            TypeError: For an unknown command type.
        """

        handler = self._handlers.get(type(command))
        if handler is None:
            raise TypeError(f"unknown command: {command!r}")
        handler(command)

    def start(self) -> None:
        """Enter ACTIVE: open the watch and issue the initial one-shot fetch.

        No-op when already ACTIVE. The error message is left as is until a fix is accepted.

        Raises:
            UnsupportedCapability: If the source has no geolocation. State stays IDLE.
        """

        if self._state is TrackingState.ACTIVE:
            return
        if not self._source.available:
            exc = UnsupportedCapability()
            self._error = str(exc)
            logger.warning("cannot start tracking: %s", exc)
            raise exc

        self._session += 1
        session = self._session
        self._state = TrackingState.ACTIVE
        try:
            self._watch_handle = self._source.subscribe(
                lambda s: self._on_watch_sample(session, s),
                lambda e: self._on_source_error(session, e),
                self._config.watch_options,
            )
            self._one_shot_handle = self._source.fetch_once(
                lambda s: self._on_one_shot_sample(session, s),
                lambda e: self._on_one_shot_error(session, e),
                self._config.one_shot_options,
            )
        except UnsupportedCapability as exc:
            self._release()
            self._state = TrackingState.IDLE
            self._error = str(exc)
            raise
        logger.info("tracking started (session %s)", session)

    def stop(self) -> None:
        """Enter IDLE and release the watch and any pending one-shot. No-op when IDLE."""

        if self._state is TrackingState.IDLE:
            return
        self._release()
        self._state = TrackingState.IDLE
        logger.info("tracking stopped (session %s)", self._session)

    def toggle_tracking(self) -> None:
        if self._state is TrackingState.ACTIVE:
            self.stop()
        else:
            self.start()

    def move_viewport(self, viewport: ViewportState) -> None:
        """Record a user-driven viewport change. Tracking state is not touched."""

        self._viewport = viewport

    def close(self) -> None:
        """Teardown: release the subscription whatever the state."""

        self.stop()
        self._release()

    def __enter__(self) -> TrackingController:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def snapshot(self) -> TrackerSnapshot:
        return TrackerSnapshot(
            state=self._state,
            viewport=self._viewport,
            user_location=self._user_location,
            trail=self._trail.line(),
            trail_points=self._trail.points(),
            trail_visible=self._trail.visible,
            error=self._error,
            poi=self._config.poi,
        )

    def _release(self) -> None:
        for handle in (self._watch_handle, self._one_shot_handle):
            if handle is not None:
                self._source.unsubscribe(handle)
        self._watch_handle = None
        self._one_shot_handle = None

    def _is_current(self, session: int) -> bool:
        if session != self._session or self._state is not TrackingState.ACTIVE:
            logger.debug("dropping callback from stale session %s", session)
            return False
        return True

    def _on_watch_sample(self, session: int, sample: PositionSample) -> None:
        if self._is_current(session):
            self._accept(sample)

    def _on_one_shot_sample(self, session: int, sample: PositionSample) -> None:
        if self._is_current(session):
            self._one_shot_handle = None
            self._accept(sample)

    def _on_one_shot_error(self, session: int, exc: SourceError) -> None:
        if self._is_current(session):
            self._one_shot_handle = None
            self._fail(exc)

    def _on_source_error(self, session: int, exc: SourceError) -> None:
        if self._is_current(session):
            self._fail(exc)

    def _accept(self, sample: PositionSample) -> None:
        self._user_location = sample
        self._trail.offer(sample)
        self._viewport = self._viewport.recentered(sample.coordinate)
        self._error = None

    def _fail(self, exc: SourceError) -> None:
        self._error = f"{ERROR_PREFIX}{exc.detail}"
        self._release()
        self._state = TrackingState.IDLE
        logger.warning("tracking stopped on source error (%s): %s", exc.kind.name, exc.detail)
