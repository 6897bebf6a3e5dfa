"""Exceptions raised by position sources and the tracking controller."""

from __future__ import annotations

from enum import IntEnum


class TrackingError(Exception):
    """Base class for all recoverable tracking failures."""


class UnsupportedCapability(TrackingError):
    """The position source exposes no geolocation capability."""

    def __init__(self, message: str = "Geolocation is not supported by this position source") -> None:
        super().__init__(message)


class SourceErrorKind(IntEnum):
    """Failure kinds, numbered like GeolocationPositionError codes."""

    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3


_DEFAULT_DETAIL = {
    SourceErrorKind.PERMISSION_DENIED: "User denied Geolocation",
    SourceErrorKind.POSITION_UNAVAILABLE: "Position unavailable",
    SourceErrorKind.TIMEOUT: "Timeout expired",
}


class SourceError(TrackingError):
    """A delivery from the position source failed.

    Attributes:
        kind: What went wrong.
        detail: Human-readable message shown to the user.
    """

    def __init__(self, kind: SourceErrorKind, detail: str | None = None) -> None:
        self.kind = kind
        self.detail = detail or _DEFAULT_DETAIL[kind]
        super().__init__(self.detail)
