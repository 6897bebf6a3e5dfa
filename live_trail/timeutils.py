"""Time conversion and formatting utilities."""

from __future__ import annotations

import time
from datetime import datetime, tzinfo

from zoneinfo import ZoneInfo


def tzinfo_from_name(tz_name: str) -> tzinfo:
    """Create tzinfo from an IANA timezone name.

    Args:
        tz_name: Timezone name like "America/Los_Angeles".

    Returns:
        tzinfo instance.

    Raises:
        ValueError: If timezone name is invalid on this system.
    """

    try:
        return ZoneInfo(tz_name)
    except Exception as exc:  # ZoneInfo raises KeyError / ZoneInfoNotFoundError (platform dependent)
        raise ValueError(f"invalid timezone: {tz_name!r}, e.g. America/Los_Angeles") from exc


def dt_from_epoch_ms(epoch_ms: int, tz_name: str) -> datetime:
    """Convert epoch milliseconds to a timezone-aware datetime."""

    tz = tzinfo_from_name(tz_name)
    return datetime.fromtimestamp(epoch_ms / 1000.0, tz=tz)


def format_local_time(epoch_ms: int, tz_name: str) -> str:
    """Wall-clock time of day, e.g. "14:03:27"."""

    return dt_from_epoch_ms(epoch_ms, tz_name).strftime("%H:%M:%S")


def now_ms() -> int:
    """Current Unix time in milliseconds."""

    return int(time.time() * 1000)
