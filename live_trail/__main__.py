"""Module entry point: python -m live_trail ..."""

from __future__ import annotations

from live_trail.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
