"""Command-line interface for live_trail.

Run:
    python -m live_trail track --source simulate --updates 20
    python -m live_trail track --source replay --csv sample_data/track.csv --json
    python -m live_trail generate-sample --out sample_data/track.csv
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from typing import TextIO

from live_trail.controller import TrackingController
from live_trail.csv_io import write_position_samples
from live_trail.errors import UnsupportedCapability
from live_trail.models import (
    DEFAULT_EPSILON,
    DEFAULT_TZ,
    ONE_SHOT_OPTIONS,
    POI,
    Coordinate,
    PositionOptions,
    PositionSample,
    TrackerConfig,
    TrackingState,
)
from live_trail.render import derive_scene, panel_lines, scene_to_dict
from live_trail.sources import (
    PositionSource,
    ReplayPositionSource,
    SimulatedPositionSource,
    UnavailablePositionSource,
)
from live_trail.timeutils import tzinfo_from_name

logger = logging.getLogger(__name__)


def _build_source(args: argparse.Namespace) -> PositionSource:
    if args.source == "replay":
        return ReplayPositionSource.from_csv(args.csv, interval_ms=args.interval_ms)
    if args.source == "simulate":
        return SimulatedPositionSource(
            center=Coordinate(longitude=args.center_lon, latitude=args.center_lat),
            seed=args.seed,
            interval_ms=args.interval_ms,
            fail_after=args.fail_after,
        )
    return UnavailablePositionSource()


def _build_config(args: argparse.Namespace) -> TrackerConfig:
    timeout_ms = args.timeout_ms if args.timeout_ms > 0 else None
    return TrackerConfig(
        epsilon=args.epsilon,
        watch_options=PositionOptions(
            high_accuracy=not args.low_accuracy,
            timeout_ms=timeout_ms,
            max_cache_age_ms=args.max_cache_age_ms,
        ),
        one_shot_options=PositionOptions(
            high_accuracy=not args.low_accuracy,
            timeout_ms=ONE_SHOT_OPTIONS.timeout_ms,
            max_cache_age_ms=args.max_cache_age_ms,
        ),
        tz_name=args.tz,
    )


async def run_session(
    controller: TrackingController,
    *,
    updates: int,
    tick_seconds: float,
    stop_after: int | None = None,
    out: TextIO | None = None,
) -> int:
    """Start tracking and pump the source until enough events arrived or tracking ended.

    Args:
        controller: Controller wired to the source to pump.
        updates: Stop after this many source callbacks.
        tick_seconds: Sleep between pumps.
        stop_after: Issue stop() after this many callbacks (before ``updates``).
        out: Where to print the control panel after each event. None prints nothing.

    Returns:
        Number of source callbacks handled.

    Raises:
        UnsupportedCapability: If the source has no geolocation.
    """

    source = controller.source
    controller.start()
    events = 0
    try:
        while events < updates and controller.state is TrackingState.ACTIVE:
            n = source.pump()
            if n:
                events += n
                if out is not None:
                    scene = derive_scene(controller.snapshot(), controller.config.tz_name)
                    print(f"--- event {events}", file=out)
                    print("\n".join(panel_lines(scene.panel)), file=out, flush=True)
                if stop_after is not None and events >= stop_after:
                    break
            await asyncio.sleep(tick_seconds)
    finally:
        controller.stop()
    return events


def _cmd_track(args: argparse.Namespace) -> int:
    tzinfo_from_name(args.tz)  # fail fast on a bad name
    source = _build_source(args)
    with TrackingController(source, _build_config(args)) as controller:
        try:
            events = asyncio.run(
                run_session(
                    controller,
                    updates=args.updates,
                    tick_seconds=args.tick_ms / 1000.0,
                    stop_after=args.stop_after,
                    out=sys.stdout,
                )
            )
        except UnsupportedCapability as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 2
        except KeyboardInterrupt:
            print("\ninterrupted, stopping tracking", file=sys.stderr, flush=True)
            events = -1
        snapshot = controller.snapshot()

    scene = derive_scene(snapshot, args.tz)
    print(f"### session: events={events}, trail_points={len(snapshot.trail)}, state={snapshot.state.value}")
    if args.json:
        print(json.dumps(scene_to_dict(scene), ensure_ascii=False, indent=2))
    return 1 if snapshot.error else 0


def _cmd_generate_sample(args: argparse.Namespace) -> int:
    start_ms = int(datetime.fromisoformat(args.start).replace(tzinfo=tzinfo_from_name(args.tz)).timestamp() * 1000)
    clock = {"now": start_ms}
    source = SimulatedPositionSource(
        center=Coordinate(longitude=args.center_lon, latitude=args.center_lat),
        seed=args.seed,
        interval_ms=args.interval_ms,
        clock=lambda: clock["now"],
    )
    collected: list[PositionSample] = []
    handle = source.subscribe(collected.append, lambda exc: logger.warning("sample generation: %s", exc))
    try:
        while len(collected) < args.rows:
            source.pump()
            clock["now"] += args.interval_ms
    finally:
        source.unsubscribe(handle)

    n = write_position_samples(collected, args.out)
    print(f"Generated: {args.out} (rows={n}, seed={args.seed})")
    return 0


def _add_source_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--center-lat", type=float, default=POI.latitude, help="Start latitude of the simulated walk")
    p.add_argument("--center-lon", type=float, default=POI.longitude, help="Start longitude of the simulated walk")
    p.add_argument("--seed", type=int, default=42, help="Random seed (reproducible walks)")
    p.add_argument("--interval-ms", type=int, default=1000, help="Spacing between fixes")
    p.add_argument("--tz", type=str, default=DEFAULT_TZ, help=f"IANA timezone, default {DEFAULT_TZ}")


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""

    p = argparse.ArgumentParser(prog="live_trail")
    p.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (stderr)",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    p_tr = sub.add_parser("track", help="Run a headless tracking session and print the control panel")
    p_tr.add_argument(
        "--source",
        type=str,
        default="simulate",
        choices=["simulate", "replay", "none"],
        help="Position source: simulated walk, CSV replay, or none (no geolocation)",
    )
    p_tr.add_argument("--csv", type=str, default="sample_data/track.csv", help="Track CSV for --source replay")
    _add_source_args(p_tr)
    p_tr.add_argument("--updates", type=int, default=20, help="Stop after this many source events")
    p_tr.add_argument("--stop-after", type=int, default=None, help="Call stop() after this many events")
    p_tr.add_argument("--fail-after", type=int, default=None, help="Inject a source error after N simulated fixes")
    p_tr.add_argument("--tick-ms", type=int, default=100, help="Host loop tick")
    p_tr.add_argument("--epsilon", type=float, default=DEFAULT_EPSILON, help="Per-axis jitter threshold in degrees")
    p_tr.add_argument("--timeout-ms", type=int, default=15_000, help="Watch timeout; <= 0 disables it")
    p_tr.add_argument("--max-cache-age-ms", type=int, default=0, help="Accept cached fixes up to this age")
    p_tr.add_argument("--low-accuracy", action="store_true", help="Do not request high-accuracy fixes")
    p_tr.add_argument("--json", action="store_true", help="Also print the final scene as JSON")
    p_tr.set_defaults(func=_cmd_track)

    p_gen = sub.add_parser("generate-sample", help="Write a simulated track CSV for replay")
    p_gen.add_argument("--out", type=str, default="sample_data/track.csv", help="Output CSV path")
    p_gen.add_argument("--rows", type=int, default=200, help="Number of fixes")
    p_gen.add_argument("--start", type=str, default="2025-01-01 08:00:00", help="Start local time")
    _add_source_args(p_gen)
    p_gen.set_defaults(func=_cmd_generate_sample)

    return p


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
