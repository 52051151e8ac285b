#!/usr/bin/env python3
"""
Run the rating engine: one tick, or a polling loop.

Each tick processes every whole rating period elapsed since the last
committed run, rebuilds the aggregate tables and commits it all in one
transaction. Ticks that find no full period due do nothing.

Usage:
    # Single tick, now
    python scripts/run_rating_update.py --once

    # Replay as if it were a given instant, without committing
    python scripts/run_rating_update.py --once --now 1700000000 --dry-run

    # Long-running service
    python scripts/run_rating_update.py --loop --poll-seconds 60
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ratingupdate.config import settings
from ratingupdate.db import get_engine, get_session, new_session
from ratingupdate.tasks import PeriodScheduler, TickResult, engine_stats, run_lock


def _write_json(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")


def _print_tick(result: TickResult) -> None:
    if result.status in ("idle", "busy"):
        print(f"Tick: {result.status}")
        return
    window = result.window
    print(f"Run {result.run_id}: {result.status} window=({window.last_update}, {window.period_end}]")
    for stage in result.stages:
        print(f"  {stage.stage_name}: {stage.status} in {stage.duration_s:.2f}s")
    if result.error:
        print(f"  error: {result.error}")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run Glicko-2 rating periods and rebuild aggregates.")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", default=True, help="Run a single tick (default).")
    mode.add_argument("--loop", action="store_true", help="Tick forever, sleeping between ticks.")
    parser.add_argument(
        "--poll-seconds",
        type=float,
        default=60.0,
        help="Sleep between ticks in --loop mode.",
    )
    parser.add_argument(
        "--now",
        type=int,
        default=None,
        help="Override the current unix time (single tick only).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run the stages, then roll back instead of committing.",
    )
    parser.add_argument(
        "--metrics-json",
        default=None,
        help="Write the last tick's summary JSON to this path.",
    )
    parser.add_argument(
        "--lock-name",
        default=settings.run_lock_name,
        help="Advisory lock namespace.",
    )
    parser.add_argument(
        "--lock-timeout-seconds",
        type=float,
        default=5.0,
        help="Advisory lock acquisition timeout.",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print game/player counts and time until the next run, then exit.",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.stats:
        with get_session() as session:
            stats = engine_stats(session, int(time.time()))
        for key, value in stats.items():
            print(f"{key}: {value}")
        return 0

    if args.loop and args.now is not None:
        print("ERROR: --now only applies to a single tick")
        return 2

    scheduler = PeriodScheduler(new_session, dry_run=args.dry_run)

    try:
        with run_lock(get_engine(), args.lock_name, timeout_seconds=args.lock_timeout_seconds):
            while True:
                now = args.now if args.now is not None else int(time.time())
                result = scheduler.tick(now)
                _print_tick(result)
                if args.metrics_json:
                    _write_json(Path(args.metrics_json), result.to_dict())
                if not args.loop:
                    return 1 if result.status == "failed" else 0
                time.sleep(args.poll_seconds)
    except TimeoutError as exc:
        print(f"Rating run failed to acquire lock: {exc}")
        return 2
    except KeyboardInterrupt:
        print("Stopped.")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
