"""
Period scheduler.

Drives one rating run per due window. A tick either finds nothing due
(idle), finds a run already in progress in this process (busy), or runs
every registered stage in a single transaction and commits the new
`last_update` with the rest of the run's writes.

Usage:

    scheduler = PeriodScheduler(new_session)
    result = scheduler.tick(int(time.time()))
    if result.status == "failed":
        ...
"""

from __future__ import annotations

import enum
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Literal, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ratingupdate.config import Settings, settings as default_settings
from ratingupdate.db.models import EngineConfig, Game, PlayerRating, RatingRun
from ratingupdate.errors import EngineError, StorageError
from ratingupdate.rating.period import RunWindow, next_window, time_until_next_run
from ratingupdate.tasks.runtime import StageContext, StageResult
from ratingupdate.tasks.stages import StageRegistry, build_default_registry

logger = logging.getLogger(__name__)

TickStatus = Literal["idle", "busy", "success", "failed"]
SessionFactory = Callable[[], Session]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SchedulerState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass
class TickResult:
    """Outcome of one scheduler tick."""

    status: TickStatus
    window: Optional[RunWindow] = None
    run_id: Optional[str] = None
    stages: list[StageResult] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "run_id": self.run_id,
            "window_start": self.window.last_update if self.window else None,
            "window_end": self.window.period_end if self.window else None,
            "stages": [stage.to_dict() for stage in self.stages],
            "error": self.error,
        }


def read_last_update(session: Session) -> int:
    """The committed period boundary; 0 when the engine has never run."""
    value = session.execute(
        select(EngineConfig.last_update).where(EngineConfig.id == 1)
    ).scalar_one_or_none()
    return int(value) if value is not None else 0


def write_last_update(session: Session, period_end: int) -> None:
    config = session.get(EngineConfig, 1)
    if config is None:
        session.add(EngineConfig(id=1, last_update=period_end))
    else:
        config.last_update = period_end


def engine_stats(session: Session, now: int, settings: Settings | None = None) -> dict[str, int]:
    """Counts and timing for status reporting."""
    settings = settings or default_settings
    last_update = read_last_update(session)
    game_count = session.execute(select(func.count()).select_from(Game)).scalar_one()
    player_count = session.execute(
        select(func.count(func.distinct(PlayerRating.id)))
    ).scalar_one()
    return {
        "game_count": int(game_count),
        "player_count": int(player_count),
        "last_update": last_update,
        "next_run_in": time_until_next_run(last_update, now, settings.rating_period_seconds),
    }


class PeriodScheduler:
    """
    Runs the registered stages once per due window.

    Ticks never block: a tick that arrives while another is running in the
    same process returns `busy` immediately. Cross-process exclusion is the
    caller's job (see `tasks.locks.run_lock`).
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        settings: Settings | None = None,
        registry: StageRegistry | None = None,
        dry_run: bool = False,
    ) -> None:
        self.session_factory = session_factory
        self.settings = settings or default_settings
        self.registry = registry or build_default_registry()
        self.dry_run = dry_run
        self._lock = threading.Lock()
        self._state = SchedulerState.IDLE

    @property
    def state(self) -> SchedulerState:
        return self._state

    def tick(self, now: int) -> TickResult:
        if not self._lock.acquire(blocking=False):
            logger.debug("Tick at %d skipped: run in progress", now)
            return TickResult(status="busy")
        try:
            return self._tick(now)
        finally:
            self._state = SchedulerState.IDLE
            self._lock.release()

    def _tick(self, now: int) -> TickResult:
        session = self.session_factory()
        try:
            last_update = read_last_update(session)
            window = next_window(last_update, now, self.settings.rating_period_seconds)
            if window is None:
                session.rollback()
                return TickResult(status="idle")

            self._state = SchedulerState.RUNNING
            run_id = _utc_now().strftime("%Y%m%dT%H%M%SZ") + "-" + uuid.uuid4().hex[:8]
            started_at = _utc_now()
            logger.info(
                "Run %s: window (%d, %d], %d period(s)",
                run_id, window.last_update, window.period_end, window.periods,
            )

            stages: list[StageResult] = []
            try:
                for stage in self.registry.resolve():
                    ctx = StageContext(
                        run_id=run_id,
                        stage_name=stage.name,
                        started_at=_utc_now(),
                        session=session,
                        window=window,
                        settings=self.settings,
                    )
                    try:
                        stages.append(stage.runner(ctx))
                    except SQLAlchemyError as exc:
                        raise StorageError(f"Stage {stage.name} failed: {exc}") from exc

                write_last_update(session, window.period_end)
                try:
                    if self.dry_run:
                        session.rollback()
                    else:
                        session.commit()
                except SQLAlchemyError as exc:
                    raise StorageError(f"Commit failed: {exc}") from exc
            except Exception as exc:
                session.rollback()
                logger.exception("Run %s failed; last_update stays at %d", run_id, last_update)
                result = TickResult(
                    status="failed",
                    window=window,
                    run_id=run_id,
                    stages=stages,
                    error=str(exc),
                )
                if not self.dry_run:
                    self._record_run(result, started_at)
                if not isinstance(exc, EngineError):
                    raise
                return result

            result = TickResult(status="success", window=window, run_id=run_id, stages=stages)
            if not self.dry_run:
                self._record_run(result, started_at)
            logger.info("Run %s committed; last_update=%d", run_id, window.period_end)
            return result
        finally:
            session.close()

    def _record_run(self, result: TickResult, started_at: datetime) -> None:
        """Write the audit row in its own transaction, after the run's commit or rollback."""
        session = self.session_factory()
        try:
            session.add(
                RatingRun(
                    run_id=result.run_id,
                    started_at=started_at,
                    ended_at=_utc_now(),
                    status=result.status,
                    window_start=result.window.last_update,
                    window_end=result.window.period_end,
                    summary_json=result.to_dict(),
                    error_text=result.error,
                )
            )
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            logger.exception("Could not record run %s", result.run_id)
        finally:
            session.close()
