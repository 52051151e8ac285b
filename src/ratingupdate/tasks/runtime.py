"""Shared runtime dataclasses for the stages of a rating run."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from sqlalchemy.orm import Session

from ratingupdate.config import Settings
from ratingupdate.rating.period import RunWindow

StageStatus = Literal["success", "failed", "skipped"]


@dataclass(frozen=True)
class StageContext:
    """
    Runtime context passed to each stage runner.

    Every stage of a run shares one session (one transaction) and one window.
    """

    run_id: str
    stage_name: str
    started_at: datetime
    session: Session
    window: RunWindow
    settings: Settings
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class StageResult:
    """Normalized result returned by a stage runner."""

    stage_name: str
    status: StageStatus
    started_at: datetime
    ended_at: datetime
    metrics: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @property
    def duration_s(self) -> float:
        return (self.ended_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage_name": self.stage_name,
            "status": self.status,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "duration_s": self.duration_s,
            "metrics": self.metrics,
            "error": self.error,
        }
