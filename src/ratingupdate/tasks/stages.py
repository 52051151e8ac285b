"""Stage registry for the steps of a rating run."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from ratingupdate.aggregates.rebuilder import AggregationRebuilder
from ratingupdate.rating.updater import BatchRatingUpdater
from ratingupdate.tasks.runtime import StageContext, StageResult

StageRunner = Callable[[StageContext], StageResult]


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class StageDefinition:
    """Registered stage metadata and runner implementation."""

    name: str
    runner: StageRunner
    description: str = ""
    enabled_by_default: bool = True


class StageRegistry:
    """Ordered in-memory registry of named run stages."""

    def __init__(self) -> None:
        self._stages: dict[str, StageDefinition] = {}

    def register(self, stage: StageDefinition) -> None:
        if stage.name in self._stages:
            raise ValueError(f"Stage already registered: {stage.name}")
        self._stages[stage.name] = stage

    def get(self, stage_name: str) -> StageDefinition:
        try:
            return self._stages[stage_name]
        except KeyError as exc:
            raise KeyError(f"Unknown stage: {stage_name}") from exc

    def default_stage_names(self) -> list[str]:
        return [name for name, stage in self._stages.items() if stage.enabled_by_default]

    def resolve(
        self,
        include: list[str] | None = None,
        skip: set[str] | None = None,
    ) -> list[StageDefinition]:
        names = include or self.default_stage_names()
        skipped = skip or set()
        return [self.get(name) for name in names if name not in skipped]


# ---------------------------------------------------------------------------
# Built-in stages
# ---------------------------------------------------------------------------

def run_rating_update_stage(ctx: StageContext) -> StageResult:
    """Rate the window's games, move watermarks and decay idle ratings."""
    started_at = utc_now()
    updater = BatchRatingUpdater.from_session(ctx.session, ctx.settings)
    result = updater.run(ctx.session, ctx.window)
    metrics = result.to_dict()
    metrics["params_version"] = updater.params_version
    return StageResult(
        stage_name=ctx.stage_name,
        status="success",
        started_at=started_at,
        ended_at=utc_now(),
        metrics=metrics,
    )


def run_aggregate_rebuild_stage(ctx: StageContext) -> StageResult:
    """Replace every aggregate table from the updated ratings."""
    started_at = utc_now()
    result = AggregationRebuilder(ctx.settings).run(ctx.session, ctx.window.period_end)
    return StageResult(
        stage_name=ctx.stage_name,
        status="success",
        started_at=started_at,
        ended_at=utc_now(),
        metrics={"version": result.version, "tables": result.tables},
    )


def build_default_registry() -> StageRegistry:
    registry = StageRegistry()
    registry.register(
        StageDefinition(
            name="rating_update",
            runner=run_rating_update_stage,
            description="Apply the window's games to ratings, watermarks and snapshots.",
        )
    )
    registry.register(
        StageDefinition(
            name="aggregate_rebuild",
            runner=run_aggregate_rebuild_stage,
            description="Rebuild rankings, matchups, distributions and anomaly tables.",
        )
    )
    return registry
