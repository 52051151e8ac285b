"""Task runtime: stages, run locking and the period scheduler."""

from ratingupdate.tasks.locks import advisory_lock_key, run_lock
from ratingupdate.tasks.runtime import StageContext, StageResult
from ratingupdate.tasks.scheduler import PeriodScheduler, SchedulerState, TickResult, engine_stats
from ratingupdate.tasks.stages import StageDefinition, StageRegistry, build_default_registry

__all__ = [
    "PeriodScheduler",
    "SchedulerState",
    "StageContext",
    "StageDefinition",
    "StageRegistry",
    "StageResult",
    "TickResult",
    "advisory_lock_key",
    "build_default_registry",
    "engine_stats",
    "run_lock",
]
