"""
Unit tests for the period scheduler.

Uses a private in-memory database (session_factory fixture) because the
scheduler commits and rolls back its own transactions.
"""

from datetime import datetime

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from ratingupdate.config import Settings
from ratingupdate.db.models import (
    CharacterPopularityGlobal,
    DailyActivity,
    EngineConfig,
    Game,
    GameRating,
    GlobalMatchup,
    PlayerRating,
    RankingGlobal,
    RatingRun,
    VersusMatchup,
)
from ratingupdate.tasks.runtime import StageResult
from ratingupdate.tasks.scheduler import PeriodScheduler, SchedulerState, engine_stats, read_last_update
from ratingupdate.tasks.stages import StageDefinition, StageRegistry, build_default_registry

HOUR = 3600


def _add_games(session_factory, games):
    session = session_factory()
    for game_id, timestamp, winner in games:
        session.add(
            Game(
                id=game_id,
                timestamp=timestamp,
                id_a=10,
                char_a=0,
                id_b=20,
                char_b=1,
                winner=winner,
                game_floor=5,
            )
        )
    session.commit()
    session.close()


def _query(session_factory, stmt):
    session = session_factory()
    try:
        return session.execute(stmt).all()
    finally:
        session.close()


def _last_update(session_factory):
    session = session_factory()
    try:
        return read_last_update(session)
    finally:
        session.close()


AGGREGATE_MODELS = [RankingGlobal, GlobalMatchup, VersusMatchup, CharacterPopularityGlobal, DailyActivity]


def _aggregate_rows(session_factory):
    rows = {}
    for model in AGGREGATE_MODELS:
        table = model.__table__
        stmt = select(table).order_by(*table.primary_key.columns)
        rows[model.__tablename__] = [tuple(r) for r in _query(session_factory, stmt)]
    return rows


def _registry_with(runner):
    registry = StageRegistry()
    registry.register(StageDefinition(name="custom", runner=runner))
    return registry


def test_idle_before_first_full_period(session_factory, small_settings):
    scheduler = PeriodScheduler(session_factory, small_settings)

    result = scheduler.tick(HOUR - 1)

    assert result.status == "idle"
    assert _query(session_factory, select(EngineConfig)) == []
    assert _query(session_factory, select(RatingRun)) == []


def test_run_commits_window_and_last_update(session_factory, small_settings):
    _add_games(session_factory, [(1, 100, "A"), (2, 200, "B"), (3, HOUR + 10, "A")])
    scheduler = PeriodScheduler(session_factory, small_settings)

    result = scheduler.tick(HOUR + 20)

    assert result.status == "success"
    assert result.window.period_end == HOUR
    assert [stage.stage_name for stage in result.stages] == ["rating_update", "aggregate_rebuild"]
    assert _last_update(session_factory) == HOUR
    snapshots = _query(session_factory, select(GameRating.game_id))
    assert sorted(r.game_id for r in snapshots) == [1, 2]
    assert len(_query(session_factory, select(PlayerRating.id))) == 2
    runs = _query(session_factory, select(RatingRun.status, RatingRun.window_start, RatingRun.window_end))
    assert [tuple(r) for r in runs] == [("success", 0, HOUR)]
    assert scheduler.state is SchedulerState.IDLE


def test_second_tick_in_same_period_is_idle(session_factory, small_settings):
    """Two ticks with no full period between them: the second changes nothing."""
    _add_games(session_factory, [(1, 100, "A")])
    scheduler = PeriodScheduler(session_factory, small_settings)

    scheduler.tick(HOUR + 5)
    before = _query(session_factory, select(PlayerRating.value, PlayerRating.deviation))
    aggregates_before = _aggregate_rows(session_factory)
    result = scheduler.tick(2 * HOUR - 1)
    after = _query(session_factory, select(PlayerRating.value, PlayerRating.deviation))

    assert result.status == "idle"
    assert before == after
    assert _aggregate_rows(session_factory) == aggregates_before
    assert {r.version for r in _query(session_factory, select(GlobalMatchup.version))} == {HOUR}
    assert _last_update(session_factory) == HOUR
    assert len(_query(session_factory, select(RatingRun.id))) == 1


def test_catch_up_runs_every_elapsed_period_once(session_factory, small_settings):
    _add_games(session_factory, [(1, 100, "A"), (2, 2 * HOUR + 100, "A")])
    scheduler = PeriodScheduler(session_factory, small_settings)

    result = scheduler.tick(3 * HOUR + 50)

    assert result.window.last_update == 0
    assert result.window.period_end == 3 * HOUR
    assert _last_update(session_factory) == 3 * HOUR
    assert len(_query(session_factory, select(GameRating.game_id))) == 2


def test_corrupt_match_fails_run_and_keeps_last_update(session_factory):
    settings = Settings(character_count=4, rating_period_seconds=HOUR, corrupt_match_policy="fail")
    _add_games(session_factory, [(1, 100, "A"), (2, 200, "X")])
    scheduler = PeriodScheduler(session_factory, settings)

    result = scheduler.tick(HOUR + 1)

    assert result.status == "failed"
    assert "Corrupt match id=2" in result.error
    assert _last_update(session_factory) == 0
    assert _query(session_factory, select(PlayerRating.id)) == []
    runs = _query(session_factory, select(RatingRun.status, RatingRun.error_text))
    assert len(runs) == 1
    assert runs[0].status == "failed"

    # The same window is retried on the next tick
    retry = scheduler.tick(HOUR + 2)
    assert retry.status == "failed"
    assert retry.window == result.window


def test_skip_policy_completes_run(session_factory):
    settings = Settings(character_count=4, rating_period_seconds=HOUR, corrupt_match_policy="skip")
    _add_games(session_factory, [(1, 100, "A"), (2, 200, "X")])

    result = PeriodScheduler(session_factory, settings).tick(HOUR + 1)

    assert result.status == "success"
    assert result.stages[0].metrics["rejected"] == 1
    assert _last_update(session_factory) == HOUR


def test_storage_error_is_wrapped(session_factory, small_settings):
    def broken(ctx):
        raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

    scheduler = PeriodScheduler(session_factory, small_settings, registry=_registry_with(broken))

    result = scheduler.tick(HOUR)

    assert result.status == "failed"
    assert "Stage custom failed" in result.error
    assert _last_update(session_factory) == 0


def test_unexpected_error_is_recorded_and_raised(session_factory, small_settings):
    def buggy(ctx):
        raise RuntimeError("boom")

    scheduler = PeriodScheduler(session_factory, small_settings, registry=_registry_with(buggy))

    with pytest.raises(RuntimeError):
        scheduler.tick(HOUR)

    assert _last_update(session_factory) == 0
    runs = _query(session_factory, select(RatingRun.status, RatingRun.error_text))
    assert [tuple(r) for r in runs] == [("failed", "boom")]
    assert scheduler.state is SchedulerState.IDLE


def test_tick_while_running_is_busy(session_factory, small_settings):
    observed = {}

    def reentrant(ctx):
        observed["state"] = scheduler.state
        observed["nested"] = scheduler.tick(10 * HOUR)
        now = datetime(2026, 1, 1)
        return StageResult(stage_name=ctx.stage_name, status="success", started_at=now, ended_at=now)

    scheduler = PeriodScheduler(session_factory, small_settings, registry=_registry_with(reentrant))

    result = scheduler.tick(HOUR)

    assert result.status == "success"
    assert observed["state"] is SchedulerState.RUNNING
    assert observed["nested"].status == "busy"
    assert _last_update(session_factory) == HOUR


def test_dry_run_rolls_back(session_factory, small_settings):
    _add_games(session_factory, [(1, 100, "A")])
    scheduler = PeriodScheduler(session_factory, small_settings, dry_run=True)

    result = scheduler.tick(HOUR + 1)

    assert result.status == "success"
    assert _last_update(session_factory) == 0
    assert _query(session_factory, select(PlayerRating.id)) == []
    assert _query(session_factory, select(RankingGlobal.id)) == []
    assert _query(session_factory, select(RatingRun.id)) == []


def test_engine_stats(session_factory, small_settings):
    _add_games(session_factory, [(1, 100, "A"), (2, 200, "B")])
    PeriodScheduler(session_factory, small_settings).tick(HOUR + 1)

    session = session_factory()
    try:
        stats = engine_stats(session, HOUR + 600, small_settings)
    finally:
        session.close()

    assert stats == {
        "game_count": 2,
        "player_count": 2,
        "last_update": HOUR,
        "next_run_in": HOUR - 600,
    }


def test_default_registry_order():
    assert build_default_registry().default_stage_names() == ["rating_update", "aggregate_rebuild"]


def test_failed_dry_run_records_nothing(session_factory, small_settings):
    _add_games(session_factory, [(1, 100, "A"), (2, 200, "X")])
    scheduler = PeriodScheduler(session_factory, small_settings, dry_run=True)

    result = scheduler.tick(HOUR + 1)

    assert result.status == "failed"
    assert _last_update(session_factory) == 0
    assert _query(session_factory, select(RatingRun.id)) == []
