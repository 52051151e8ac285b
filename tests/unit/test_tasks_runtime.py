"""Unit tests for task runtime primitives."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine

from ratingupdate.rating.period import RunWindow
from ratingupdate.tasks.locks import advisory_lock_key, run_lock
from ratingupdate.tasks.runtime import StageContext, StageResult
from ratingupdate.tasks.stages import StageDefinition, StageRegistry


def _noop_stage(_ctx):
    raise NotImplementedError


def test_stage_registry_register_and_get():
    registry = StageRegistry()
    stage = StageDefinition(name="alpha", runner=_noop_stage)
    registry.register(stage)

    loaded = registry.get("alpha")
    assert loaded.name == "alpha"
    assert loaded.runner is _noop_stage


def test_stage_registry_unknown_stage_raises():
    with pytest.raises(KeyError, match="Unknown stage"):
        StageRegistry().get("missing")


def test_stage_registry_duplicate_registration_raises():
    registry = StageRegistry()
    stage = StageDefinition(name="dup", runner=_noop_stage)
    registry.register(stage)
    with pytest.raises(ValueError):
        registry.register(stage)


def test_stage_registry_resolve_default_and_skip():
    registry = StageRegistry()
    registry.register(StageDefinition(name="a", runner=_noop_stage, enabled_by_default=True))
    registry.register(StageDefinition(name="b", runner=_noop_stage, enabled_by_default=True))
    registry.register(StageDefinition(name="c", runner=_noop_stage, enabled_by_default=False))

    default_names = [s.name for s in registry.resolve()]
    assert default_names == ["a", "b"]

    include_names = [s.name for s in registry.resolve(include=["c", "a"], skip={"a"})]
    assert include_names == ["c"]


def test_stage_result_duration_and_payload():
    started = datetime(2026, 10, 19, 10, 0, 0)
    ended = started + timedelta(seconds=12.5)
    result = StageResult(
        stage_name="rating_update",
        status="success",
        started_at=started,
        ended_at=ended,
        metrics={"processed": 123},
    )

    assert result.duration_s == 12.5
    payload = result.to_dict()
    assert payload["stage_name"] == "rating_update"
    assert payload["status"] == "success"
    assert payload["duration_s"] == 12.5
    assert payload["metrics"] == {"processed": 123}
    assert payload["error"] is None


def test_stage_context_is_frozen(db_session, small_settings):
    ctx = StageContext(
        run_id="run-1",
        stage_name="rating_update",
        started_at=datetime(2026, 10, 19),
        session=db_session,
        window=RunWindow(0, 3600, 3600),
        settings=small_settings,
    )

    assert ctx.options == {}
    with pytest.raises(AttributeError):
        ctx.stage_name = "other"


def test_advisory_lock_key_is_stable_64bit_int():
    key_a1 = advisory_lock_key("ratingupdate_period_run")
    key_a2 = advisory_lock_key("ratingupdate_period_run")
    key_b = advisory_lock_key("other_run")

    assert isinstance(key_a1, int)
    assert key_a1 == key_a2
    assert key_a1 != key_b
    assert -(2 ** 63) <= key_a1 < 2 ** 63


def test_run_lock_is_noop_off_postgres():
    engine = create_engine("sqlite://")

    with run_lock(engine, "ratingupdate_period_run") as held:
        assert held is True


class _FakeResult:
    def __init__(self, value):
        self._value = value

    def scalar(self):
        return self._value


class _FakeConnection:
    def __init__(self, free):
        self.free = free
        self.statements = []
        self.closed = False

    def execute(self, statement, params):
        self.statements.append(str(statement))
        return _FakeResult(self.free)

    def close(self):
        self.closed = True


class _FakePostgresEngine:
    class dialect:
        name = "postgresql"

    def __init__(self, free):
        self.connection = _FakeConnection(free)

    def connect(self):
        return self.connection


def test_run_lock_acquires_and_releases_on_postgres():
    engine = _FakePostgresEngine(free=True)

    with run_lock(engine, "ratingupdate_period_run") as held:
        assert held is True

    statements = engine.connection.statements
    assert statements[0].startswith("SELECT pg_try_advisory_lock")
    assert statements[-1].startswith("SELECT pg_advisory_unlock")
    assert engine.connection.closed


def test_run_lock_held_elsewhere_raises_without_unlocking():
    engine = _FakePostgresEngine(free=False)

    with pytest.raises(TimeoutError):
        with run_lock(engine, "ratingupdate_period_run"):
            pass

    assert not any("unlock" in s for s in engine.connection.statements)
    assert engine.connection.closed
