"""Unit tests for settings validation."""

import pytest
from pydantic import ValidationError

from ratingupdate.config import Settings


def test_defaults():
    settings = Settings()

    assert settings.rating_period_seconds == 3600
    assert settings.corrupt_match_policy == "fail"
    assert settings.popularity_bracket_count == 20


def test_log_level_is_normalized():
    assert Settings(log_level="debug").log_level == "DEBUG"


def test_invalid_log_level_rejected():
    with pytest.raises(ValidationError):
        Settings(log_level="chatty")


def test_corrupt_match_policy_is_normalized():
    assert Settings(corrupt_match_policy="SKIP").corrupt_match_policy == "skip"


def test_invalid_corrupt_match_policy_rejected():
    with pytest.raises(ValidationError):
        Settings(corrupt_match_policy="ignore")


@pytest.mark.parametrize(
    "field",
    [
        "rating_period_seconds",
        "character_count",
        "popularity_bracket_count",
        "analytics_window_seconds",
        "activity_days",
    ],
)
def test_non_positive_counts_rejected(field):
    with pytest.raises(ValidationError):
        Settings(**{field: 0})


@pytest.mark.parametrize(
    "field", ["rating_histogram_width", "popularity_bracket_width", "low_deviation", "rating_volatility"]
)
@pytest.mark.parametrize("value", [0, -50.0])
def test_non_positive_floats_rejected(field, value):
    with pytest.raises(ValidationError):
        Settings(**{field: value})


def test_environment_override(monkeypatch):
    monkeypatch.setenv("RATING_PERIOD_SECONDS", "60")

    assert Settings().rating_period_seconds == 60
