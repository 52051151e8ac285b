"""
Rating module.

Implements the Glicko-2 batch rating system with:
- Constant, tunable volatility
- Closed-form idle-period decay of the deviation
- Windowed batch updates with pre-update snapshots
- Peak-rating and best-win watermarks
- Volatility tuning via Optuna over an in-memory replay
"""

from ratingupdate.rating.constants import GLICKO_SCALE, RATING_DEFAULTS
from ratingupdate.rating.decay import inflate_deviation, periods_elapsed
from ratingupdate.rating.glicko import (
    Rating,
    RatingParams,
    conservative_value,
    decay,
    deviation_from_display,
    deviation_to_display,
    expected,
    from_display,
    rating_change,
    to_display,
    update,
    win_probability,
)
from ratingupdate.rating.params_store import get_active_rating_params, persist_rating_params
from ratingupdate.rating.period import RunWindow, next_window, time_until_next_run
from ratingupdate.rating.updater import BatchRatingUpdater, GameRow, UpdateResult
from ratingupdate.rating.watermarks import Watermarks, apply_watermarks

__all__ = [
    "GLICKO_SCALE",
    "RATING_DEFAULTS",
    "inflate_deviation",
    "periods_elapsed",
    "Rating",
    "RatingParams",
    "conservative_value",
    "decay",
    "deviation_from_display",
    "deviation_to_display",
    "expected",
    "from_display",
    "rating_change",
    "to_display",
    "update",
    "win_probability",
    "get_active_rating_params",
    "persist_rating_params",
    "RunWindow",
    "next_window",
    "time_until_next_run",
    "BatchRatingUpdater",
    "GameRow",
    "UpdateResult",
    "Watermarks",
    "apply_watermarks",
]
