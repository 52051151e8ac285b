"""
Glicko-2 rating math.

Pure functions over Rating(value, deviation) on the internal scale. Nothing
here touches the database; the updater and the analytics both call into it.

A rating period is applied as one batch: every game the pair played in the
period is simultaneous evidence, so the order of the (opponent, score) list
never changes the result. Sums go through math.fsum so that holds exactly,
not just within floating-point noise.

Formulas (Glickman, "Example of the Glicko-2 system"), with volatility
sigma held constant:

    g(phi)   = 1 / sqrt(1 + 3 phi^2 / pi^2)
    E        = 1 / (1 + exp(-g(phi_j) (mu - mu_j)))
    v        = 1 / sum(g(phi_j)^2 E (1 - E))
    phi*     = sqrt(phi^2 + sigma^2)
    phi'     = 1 / sqrt(1/phi*^2 + 1/v)
    mu'      = mu + phi'^2 sum(g(phi_j) (s - E))
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from ratingupdate.rating.constants import (
    DEFAULT_VOLATILITY,
    DISPLAY_OFFSET,
    GLICKO_SCALE,
    INITIAL_DEVIATION,
    INITIAL_VALUE,
    MAX_DEVIATION,
    MIN_DEVIATION,
    THREE_OVER_PI_SQUARED,
)
from ratingupdate.rating.decay import inflate_deviation


@dataclass(frozen=True)
class Rating:
    """A (value, deviation) pair on the Glicko-2 internal scale."""
    value: float
    deviation: float


@dataclass
class RatingParams:
    """
    All tunable rating parameters in one object.

    Persisted as JSON in rating_parameter_sets; during tuning each Optuna
    trial builds one from its suggested values.
    """
    initial_value: float = INITIAL_VALUE
    initial_deviation: float = INITIAL_DEVIATION
    max_deviation: float = MAX_DEVIATION
    min_deviation: float = MIN_DEVIATION
    volatility: float = DEFAULT_VOLATILITY

    def initial_rating(self) -> Rating:
        """Prior for a player-character seen for the first time."""
        return Rating(self.initial_value, self.initial_deviation)

    def clamp_deviation(self, deviation: float) -> float:
        return min(max(deviation, self.min_deviation), self.max_deviation)


_DEFAULT_PARAMS = RatingParams()


def g(deviation: float) -> float:
    """Glicko-2 attenuation factor; 1.0 for a certain opponent, smaller as deviation grows."""
    return 1.0 / math.sqrt(1.0 + THREE_OVER_PI_SQUARED * deviation * deviation)


def _expected_score(value: float, opp_value: float, opp_deviation: float) -> float:
    return 1.0 / (1.0 + math.exp(-g(opp_deviation) * (value - opp_value)))


def combined_deviation(a: Rating, b: Rating) -> float:
    return math.sqrt(a.deviation * a.deviation + b.deviation * b.deviation)


def expected(a: Rating, b: Rating) -> float:
    """
    Probability that a beats b.

    Scaled by the combined deviation of both sides, so two uncertain
    ratings predict closer to a coin flip than two established ones with
    the same gap.
    """
    return 1.0 / (1.0 + math.exp(-g(combined_deviation(a, b)) * (a.value - b.value)))


win_probability = expected


def update(
    rating: Rating,
    outcomes: Iterable[tuple[Rating, float]],
    params: RatingParams | None = None,
) -> Rating:
    """
    Apply one rating period's games to a rating as a single batch.

    Args:
        rating: Pre-period rating (already decayed for earlier idle periods)
        outcomes: (opponent pre-period rating, score) pairs, score in {0, 0.5, 1}
        params: Rating parameters. Default RatingParams().

    Returns:
        The post-period rating. With no outcomes this is one period of decay.
    """
    if params is None:
        params = _DEFAULT_PARAMS

    outcomes = list(outcomes)
    if not outcomes:
        return decay(rating, 1, params)

    inv_v_terms = []
    delta_terms = []
    for opponent, score in outcomes:
        g_j = g(opponent.deviation)
        e_j = _expected_score(rating.value, opponent.value, opponent.deviation)
        inv_v_terms.append(g_j * g_j * e_j * (1.0 - e_j))
        delta_terms.append(g_j * (score - e_j))

    inv_v = math.fsum(inv_v_terms)
    pre_deviation_sq = rating.deviation * rating.deviation + params.volatility * params.volatility
    new_deviation = 1.0 / math.sqrt(1.0 / pre_deviation_sq + inv_v)
    new_value = rating.value + new_deviation * new_deviation * math.fsum(delta_terms)

    return Rating(new_value, params.clamp_deviation(new_deviation))


def rating_change(
    a: Rating,
    b: Rating,
    score: float,
    params: RatingParams | None = None,
) -> float:
    """
    Value change a single game against b contributes to a.

    This is the game treated as a one-game period, which is what the trend
    view shows as a per-game delta.
    """
    return update(a, [(b, score)], params).value - a.value


def decay(rating: Rating, periods: int, params: RatingParams | None = None) -> Rating:
    """Inflate the deviation for `periods` idle periods; the value is unchanged."""
    if params is None:
        params = _DEFAULT_PARAMS
    deviation = inflate_deviation(
        rating.deviation,
        periods,
        volatility=params.volatility,
        max_deviation=params.max_deviation,
    )
    return Rating(rating.value, deviation)


def conservative_value(rating: Rating) -> float:
    """Lower-bound skill estimate used to pick a player's primary character."""
    return rating.value - 3.0 * rating.deviation


# ---------------------------------------------------------------------------
# Display scale
# ---------------------------------------------------------------------------

def to_display(value: float) -> float:
    return value * GLICKO_SCALE + DISPLAY_OFFSET


def from_display(display_value: float) -> float:
    return (display_value - DISPLAY_OFFSET) / GLICKO_SCALE


def deviation_to_display(deviation: float) -> float:
    return deviation * GLICKO_SCALE * 2.0


def deviation_from_display(display_deviation: float) -> float:
    return display_deviation / (GLICKO_SCALE * 2.0)
