"""
In-memory replay of the match log, period by period.

Used by scripts/tune_volatility.py: it runs the same period semantics as
BatchRatingUpdater (pre-decay idle periods, one batch update per period)
without touching the database, and returns the probability each game's
result was given before its period was rated. Those probabilities drive the
log-loss objective.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from ratingupdate.db.models import Game
from ratingupdate.rating.glicko import Rating, RatingParams, decay, expected, update
from ratingupdate.rating.updater import GameRow, WINNER_CODES


@dataclass
class _ReplayState:
    rating: Rating
    last_period: int


def load_games_for_replay(session: Session, since: int | None = None) -> list[GameRow]:
    """Load rateable games sorted by (timestamp, id)."""
    stmt = select(
        Game.id,
        Game.timestamp,
        Game.id_a,
        Game.char_a,
        Game.id_b,
        Game.char_b,
        Game.winner,
        Game.game_floor,
    ).where(Game.winner.in_(WINNER_CODES))
    if since is not None:
        stmt = stmt.where(Game.timestamp > since)
    stmt = stmt.order_by(Game.timestamp.asc(), Game.id.asc())
    return [GameRow(*row) for row in session.execute(stmt).all() if row.id_a != row.id_b]


def replay_periods(
    games: Iterable[GameRow],
    params: RatingParams,
    period_seconds: int,
) -> list[float]:
    """
    Replay games period by period from an empty rating table.

    Args:
        games: Games sorted by (timestamp, id)
        params: Rating parameters under evaluation
        period_seconds: Rating period length

    Returns:
        For each game, the pre-period probability assigned to its winner
    """
    states: dict[tuple[int, int], _ReplayState] = {}
    probs: list[float] = []

    current_period: int | None = None
    batch: list[GameRow] = []

    def flush(period: int) -> None:
        pre: dict[tuple[int, int], Rating] = {}
        for game in batch:
            for key in ((game.id_a, game.char_a), (game.id_b, game.char_b)):
                if key in pre:
                    continue
                state = states.get(key)
                if state is None:
                    pre[key] = params.initial_rating()
                else:
                    pre[key] = decay(state.rating, max(period - state.last_period - 1, 0), params)

        outcomes: dict[tuple[int, int], list[tuple[Rating, float]]] = {key: [] for key in pre}
        for game in batch:
            key_a = (game.id_a, game.char_a)
            key_b = (game.id_b, game.char_b)
            p_a = expected(pre[key_a], pre[key_b])
            score_a = 1.0 if game.winner == "A" else 0.0
            probs.append(p_a if score_a == 1.0 else 1.0 - p_a)
            outcomes[key_a].append((pre[key_b], score_a))
            outcomes[key_b].append((pre[key_a], 1.0 - score_a))

        for key, rating in pre.items():
            states[key] = _ReplayState(update(rating, outcomes[key], params), period)

    for game in games:
        # Period n covers ((n-1)*P, n*P], matching the scheduler's windows
        period = -(-game.timestamp // period_seconds)
        if current_period is not None and period != current_period:
            flush(current_period)
            batch = []
        current_period = period
        batch.append(game)

    if batch and current_period is not None:
        flush(current_period)

    return probs


def compute_log_loss(probs: list[float]) -> float:
    """Compute binary log-loss from winner probabilities."""
    if not probs:
        return float("inf")

    total = 0.0
    for p in probs:
        p = max(1e-7, min(1.0 - 1e-7, p))
        total += math.log(p)
    return -total / len(probs)
