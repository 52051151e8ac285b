"""
Expected-outcome calibration curve.

Every game between two established ratings is bucketed by the win
probability the snapshots gave each side (rounded to a whole percent), and
the observed win rate per bucket is recorded. Both sides of a game pass the
same deviation filter, so the curve is symmetric around 50%.
"""

from __future__ import annotations

import math
from typing import NamedTuple

from ratingupdate.aggregates.inputs import SnapshotRow
from ratingupdate.rating.glicko import win_probability

BUCKET_COUNT = 101


class CalibrationRow(NamedTuple):
    bucket: int
    game_count: int
    win_count: int
    win_rate: float | None


def probability_bucket(probability: float) -> int:
    return min(max(math.floor(probability * 100.0 + 0.5), 0), BUCKET_COUNT - 1)


def outcome_calibration(snapshots: list[SnapshotRow], low_deviation: float) -> list[CalibrationRow]:
    games = [0] * BUCKET_COUNT
    wins = [0] * BUCKET_COUNT

    for snap in snapshots:
        if snap.deviation_a >= low_deviation or snap.deviation_b >= low_deviation:
            continue
        p_a = win_probability(snap.rating_a, snap.rating_b)
        for probability, won in ((p_a, snap.winner == "A"), (1.0 - p_a, snap.winner == "B")):
            bucket = probability_bucket(probability)
            games[bucket] += 1
            if won:
                wins[bucket] += 1

    return [
        CalibrationRow(bucket, games[bucket], wins[bucket], wins[bucket] / games[bucket] if games[bucket] else None)
        for bucket in range(BUCKET_COUNT)
    ]
