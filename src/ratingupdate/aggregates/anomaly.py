"""
Character anomaly ("fraud") index.

For every player with at least two established characters, each of those
characters gets an offset: its display rating minus the mean display rating
of the player's other established characters. Averaged per character, a
large positive offset means players tend to rate much higher on that
character than on the rest of their roster.

Three variants restrict the players counted by the mean rating of their
other characters, separating casual-population noise from high-level
anomalies.
"""

from __future__ import annotations

import math
from collections import defaultdict
from typing import NamedTuple

from ratingupdate.aggregates.inputs import RatingRow
from ratingupdate.aggregates.rankings import is_established
from ratingupdate.rating.glicko import to_display


class FraudRow(NamedTuple):
    char_id: int
    player_count: int
    avg_delta: float


def anomaly_index(
    ratings: list[RatingRow],
    low_deviation: float,
    min_other_rating: float | None = None,
) -> list[FraudRow]:
    by_player: dict[int, list[tuple[int, float]]] = defaultdict(list)
    for row in ratings:
        if is_established(row, low_deviation):
            by_player[row.id].append((row.char_id, to_display(row.value)))

    offsets: dict[int, list[float]] = defaultdict(list)
    for characters in by_player.values():
        if len(characters) < 2:
            continue
        total = math.fsum(display for _, display in characters)
        for char_id, display in characters:
            mean_other = (total - display) / (len(characters) - 1)
            if min_other_rating is not None and mean_other < min_other_rating:
                continue
            offsets[char_id].append(display - mean_other)

    return [
        FraudRow(char_id, len(deltas), math.fsum(deltas) / len(deltas))
        for char_id, deltas in sorted(offsets.items())
    ]
