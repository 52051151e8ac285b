"""
Leaderboards and primary-character selection.

Only established ratings (deviation below the low-confidence cutoff) are
ranked, so a fresh rating with a lucky streak cannot sit at the top of the
board. Ties in value are broken by (id, char_id) to keep ranks stable.
"""

from __future__ import annotations

from collections import defaultdict
from typing import NamedTuple

from ratingupdate.aggregates.inputs import RatingRow
from ratingupdate.rating.glicko import conservative_value


class RankingEntry(NamedTuple):
    id: int
    char_id: int
    rank: int


def is_established(row: RatingRow, low_deviation: float) -> bool:
    return row.deviation < low_deviation


def _ordered(rows: list[RatingRow]) -> list[RatingRow]:
    return sorted(rows, key=lambda r: (-r.value, r.id, r.char_id))


def global_ranking(ratings: list[RatingRow], low_deviation: float) -> list[RankingEntry]:
    established = [r for r in ratings if is_established(r, low_deviation)]
    return [
        RankingEntry(row.id, row.char_id, rank)
        for rank, row in enumerate(_ordered(established), start=1)
    ]


def character_ranking(ratings: list[RatingRow], low_deviation: float) -> list[RankingEntry]:
    by_char: dict[int, list[RatingRow]] = defaultdict(list)
    for row in ratings:
        if is_established(row, low_deviation):
            by_char[row.char_id].append(row)

    entries: list[RankingEntry] = []
    for char_id in sorted(by_char):
        for rank, row in enumerate(_ordered(by_char[char_id]), start=1):
            entries.append(RankingEntry(row.id, row.char_id, rank))
    return entries


def primary_characters(ratings: list[RatingRow]) -> dict[int, int]:
    """
    Pick each player's representative character.

    Chosen by the highest value - 3 * deviation rather than raw value, so an
    untested high rating cannot outrank a well-established one. Ties go to
    the lower char_id.
    """
    best: dict[int, tuple[float, int]] = {}
    for row in ratings:
        score = conservative_value(row.rating)
        current = best.get(row.id)
        if current is None or score > current[0] or (score == current[0] and row.char_id < current[1]):
            best[row.id] = (score, row.char_id)
    return {player_id: char_id for player_id, (_, char_id) in best.items()}
