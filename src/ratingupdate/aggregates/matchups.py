"""
Matchup tables.

Three granularities, all computed from snapshots (the ratings each game was
actually rated against), never from the live rating table:

- player: one player-character against each opponent character
- character: character against character over the whole history, plus a
  high-rated subset where both sides were established and strong
- versus: population-level, skill-adjusted win rate between two characters
  over the recent analytics window

"Real" counts are plain wins/losses. "Adjusted" counts weight every game by
g(sqrt(phi_a^2 + phi_b^2)), so games where either side was still uncertain
count for less.

Character pairs with no games still get a row, with None rates, suspicious
set and evaluation 'none', never a division by zero.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import NamedTuple

from ratingupdate.aggregates.inputs import SnapshotRow
from ratingupdate.rating.glicko import expected, g, to_display

# (threshold, label) checked in order against the adjusted win rate
EVALUATION_THRESHOLDS = (
    (0.60, "verygood"),
    (0.56, "good"),
    (0.52, "slightlygood"),
    (0.48, "ok"),
    (0.44, "slightlybad"),
    (0.40, "bad"),
)


def evaluate_win_rate(win_rate: float | None, game_count: int, min_games: int) -> str:
    """
    Label a win rate.

    Examples:
        evaluate_win_rate(0.61, 300, 250)  # → "verygood"
        evaluate_win_rate(0.50, 300, 250)  # → "ok"
        evaluate_win_rate(0.61, 10, 250)   # → "none"
    """
    if win_rate is None or game_count < min_games:
        return "none"
    for threshold, label in EVALUATION_THRESHOLDS:
        if win_rate > threshold:
            return label
    return "verybad"


def adjusted_weight(deviation_a: float, deviation_b: float) -> float:
    return g(math.sqrt(deviation_a * deviation_a + deviation_b * deviation_b))


@dataclass
class MatchupTally:
    wins_real: int = 0
    losses_real: int = 0
    wins_adjusted: float = 0.0
    losses_adjusted: float = 0.0
    mirror_games: int = 0

    def add(self, won: bool, weight: float) -> None:
        if won:
            self.wins_real += 1
            self.wins_adjusted += weight
        else:
            self.losses_real += 1
            self.losses_adjusted += weight

    def add_mirror(self, weight: float) -> None:
        """A character against itself: one game, half a win and half a loss."""
        self.mirror_games += 1
        self.wins_adjusted += weight / 2
        self.losses_adjusted += weight / 2

    @property
    def game_count(self) -> int:
        return self.wins_real + self.losses_real + self.mirror_games

    @property
    def win_rate_real(self) -> float | None:
        if self.game_count == 0:
            return None
        return (self.wins_real + self.mirror_games / 2) / self.game_count

    @property
    def win_rate_adjusted(self) -> float | None:
        total = self.wins_adjusted + self.losses_adjusted
        if total <= 0.0:
            return None
        return self.wins_adjusted / total


class CharacterMatchupRow(NamedTuple):
    char_id: int
    opp_char_id: int
    game_count: int
    wins_real: int
    losses_real: int
    wins_adjusted: float
    losses_adjusted: float
    win_rate_real: float | None
    win_rate_adjusted: float | None
    suspicious: bool
    evaluation: str


class VersusRow(NamedTuple):
    char_a: int
    char_b: int
    win_rate: float | None
    game_count: int
    pair_count: int
    suspicious: bool
    evaluation: str


def player_matchups(snapshots: list[SnapshotRow]) -> dict[tuple[int, int, int], MatchupTally]:
    """Tallies keyed by (player id, char id, opponent char id)."""
    tallies: dict[tuple[int, int, int], MatchupTally] = {}
    for snap in snapshots:
        weight = adjusted_weight(snap.deviation_a, snap.deviation_b)
        a_won = snap.winner == "A"
        tallies.setdefault((snap.id_a, snap.char_a, snap.char_b), MatchupTally()).add(a_won, weight)
        tallies.setdefault((snap.id_b, snap.char_b, snap.char_a), MatchupTally()).add(not a_won, weight)
    return dict(sorted(tallies.items()))


def character_matchups(
    snapshots: list[SnapshotRow],
    character_count: int,
    min_games: int,
) -> list[CharacterMatchupRow]:
    """
    Full character x character grid, each game counted from both sides.

    A mirror game is counted once, as half a win and half a loss, so mirror
    cells sit at 0.5.
    """
    tallies = {
        (c, o): MatchupTally() for c in range(character_count) for o in range(character_count)
    }
    for snap in snapshots:
        if (snap.char_a, snap.char_b) not in tallies:
            continue
        weight = adjusted_weight(snap.deviation_a, snap.deviation_b)
        a_won = snap.winner == "A"
        if snap.char_a == snap.char_b:
            tallies[(snap.char_a, snap.char_a)].add_mirror(weight)
            continue
        tallies[(snap.char_a, snap.char_b)].add(a_won, weight)
        tallies[(snap.char_b, snap.char_a)].add(not a_won, weight)

    rows = []
    for (char_id, opp_char_id), tally in tallies.items():
        win_rate_adjusted = tally.win_rate_adjusted
        rows.append(
            CharacterMatchupRow(
                char_id=char_id,
                opp_char_id=opp_char_id,
                game_count=tally.game_count,
                wins_real=tally.wins_real,
                losses_real=tally.losses_real,
                wins_adjusted=tally.wins_adjusted,
                losses_adjusted=tally.losses_adjusted,
                win_rate_real=tally.win_rate_real,
                win_rate_adjusted=win_rate_adjusted,
                suspicious=tally.game_count < min_games,
                evaluation=evaluate_win_rate(win_rate_adjusted, tally.game_count, min_games),
            )
        )
    return rows


def high_rated(
    snapshots: list[SnapshotRow],
    min_display_rating: float,
    low_deviation: float,
) -> list[SnapshotRow]:
    """Games where both sides were established and at or above the display rating."""
    return [
        s for s in snapshots
        if to_display(s.value_a) >= min_display_rating
        and to_display(s.value_b) >= min_display_rating
        and s.deviation_a < low_deviation
        and s.deviation_b < low_deviation
    ]


def versus_matchups(
    snapshots: list[SnapshotRow],
    character_count: int,
    min_pairs: int,
    min_games: int,
) -> list[VersusRow]:
    """
    Skill-adjusted character-vs-character win rates.

    Each game contributes score - expected + 0.5 from the lower char id's
    side, so a result the ratings already predicted moves nothing. The rate
    of (b, a) is defined as 1 - rate(a, b), which keeps the table exactly
    symmetric. Mirror pairs are 0.5 by definition.
    """
    residuals: dict[tuple[int, int], list[float]] = {}
    pairs: dict[tuple[int, int], set[tuple[int, int]]] = {}
    for snap in snapshots:
        if snap.char_a == snap.char_b:
            key = (snap.char_a, snap.char_a)
            residual = 0.5
        elif snap.char_a < snap.char_b:
            key = (snap.char_a, snap.char_b)
            residual = snap.score_a - expected(snap.rating_a, snap.rating_b) + 0.5
        else:
            key = (snap.char_b, snap.char_a)
            residual = (1.0 - snap.score_a) - expected(snap.rating_b, snap.rating_a) + 0.5
        residuals.setdefault(key, []).append(residual)
        pairs.setdefault(key, set()).add((min(snap.id_a, snap.id_b), max(snap.id_a, snap.id_b)))

    rows: list[VersusRow] = []
    for char_a in range(character_count):
        for char_b in range(character_count):
            key = (min(char_a, char_b), max(char_a, char_b))
            game_count = len(residuals.get(key, ()))
            pair_count = len(pairs.get(key, ()))

            if char_a == char_b:
                rows.append(VersusRow(char_a, char_b, 0.5, game_count, pair_count, False, "ok"))
                continue
            if game_count == 0:
                rows.append(VersusRow(char_a, char_b, None, 0, 0, True, "none"))
                continue

            rate = min(max(math.fsum(residuals[key]) / game_count, 0.0), 1.0)
            if char_a > char_b:
                rate = 1.0 - rate
            rows.append(
                VersusRow(
                    char_a=char_a,
                    char_b=char_b,
                    win_rate=rate,
                    game_count=game_count,
                    pair_count=pair_count,
                    suspicious=pair_count < min_pairs or game_count < min_games,
                    evaluation=evaluate_win_rate(rate, game_count, 0),
                )
            )
    return rows
