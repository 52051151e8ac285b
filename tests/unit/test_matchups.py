"""
Unit tests for the matchup tables.

Covers:
- Evaluation labels and the minimum-games rule
- Suspicious flags and None rates for thin or empty pairs
- Skill adjustment (games weighted by certainty, versus residuals)
- Versus symmetry and mirror pairs
"""

import pytest

from ratingupdate.aggregates.inputs import SnapshotRow
from ratingupdate.aggregates.matchups import (
    MatchupTally,
    adjusted_weight,
    character_matchups,
    evaluate_win_rate,
    high_rated,
    player_matchups,
    versus_matchups,
)
from ratingupdate.rating.glicko import from_display


def _snap(game_id, id_a, char_a, id_b, char_b, winner="A",
          value_a=0.0, deviation_a=0.3, value_b=0.0, deviation_b=0.3, timestamp=None):
    return SnapshotRow(
        game_id=game_id,
        timestamp=timestamp if timestamp is not None else game_id * 10,
        id_a=id_a,
        char_a=char_a,
        id_b=id_b,
        char_b=char_b,
        winner=winner,
        game_floor=5,
        value_a=value_a,
        deviation_a=deviation_a,
        value_b=value_b,
        deviation_b=deviation_b,
    )


def _grid(rows):
    return {(r.char_id, r.opp_char_id): r for r in rows}


class TestEvaluateWinRate:

    @pytest.mark.parametrize(
        "rate, label",
        [
            (0.61, "verygood"),
            (0.57, "good"),
            (0.53, "slightlygood"),
            (0.50, "ok"),
            (0.45, "slightlybad"),
            (0.41, "bad"),
            (0.30, "verybad"),
        ],
    )
    def test_labels(self, rate, label):
        assert evaluate_win_rate(rate, 300, 250) == label

    def test_thresholds_are_strict(self):
        assert evaluate_win_rate(0.60, 300, 250) == "good"

    def test_below_min_games_is_none(self):
        assert evaluate_win_rate(0.9, 10, 250) == "none"

    def test_missing_rate_is_none(self):
        assert evaluate_win_rate(None, 300, 250) == "none"


class TestTally:

    def test_empty_tally_has_no_rates(self):
        tally = MatchupTally()

        assert tally.win_rate_real is None
        assert tally.win_rate_adjusted is None

    def test_adjusted_weight_favours_certain_games(self):
        assert adjusted_weight(0.2, 0.2) > adjusted_weight(1.5, 1.5)


class TestPlayerMatchups:

    def test_each_game_counted_for_both_players(self):
        snapshots = [
            _snap(1, 10, 0, 20, 1, winner="A"),
            _snap(2, 10, 0, 20, 1, winner="B"),
            _snap(3, 20, 1, 10, 0, winner="B"),
        ]

        tallies = player_matchups(snapshots)

        assert (tallies[(10, 0, 1)].wins_real, tallies[(10, 0, 1)].losses_real) == (2, 1)
        assert (tallies[(20, 1, 0)].wins_real, tallies[(20, 1, 0)].losses_real) == (1, 2)
        assert tallies[(10, 0, 1)].wins_adjusted == pytest.approx(2 * adjusted_weight(0.3, 0.3))


class TestCharacterMatchups:

    def test_full_grid(self):
        rows = character_matchups([], character_count=3, min_games=250)

        assert len(rows) == 9

    def test_thin_pair_is_suspicious(self):
        """Ten games against a minimum of 250: the rate is reported but flagged."""
        snapshots = [
            _snap(i, 100 + i, 0, 200 + i, 1, winner="A" if i < 7 else "B") for i in range(10)
        ]

        grid = _grid(character_matchups(snapshots, character_count=3, min_games=250))

        row = grid[(0, 1)]
        assert row.game_count == 10
        assert row.win_rate_real == pytest.approx(0.7)
        assert row.suspicious is True
        assert row.evaluation == "none"
        assert grid[(1, 0)].win_rate_real == pytest.approx(0.3)

    def test_empty_pair_has_none_rates(self):
        grid = _grid(character_matchups([_snap(1, 10, 0, 20, 1)], character_count=3, min_games=1))

        row = grid[(2, 0)]
        assert row.game_count == 0
        assert row.win_rate_real is None
        assert row.win_rate_adjusted is None
        assert row.suspicious is True
        assert row.evaluation == "none"

    def test_enough_games_evaluated(self):
        snapshots = [_snap(i, 100 + i, 0, 200 + i, 1, winner="A") for i in range(3)]

        grid = _grid(character_matchups(snapshots, character_count=2, min_games=3))

        assert grid[(0, 1)].suspicious is False
        assert grid[(0, 1)].evaluation == "verygood"
        assert grid[(1, 0)].evaluation == "verybad"

    def test_adjusted_rate_discounts_uncertain_games(self):
        snapshots = [
            _snap(1, 10, 0, 20, 1, winner="A", deviation_a=0.1, deviation_b=0.1),
            _snap(2, 11, 0, 21, 1, winner="B", deviation_a=2.0, deviation_b=2.0),
        ]

        row = _grid(character_matchups(snapshots, character_count=2, min_games=1))[(0, 1)]

        assert row.win_rate_real == pytest.approx(0.5)
        assert row.win_rate_adjusted > 0.5

    def test_out_of_roster_games_ignored(self):
        rows = character_matchups([_snap(1, 10, 0, 20, 9)], character_count=2, min_games=1)

        assert sum(r.game_count for r in rows) == 0

    def test_mirror_game_counted_once(self):
        snapshots = [_snap(1, 10, 1, 20, 1, winner="A"), _snap(2, 11, 1, 21, 1, winner="A")]

        row = _grid(character_matchups(snapshots, character_count=2, min_games=2))[(1, 1)]

        assert row.game_count == 2
        assert row.win_rate_real == pytest.approx(0.5)
        assert row.win_rate_adjusted == pytest.approx(0.5)
        assert row.suspicious is False
        assert row.evaluation == "ok"


def test_high_rated_requires_both_sides_established_and_strong():
    strong = from_display(1900)
    weak = from_display(1700)
    snapshots = [
        _snap(1, 10, 0, 20, 1, value_a=strong, value_b=strong),
        _snap(2, 10, 0, 20, 1, value_a=strong, value_b=weak),
        _snap(3, 10, 0, 20, 1, value_a=strong, value_b=strong, deviation_b=0.9),
    ]

    assert [s.game_id for s in high_rated(snapshots, 1800, 0.5)] == [1]


class TestVersusMatchups:

    def _snapshots(self):
        # char 0 beats char 1 twice and loses once between equal ratings
        return [
            _snap(1, 10, 0, 20, 1, winner="A"),
            _snap(2, 21, 1, 11, 0, winner="B"),
            _snap(3, 10, 0, 21, 1, winner="B"),
        ]

    def test_rate_is_skill_adjusted_residual(self):
        rows = {(r.char_a, r.char_b): r for r in versus_matchups(self._snapshots(), 3, 1, 1)}

        assert rows[(0, 1)].win_rate == pytest.approx(2 / 3)
        assert rows[(0, 1)].game_count == 3
        assert rows[(0, 1)].pair_count == 3

    def test_symmetric(self):
        rows = {(r.char_a, r.char_b): r for r in versus_matchups(self._snapshots(), 3, 1, 1)}

        assert rows[(0, 1)].win_rate + rows[(1, 0)].win_rate == pytest.approx(1.0)
        assert rows[(0, 1)].game_count == rows[(1, 0)].game_count

    def test_predicted_win_counts_less(self):
        """A favourite winning as predicted earns less than 1 per game."""
        strong = _snap(1, 10, 0, 20, 1, winner="A", value_a=2.0, value_b=0.0)

        row = {(r.char_a, r.char_b): r for r in versus_matchups([strong], 2, 1, 1)}[(0, 1)]

        assert 0.5 < row.win_rate < 0.7

    def test_mirror_pair_is_even(self):
        rows = {(r.char_a, r.char_b): r for r in versus_matchups(self._snapshots(), 3, 50, 250)}

        mirror = rows[(2, 2)]
        assert mirror.win_rate == 0.5
        assert mirror.suspicious is False
        assert mirror.evaluation == "ok"

    def test_missing_pair(self):
        rows = {(r.char_a, r.char_b): r for r in versus_matchups(self._snapshots(), 3, 50, 250)}

        missing = rows[(0, 2)]
        assert missing.win_rate is None
        assert missing.suspicious is True
        assert missing.evaluation == "none"

    def test_suspicious_when_pairs_or_games_short(self):
        rows = {(r.char_a, r.char_b): r for r in versus_matchups(self._snapshots(), 3, 50, 1)}

        assert rows[(0, 1)].suspicious is True
        assert rows[(0, 1)].evaluation == "verygood"
