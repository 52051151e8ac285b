"""Unit tests for leaderboards and primary-character selection."""

from ratingupdate.aggregates.inputs import RatingRow
from ratingupdate.aggregates.rankings import (
    RankingEntry,
    character_ranking,
    global_ranking,
    is_established,
    primary_characters,
)

LOW = 0.5


def _row(player_id, char_id, value, deviation=0.3):
    return RatingRow(player_id, char_id, value, deviation, 0, 0)


def test_is_established_uses_strict_cutoff():
    assert is_established(_row(1, 0, 0.0, 0.49), LOW)
    assert not is_established(_row(1, 0, 0.0, 0.5), LOW)


def test_global_ranking_skips_unestablished_and_orders_by_value():
    ratings = [
        _row(1, 0, 0.2),
        _row(2, 0, 1.5),
        _row(3, 1, 3.0, deviation=1.2),
        _row(1, 1, 0.9),
    ]

    assert global_ranking(ratings, LOW) == [
        RankingEntry(2, 0, 1),
        RankingEntry(1, 1, 2),
        RankingEntry(1, 0, 3),
    ]


def test_ties_broken_by_id_then_char():
    ratings = [_row(5, 1, 1.0), _row(5, 0, 1.0), _row(2, 3, 1.0)]

    assert [(e.id, e.char_id) for e in global_ranking(ratings, LOW)] == [(2, 3), (5, 0), (5, 1)]


def test_character_ranking_restarts_per_character():
    ratings = [
        _row(1, 0, 0.2),
        _row(2, 0, 0.8),
        _row(3, 1, -0.5),
        _row(4, 1, 0.1, deviation=0.9),
    ]

    assert character_ranking(ratings, LOW) == [
        RankingEntry(2, 0, 1),
        RankingEntry(1, 0, 2),
        RankingEntry(3, 1, 1),
    ]


def test_primary_prefers_conservative_value():
    """A high but untested rating loses to a slightly lower established one."""
    ratings = [
        _row(1, 0, 1.0, deviation=0.2),  # conservative 0.4
        _row(1, 1, 1.6, deviation=1.0),  # conservative -1.4
        _row(2, 2, 0.0, deviation=2.0),
    ]

    assert primary_characters(ratings) == {1: 0, 2: 2}


def test_primary_tie_goes_to_lower_char():
    ratings = [_row(1, 3, 0.5), _row(1, 2, 0.5)]

    assert primary_characters(ratings) == {1: 2}
