"""Unit tests for peak-rating and best-win watermarks."""

from ratingupdate.rating.glicko import Rating
from ratingupdate.rating.updater import GameRow
from ratingupdate.rating.watermarks import Watermarks, apply_watermarks


def _game(game_id, timestamp, winner="A", floor=5):
    return GameRow(
        id=game_id,
        timestamp=timestamp,
        id_a=1,
        char_a=0,
        id_b=2,
        char_b=1,
        winner=winner,
        game_floor=floor,
    )


class TestOfferRating:

    def test_first_offer_sets_peak(self):
        marks = Watermarks()

        assert marks.offer_rating(Rating(-0.3, 1.0), 100)
        assert marks.top_rating_value == -0.3
        assert marks.top_rating_timestamp == 100

    def test_tie_keeps_existing_timestamp(self):
        marks = Watermarks(top_rating_value=0.5, top_rating_deviation=0.4, top_rating_timestamp=100)

        assert not marks.offer_rating(Rating(0.5, 0.2), 200)
        assert marks.top_rating_timestamp == 100
        assert marks.top_rating_deviation == 0.4

    def test_never_decreases(self):
        marks = Watermarks()
        peaks = []
        for ts, value in enumerate([0.1, 0.4, 0.2, 0.4, 0.9, -1.0, 0.5]):
            marks.offer_rating(Rating(value, 0.5), ts)
            peaks.append(marks.top_rating_value)

        assert peaks == sorted(peaks)
        assert marks.top_rating_value == 0.9
        assert marks.top_rating_timestamp == 4


class TestOfferDefeated:

    def test_records_opponent_details(self):
        marks = Watermarks()

        assert marks.offer_defeated(7, 3, "Alice", Rating(1.1, 0.3), 99, 500)
        assert marks.as_columns()["top_defeated_id"] == 7
        assert marks.top_defeated_char_id == 3
        assert marks.top_defeated_name == "Alice"
        assert marks.top_defeated_value == 1.1
        assert marks.top_defeated_floor == 99
        assert marks.top_defeated_timestamp == 500

    def test_weaker_or_equal_opponent_ignored(self):
        marks = Watermarks()
        marks.offer_defeated(7, 3, "Alice", Rating(1.1, 0.3), 5, 500)

        assert not marks.offer_defeated(8, 2, "Bob", Rating(1.1, 0.2), 6, 600)
        assert not marks.offer_defeated(9, 2, "Carol", Rating(0.4, 0.2), 6, 700)
        assert marks.top_defeated_id == 7


class TestApplyWatermarks:

    def test_peak_timestamp_is_first_game_of_window(self):
        """Every game of a pair shares one post-period rating, so the earliest game holds the peak."""
        games = [_game(1, 100), _game(2, 200), _game(3, 300, winner="B")]
        pre = {(1, 0): Rating(0.0, 2.0), (2, 1): Rating(0.0, 2.0)}
        post = {(1, 0): Rating(0.4, 1.5), (2, 1): Rating(-0.4, 1.5)}
        marks = {(1, 0): Watermarks(), (2, 1): Watermarks()}

        result = apply_watermarks(games, pre, post, marks)

        assert marks[(1, 0)].top_rating_timestamp == 100
        assert marks[(1, 0)].top_rating_value == 0.4
        assert result.peaks_raised == 2

    def test_best_win_uses_pre_rating_of_loser(self):
        games = [_game(1, 100, winner="B", floor=8)]
        pre = {(1, 0): Rating(0.7, 0.5), (2, 1): Rating(0.1, 0.5)}
        post = {(1, 0): Rating(0.5, 0.45), (2, 1): Rating(0.3, 0.45)}
        marks = {(1, 0): Watermarks(), (2, 1): Watermarks()}

        result = apply_watermarks(games, pre, post, marks, names={1: "Alice"})

        winner = marks[(2, 1)]
        assert winner.top_defeated_id == 1
        assert winner.top_defeated_name == "Alice"
        assert winner.top_defeated_value == 0.7
        assert winner.top_defeated_floor == 8
        assert marks[(1, 0)].top_defeated_value is None
        assert result.best_wins_raised == 1

    def test_existing_peak_not_lowered(self):
        games = [_game(1, 100)]
        pre = {(1, 0): Rating(0.0, 0.5), (2, 1): Rating(0.0, 0.5)}
        post = {(1, 0): Rating(0.2, 0.45), (2, 1): Rating(-0.2, 0.45)}
        marks = {
            (1, 0): Watermarks(top_rating_value=1.5, top_rating_deviation=0.3, top_rating_timestamp=10),
            (2, 1): Watermarks(),
        }

        apply_watermarks(games, pre, post, marks)

        assert marks[(1, 0)].top_rating_value == 1.5
        assert marks[(1, 0)].top_rating_timestamp == 10
