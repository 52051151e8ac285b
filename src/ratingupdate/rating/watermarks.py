"""
Peak-rating and best-win watermarks.

Both are running maxima carried forward on the rating row and compared
against each processed game; they are never rebuilt from the match log.

Comparisons are strict greater-than, so a tie keeps the existing watermark
and its timestamp. Games are visited in (timestamp, id) order, which makes
the earliest game win any tie inside one window.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Mapping, Sequence

from ratingupdate.rating.glicko import Rating

if TYPE_CHECKING:
    from ratingupdate.rating.updater import GameRow

RatingKey = tuple[int, int]


@dataclass
class Watermarks:
    """Watermark columns of one player_ratings row."""
    top_rating_value: float | None = None
    top_rating_deviation: float | None = None
    top_rating_timestamp: int | None = None

    top_defeated_id: int | None = None
    top_defeated_char_id: int | None = None
    top_defeated_name: str | None = None
    top_defeated_value: float | None = None
    top_defeated_deviation: float | None = None
    top_defeated_floor: int | None = None
    top_defeated_timestamp: int | None = None

    def offer_rating(self, rating: Rating, timestamp: int) -> bool:
        """Raise the peak rating if `rating` strictly exceeds it. Returns True on change."""
        if self.top_rating_value is not None and not rating.value > self.top_rating_value:
            return False
        self.top_rating_value = rating.value
        self.top_rating_deviation = rating.deviation
        self.top_rating_timestamp = timestamp
        return True

    def offer_defeated(
        self,
        opponent_id: int,
        opponent_char_id: int,
        opponent_name: str | None,
        opponent_rating: Rating,
        floor: int,
        timestamp: int,
    ) -> bool:
        """Raise the best win if the beaten opponent's pre-match value strictly exceeds it."""
        if self.top_defeated_value is not None and not opponent_rating.value > self.top_defeated_value:
            return False
        self.top_defeated_id = opponent_id
        self.top_defeated_char_id = opponent_char_id
        self.top_defeated_name = opponent_name
        self.top_defeated_value = opponent_rating.value
        self.top_defeated_deviation = opponent_rating.deviation
        self.top_defeated_floor = floor
        self.top_defeated_timestamp = timestamp
        return True

    def as_columns(self) -> dict:
        return {
            "top_rating_value": self.top_rating_value,
            "top_rating_deviation": self.top_rating_deviation,
            "top_rating_timestamp": self.top_rating_timestamp,
            "top_defeated_id": self.top_defeated_id,
            "top_defeated_char_id": self.top_defeated_char_id,
            "top_defeated_name": self.top_defeated_name,
            "top_defeated_value": self.top_defeated_value,
            "top_defeated_deviation": self.top_defeated_deviation,
            "top_defeated_floor": self.top_defeated_floor,
            "top_defeated_timestamp": self.top_defeated_timestamp,
        }


@dataclass
class WatermarkResult:
    peaks_raised: int = 0
    best_wins_raised: int = 0


def apply_watermarks(
    games: Sequence[GameRow],
    pre: Mapping[RatingKey, Rating],
    post: Mapping[RatingKey, Rating],
    marks: Mapping[RatingKey, Watermarks],
    names: Mapping[int, str] | None = None,
) -> WatermarkResult:
    """
    Offer every processed game of a window to both sides' watermarks.

    Args:
        games: Processed games, sorted by (timestamp, id)
        pre: Pre-period rating per player-character (what each game was rated against)
        post: Post-period rating per player-character
        marks: Watermarks per player-character, mutated in place
        names: Optional display names for best-win attribution

    Returns:
        WatermarkResult with how many watermarks moved
    """
    names = names or {}
    result = WatermarkResult()

    for game in games:
        key_a = (game.id_a, game.char_a)
        key_b = (game.id_b, game.char_b)

        for key in (key_a, key_b):
            if marks[key].offer_rating(post[key], game.timestamp):
                result.peaks_raised += 1

        if game.winner == "A":
            winner_key, loser_key = key_a, key_b
        else:
            winner_key, loser_key = key_b, key_a

        if marks[winner_key].offer_defeated(
            opponent_id=loser_key[0],
            opponent_char_id=loser_key[1],
            opponent_name=names.get(loser_key[0]),
            opponent_rating=pre[loser_key],
            floor=game.game_floor,
            timestamp=game.timestamp,
        ):
            result.best_wins_raised += 1

    return result
