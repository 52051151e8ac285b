"""Immutable inputs for the aggregate reductions, loaded once per rebuild."""

from __future__ import annotations

from typing import NamedTuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from ratingupdate.db.models import Game, GameRating, PlayerRating
from ratingupdate.rating.glicko import Rating


class RatingRow(NamedTuple):
    id: int
    char_id: int
    value: float
    deviation: float
    wins: int
    losses: int

    @property
    def rating(self) -> Rating:
        return Rating(self.value, self.deviation)


class SnapshotRow(NamedTuple):
    """A rated game joined with the pre-update ratings it was rated against."""
    game_id: int
    timestamp: int
    id_a: int
    char_a: int
    id_b: int
    char_b: int
    winner: str
    game_floor: int
    value_a: float
    deviation_a: float
    value_b: float
    deviation_b: float

    @property
    def rating_a(self) -> Rating:
        return Rating(self.value_a, self.deviation_a)

    @property
    def rating_b(self) -> Rating:
        return Rating(self.value_b, self.deviation_b)

    @property
    def score_a(self) -> float:
        return 1.0 if self.winner == "A" else 0.0


def load_ratings(session: Session) -> list[RatingRow]:
    """Current rating table, ordered by (id, char_id)."""
    stmt = select(
        PlayerRating.id,
        PlayerRating.char_id,
        PlayerRating.value,
        PlayerRating.deviation,
        PlayerRating.wins,
        PlayerRating.losses,
    ).order_by(PlayerRating.id, PlayerRating.char_id)
    return [RatingRow(*row) for row in session.execute(stmt).all()]


def load_snapshots(session: Session, until: int) -> list[SnapshotRow]:
    """Every rated game up to `until`, ordered by (timestamp, id)."""
    stmt = (
        select(
            Game.id,
            Game.timestamp,
            Game.id_a,
            Game.char_a,
            Game.id_b,
            Game.char_b,
            Game.winner,
            Game.game_floor,
            GameRating.value_a,
            GameRating.deviation_a,
            GameRating.value_b,
            GameRating.deviation_b,
        )
        .join(GameRating, GameRating.game_id == Game.id)
        .where(Game.timestamp <= until)
        .order_by(Game.timestamp.asc(), Game.id.asc())
    )
    return [SnapshotRow(*row) for row in session.execute(stmt).all()]


def recent(snapshots: list[SnapshotRow], since: int) -> list[SnapshotRow]:
    """Snapshots strictly after `since`."""
    return [s for s in snapshots if s.timestamp > since]
