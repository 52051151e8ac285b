"""
Batch rating updater: applies one window of games to player_ratings.

Flow for one window (last_update, period_end]:
1. Load the window's games sorted by (timestamp, id) (one query)
2. Screen out corrupt games according to the configured policy
3. Load rating rows for every touched player-character (one query)
4. Rate in memory, with no DB calls per game:
   - decay each touched rating for the idle periods before the final one
   - collect each pair's (opponent pre-rating, score) list and apply
     glicko.update once, so all of a window's games are simultaneous evidence
5. Offer every game to the watermarks
6. Decay every untouched rating with history for all elapsed periods
7. Bulk write: rating upsert, snapshot insert, idle-decay update

Snapshots hold the pre-update rating of both sides, i.e. exactly the
ratings the update was computed from. The caller owns the transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import NamedTuple

from sqlalchemy import insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from ratingupdate.config import Settings, settings as default_settings
from ratingupdate.db.models import Game, GameRating, Player, PlayerRating, RejectedGame
from ratingupdate.errors import CorruptMatchError
from ratingupdate.rating.decay import inflate_deviation, periods_elapsed
from ratingupdate.rating.glicko import Rating, RatingParams, decay, update as glicko_update
from ratingupdate.rating.params_store import get_active_rating_params
from ratingupdate.rating.period import RunWindow
from ratingupdate.rating.watermarks import RatingKey, Watermarks, apply_watermarks

logger = logging.getLogger(__name__)

WINNER_CODES = ("A", "B")

# Rows per multi-VALUES upsert; 17 columns keeps this under SQLite's bind limit
UPSERT_BATCH_SIZE = 500


# ---------------------------------------------------------------------------
# Internal data structures, kept off the ORM in the hot path
# ---------------------------------------------------------------------------

class GameRow(NamedTuple):
    """Lightweight game record loaded for processing."""
    id: int
    timestamp: int
    id_a: int
    char_a: int
    id_b: int
    char_b: int
    winner: str
    game_floor: int


@dataclass
class _RatingState:
    """In-memory rating row for one player-character during a run."""
    id: int
    char_id: int
    rating: Rating
    last_decay: int
    wins: int = 0
    losses: int = 0
    marks: Watermarks = field(default_factory=Watermarks)
    is_new: bool = False


@dataclass
class UpdateResult:
    """Summary returned by BatchRatingUpdater.run()."""
    games_in_window: int = 0
    processed: int = 0
    rejected: int = 0
    ratings_created: int = 0
    ratings_updated: int = 0
    ratings_decayed: int = 0
    peaks_raised: int = 0
    best_wins_raised: int = 0
    errors: list[str] = field(default_factory=list)

    def summary(self) -> str:
        """Return a human-readable summary of the run."""
        lines = [
            "Rating update complete:",
            f"  Games in window:     {self.games_in_window}",
            f"  Games processed:     {self.processed}",
            f"  Games rejected:      {self.rejected}",
            f"  Ratings created:     {self.ratings_created}",
            f"  Ratings updated:     {self.ratings_updated}",
            f"  Ratings decayed:     {self.ratings_decayed}",
            f"  Peaks raised:        {self.peaks_raised}",
            f"  Best wins raised:    {self.best_wins_raised}",
        ]
        if self.errors:
            lines.append(f"  Errors: {len(self.errors)}")
            for err in self.errors[:5]:
                lines.append(f"    - {err}")
            if len(self.errors) > 5:
                lines.append(f"    ... and {len(self.errors) - 5} more")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "games_in_window": self.games_in_window,
            "processed": self.processed,
            "rejected": self.rejected,
            "ratings_created": self.ratings_created,
            "ratings_updated": self.ratings_updated,
            "ratings_decayed": self.ratings_decayed,
            "peaks_raised": self.peaks_raised,
            "best_wins_raised": self.best_wins_raised,
            "errors": list(self.errors),
        }


# ---------------------------------------------------------------------------
# Main service
# ---------------------------------------------------------------------------

class BatchRatingUpdater:
    """
    Applies the games of one run window to the rating table.

    Usage:

        updater = BatchRatingUpdater.from_session(session)
        result = updater.run(session, window)
        session.commit()
    """

    def __init__(
        self,
        params: RatingParams,
        params_version: str,
        character_count: int,
        corrupt_match_policy: str = "fail",
    ) -> None:
        self.params = params
        self.params_version = params_version
        self.character_count = character_count
        self.corrupt_match_policy = corrupt_match_policy

    @classmethod
    def from_session(
        cls,
        session: Session,
        settings: Settings | None = None,
    ) -> "BatchRatingUpdater":
        """Instantiate using the active parameter set from the DB and the engine settings."""
        settings = settings or default_settings
        params, version = get_active_rating_params(
            session, defaults=RatingParams(volatility=settings.rating_volatility)
        )
        return cls(
            params=params,
            params_version=version,
            character_count=settings.character_count,
            corrupt_match_policy=settings.corrupt_match_policy,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(self, session: Session, window: RunWindow) -> UpdateResult:
        """
        Rate every game in the window and decay every idle rating.

        Args:
            session: Active SQLAlchemy session. Caller is responsible for commit.
            window: The (last_update, period_end] slice to process.

        Raises:
            CorruptMatchError: under the 'fail' policy, on the first corrupt game.
        """
        result = UpdateResult()

        games = self._load_games(session, window)
        result.games_in_window = len(games)
        games = self._screen(session, games, window, result)

        touched_keys = {(g.id_a, g.char_a) for g in games} | {(g.id_b, g.char_b) for g in games}
        states = self._load_states(session, touched_keys, window)

        pre, post, snapshots = self._rate_window(games, states, window)
        result.processed = len(snapshots)
        result.ratings_created = sum(1 for s in states.values() if s.is_new)
        result.ratings_updated = len(states) - result.ratings_created

        names = self._load_names(session, {g.id_a for g in games} | {g.id_b for g in games})
        marks = {key: state.marks for key, state in states.items()}
        wm = apply_watermarks(games, pre, post, marks, names)
        result.peaks_raised = wm.peaks_raised
        result.best_wins_raised = wm.best_wins_raised

        result.ratings_decayed = self._decay_idle(session, touched_keys, window)

        if states:
            self._bulk_write(session, states, snapshots, window)

        logger.info(result.summary())
        return result

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_game(self, game: GameRow) -> str | None:
        """Return why a game cannot be rated, or None if it is fine."""
        if game.winner not in WINNER_CODES:
            return f"unrecognized winner code {game.winner!r}"
        for char_id in (game.char_a, game.char_b):
            if not 0 <= char_id < self.character_count:
                return f"character {char_id} outside roster 0..{self.character_count - 1}"
        if game.id_a == game.id_b:
            return f"player {game.id_a} on both sides"
        return None

    def _screen(
        self,
        session: Session,
        games: list[GameRow],
        window: RunWindow,
        result: UpdateResult,
    ) -> list[GameRow]:
        accepted: list[GameRow] = []
        for game in games:
            reason = self.validate_game(game)
            if reason is None:
                accepted.append(game)
                continue

            if self.corrupt_match_policy == "fail":
                logger.error("Corrupt game id=%s: %s", game.id, reason)
                raise CorruptMatchError(game.id, reason)

            logger.warning("Skipping corrupt game id=%s: %s", game.id, reason)
            session.add(RejectedGame(game_id=game.id, reason=reason, window_end=window.period_end))
            result.rejected += 1
            result.errors.append(f"game {game.id}: {reason}")
        return accepted

    # ------------------------------------------------------------------
    # DB queries
    # ------------------------------------------------------------------

    def _load_games(self, session: Session, window: RunWindow) -> list[GameRow]:
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
            )
            .where(Game.timestamp > window.last_update)
            .where(Game.timestamp <= window.period_end)
            .order_by(Game.timestamp.asc(), Game.id.asc())
        )
        return [GameRow(*row) for row in session.execute(stmt).all()]

    def _load_states(
        self,
        session: Session,
        keys: set[RatingKey],
        window: RunWindow,
    ) -> dict[RatingKey, _RatingState]:
        """
        Bulk load rating rows for the touched player-characters in one query.

        Pairs without a row get the new-entrant prior.
        """
        if not keys:
            return {}

        player_ids = {player_id for player_id, _ in keys}
        # Plain rows, not entities; later bulk statements would leave entities stale
        ratings = PlayerRating.__table__
        rows = session.execute(
            select(ratings).where(ratings.c.id.in_(player_ids))
        ).all()

        states: dict[RatingKey, _RatingState] = {}
        for row in rows:
            key = (row.id, row.char_id)
            if key not in keys:
                continue
            states[key] = _RatingState(
                id=row.id,
                char_id=row.char_id,
                rating=Rating(row.value, row.deviation),
                last_decay=row.last_decay,
                wins=row.wins,
                losses=row.losses,
                marks=Watermarks(
                    top_rating_value=row.top_rating_value,
                    top_rating_deviation=row.top_rating_deviation,
                    top_rating_timestamp=row.top_rating_timestamp,
                    top_defeated_id=row.top_defeated_id,
                    top_defeated_char_id=row.top_defeated_char_id,
                    top_defeated_name=row.top_defeated_name,
                    top_defeated_value=row.top_defeated_value,
                    top_defeated_deviation=row.top_defeated_deviation,
                    top_defeated_floor=row.top_defeated_floor,
                    top_defeated_timestamp=row.top_defeated_timestamp,
                ),
            )

        for key in keys:
            if key not in states:
                states[key] = _RatingState(
                    id=key[0],
                    char_id=key[1],
                    rating=self.params.initial_rating(),
                    last_decay=window.last_update,
                    is_new=True,
                )
        return states

    def _load_names(self, session: Session, player_ids: set[int]) -> dict[int, str]:
        if not player_ids:
            return {}
        rows = session.execute(
            select(Player.id, Player.name).where(Player.id.in_(player_ids))
        ).all()
        return {row.id: row.name for row in rows}

    # ------------------------------------------------------------------
    # Core computation (pure in-memory, no DB calls)
    # ------------------------------------------------------------------

    def _rate_window(
        self,
        games: list[GameRow],
        states: dict[RatingKey, _RatingState],
        window: RunWindow,
    ) -> tuple[dict[RatingKey, Rating], dict[RatingKey, Rating], list[dict]]:
        """
        Apply the window's games to the in-memory states.

        Returns:
            (pre-period ratings, post-period ratings, snapshot rows)
        """
        params = self.params

        # Idle periods before the final one; the update itself inflates once more
        pre: dict[RatingKey, Rating] = {}
        for key, state in states.items():
            if state.is_new:
                pre[key] = state.rating
            else:
                idle = periods_elapsed(state.last_decay, window.period_end, window.period_seconds)
                pre[key] = decay(state.rating, max(idle - 1, 0), params)

        outcomes: dict[RatingKey, list[tuple[Rating, float]]] = {key: [] for key in states}
        snapshots: list[dict] = []

        for game in games:
            key_a = (game.id_a, game.char_a)
            key_b = (game.id_b, game.char_b)
            score_a = 1.0 if game.winner == "A" else 0.0

            outcomes[key_a].append((pre[key_b], score_a))
            outcomes[key_b].append((pre[key_a], 1.0 - score_a))

            if score_a == 1.0:
                states[key_a].wins += 1
                states[key_b].losses += 1
            else:
                states[key_a].losses += 1
                states[key_b].wins += 1

            snapshots.append(
                {
                    "game_id": game.id,
                    "value_a": pre[key_a].value,
                    "deviation_a": pre[key_a].deviation,
                    "value_b": pre[key_b].value,
                    "deviation_b": pre[key_b].deviation,
                }
            )

        post: dict[RatingKey, Rating] = {}
        for key, state in states.items():
            post[key] = glicko_update(pre[key], outcomes[key], params)
            state.rating = post[key]
            state.last_decay = window.period_end

        return pre, post, snapshots

    # ------------------------------------------------------------------
    # Bulk DB writes
    # ------------------------------------------------------------------

    def _decay_idle(
        self,
        session: Session,
        touched_keys: set[RatingKey],
        window: RunWindow,
    ) -> int:
        """Inflate the deviation of every rating that sat out the whole window."""
        rows = session.execute(
            select(
                PlayerRating.id,
                PlayerRating.char_id,
                PlayerRating.deviation,
                PlayerRating.last_decay,
            ).where(PlayerRating.last_decay < window.period_end)
        ).all()

        decayed = []
        for row in rows:
            if (row.id, row.char_id) in touched_keys:
                continue
            periods = periods_elapsed(row.last_decay, window.period_end, window.period_seconds)
            decayed.append(
                {
                    "id": row.id,
                    "char_id": row.char_id,
                    "deviation": inflate_deviation(
                        row.deviation,
                        periods,
                        volatility=self.params.volatility,
                        max_deviation=self.params.max_deviation,
                    ),
                    "last_decay": window.period_end,
                }
            )

        if decayed:
            session.execute(update(PlayerRating), decayed)
        return len(decayed)

    def _bulk_write(
        self,
        session: Session,
        states: dict[RatingKey, _RatingState],
        snapshots: list[dict],
        window: RunWindow,
    ) -> None:
        """
        Persist the run in two bulk statements.

        1. INSERT ... ON CONFLICT DO UPDATE on player_ratings
        2. executemany INSERT on game_ratings
        """
        rating_rows = [
            {
                "id": state.id,
                "char_id": state.char_id,
                "value": state.rating.value,
                "deviation": state.rating.deviation,
                "wins": state.wins,
                "losses": state.losses,
                "last_decay": state.last_decay,
                **state.marks.as_columns(),
            }
            for state in states.values()
        ]

        insert_fn = pg_insert if session.get_bind().dialect.name == "postgresql" else sqlite_insert
        for start in range(0, len(rating_rows), UPSERT_BATCH_SIZE):
            stmt = insert_fn(PlayerRating).values(rating_rows[start:start + UPSERT_BATCH_SIZE])
            stmt = stmt.on_conflict_do_update(
                index_elements=[PlayerRating.id, PlayerRating.char_id],
                set_={
                    column: getattr(stmt.excluded, column)
                    for column in rating_rows[0]
                    if column not in ("id", "char_id")
                },
            )
            session.execute(stmt)

        if snapshots:
            session.execute(insert(GameRating), snapshots)
