"""
SQLAlchemy ORM models for the rating engine.

The schema splits into three groups:

Inputs (owned by ingestion, read only here):
- players: Player identity and status flags
- player_names: Append-only history of display names
- games: The match log (never mutated by the engine)

Engine state (written only by a rating run):
- player_ratings: Current rating, counters and watermarks per (player, character)
- game_ratings: Pre-update rating snapshot of both sides, one row per game
- config: Single row holding last_update
- rating_parameter_sets: Named rating parameter sets (defaults and tuned variants)
- rejected_games: Corrupt matches skipped under the 'skip' policy
- rating_runs: Audit trail of scheduler runs

Aggregates (deleted and rebuilt by every run, stamped with the run's version):
- ranking_global, ranking_character, player_primary_character
- player_matchups, global_matchups, high_rated_matchups, versus_matchups
- player_rating_distribution, player_floor_distribution
- character_popularity_global, character_popularity_rating
- fraud_index, fraud_index_higher_rated, fraud_index_highest_rated
- outcome_calibration, daily_activity

Ratings are stored on the Glicko-2 internal scale; display conversion happens
in ratingupdate.rating.glicko.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONVariant = JSON().with_variant(JSONB(), "postgresql")

# SQLite only autoincrements INTEGER PRIMARY KEY columns
GameId = BigInteger().with_variant(Integer(), "sqlite")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# =============================================================================
# Input Models
# =============================================================================

class Player(Base):
    """
    Player identity.

    The name is the current display name; previous names live in
    player_names. Status flags are set by administrative tooling.
    """
    __tablename__ = "players"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    vip_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    cheater_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<Player(id={self.id}, name='{self.name}')>"


class PlayerName(Base):
    """Every display name a player has used."""

    __tablename__ = "player_names"

    id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("players.id", ondelete="CASCADE"), primary_key=True
    )
    name: Mapped[str] = mapped_column(String(255), primary_key=True)

    def __repr__(self) -> str:
        return f"<PlayerName(id={self.id}, name='{self.name}')>"


class Game(Base):
    """
    One recorded head-to-head match.

    winner is 'A' or 'B'. game_floor is the skill tier reported by the game
    (1-10, or 99 for the top tier) and is used only for reporting.
    """
    __tablename__ = "games"

    id: Mapped[int] = mapped_column(GameId, primary_key=True)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    id_a: Mapped[int] = mapped_column(BigInteger, nullable=False)
    char_a: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    id_b: Mapped[int] = mapped_column(BigInteger, nullable=False)
    char_b: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    winner: Mapped[str] = mapped_column(String(1), nullable=False)
    game_floor: Mapped[int] = mapped_column(SmallInteger, nullable=False)

    __table_args__ = (
        Index("idx_games_timestamp", "timestamp", "id"),
        Index("idx_games_player_a", "id_a", "char_a"),
        Index("idx_games_player_b", "id_b", "char_b"),
    )

    def __repr__(self) -> str:
        return (
            f"<Game(id={self.id}, ts={self.timestamp}, "
            f"a={self.id_a}/{self.char_a}, b={self.id_b}/{self.char_b}, winner='{self.winner}')>"
        )


# =============================================================================
# Engine State Models
# =============================================================================

class PlayerRating(Base):
    """
    Current rating state per (player, character).

    value/deviation are on the Glicko-2 internal scale. last_decay is the
    period boundary up to which the deviation has been inflated.

    The top_rating_* and top_defeated_* columns are running maxima carried
    forward from run to run (peak rating and best win).
    """
    __tablename__ = "player_ratings"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    char_id: Mapped[int] = mapped_column(SmallInteger, primary_key=True, autoincrement=False)

    value: Mapped[float] = mapped_column(Float, nullable=False)
    deviation: Mapped[float] = mapped_column(Float, nullable=False)
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_decay: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Peak rating
    top_rating_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    top_rating_deviation: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    top_rating_timestamp: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    # Best win (opponent's pre-match rating)
    top_defeated_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    top_defeated_char_id: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    top_defeated_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    top_defeated_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    top_defeated_deviation: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    top_defeated_floor: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    top_defeated_timestamp: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    __table_args__ = (
        Index("idx_player_ratings_char_value", "char_id", "value"),
        Index("idx_player_ratings_last_decay", "last_decay"),
    )

    def __repr__(self) -> str:
        return (
            f"<PlayerRating(id={self.id}, char={self.char_id}, "
            f"value={self.value:.4f}, deviation={self.deviation:.4f})>"
        )


class GameRating(Base):
    """Pre-update ratings of both sides as used to rate one game."""

    __tablename__ = "game_ratings"

    game_id: Mapped[int] = mapped_column(
        GameId, ForeignKey("games.id", ondelete="CASCADE"), primary_key=True
    )
    value_a: Mapped[float] = mapped_column(Float, nullable=False)
    deviation_a: Mapped[float] = mapped_column(Float, nullable=False)
    value_b: Mapped[float] = mapped_column(Float, nullable=False)
    deviation_b: Mapped[float] = mapped_column(Float, nullable=False)

    def __repr__(self) -> str:
        return f"<GameRating(game_id={self.game_id})>"


class EngineConfig(Base):
    """Single-row process state. last_update is the last committed period boundary."""

    __tablename__ = "config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    last_update: Mapped[int] = mapped_column(BigInteger, nullable=False)

    def __repr__(self) -> str:
        return f"<EngineConfig(last_update={self.last_update})>"


class RatingParameterSet(Base):
    """Persisted rating parameter sets (defaults and tuned variants)."""

    __tablename__ = "rating_parameter_sets"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    params: Mapped[dict] = mapped_column(JSONVariant, nullable=False)
    source: Mapped[str] = mapped_column(String(30), nullable=False, default="manual")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(default=_utc_now)

    __table_args__ = (
        Index("idx_rating_parameter_sets_active", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<RatingParameterSet(name='{self.name}', active={self.is_active})>"


class RejectedGame(Base):
    """A match left out of a run because it could not be rated."""

    __tablename__ = "rejected_games"

    id: Mapped[int] = mapped_column(primary_key=True)
    game_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    window_end: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=_utc_now)

    __table_args__ = (
        Index("idx_rejected_games_game", "game_id"),
    )

    def __repr__(self) -> str:
        return f"<RejectedGame(game_id={self.game_id}, reason='{self.reason}')>"


class RatingRun(Base):
    """Audit record of one scheduler run (successful or failed)."""

    __tablename__ = "rating_runs"

    id: Mapped[int] = mapped_column(primary_key=True)
    run_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    started_at: Mapped[datetime] = mapped_column(nullable=False, default=_utc_now)
    ended_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    window_start: Mapped[int] = mapped_column(BigInteger, nullable=False)
    window_end: Mapped[int] = mapped_column(BigInteger, nullable=False)
    summary_json: Mapped[Optional[dict]] = mapped_column(JSONVariant, nullable=True)
    error_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_rating_runs_started_at", "started_at"),
        Index("idx_rating_runs_status_started_at", "status", "started_at"),
    )

    def __repr__(self) -> str:
        return f"<RatingRun(run_id='{self.run_id}', status='{self.status}')>"


# =============================================================================
# Aggregate Models
# =============================================================================

class RankingGlobal(Base):
    """Established ratings ordered by value across all characters."""

    __tablename__ = "ranking_global"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    char_id: Mapped[int] = mapped_column(SmallInteger, primary_key=True, autoincrement=False)
    global_rank: Mapped[int] = mapped_column(Integer, nullable=False)
    version: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        Index("idx_ranking_global_rank", "global_rank"),
    )


class RankingCharacter(Base):
    """Established ratings ordered by value within one character."""

    __tablename__ = "ranking_character"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    char_id: Mapped[int] = mapped_column(SmallInteger, primary_key=True, autoincrement=False)
    character_rank: Mapped[int] = mapped_column(Integer, nullable=False)
    version: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        Index("idx_ranking_character_rank", "char_id", "character_rank"),
    )


class PlayerPrimaryCharacter(Base):
    """The character with the highest conservative rating for each player."""

    __tablename__ = "player_primary_character"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    char_id: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    version: Mapped[int] = mapped_column(BigInteger, nullable=False)


class PlayerMatchup(Base):
    """Win/loss counts of one player-character against one opponent character."""

    __tablename__ = "player_matchups"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    char_id: Mapped[int] = mapped_column(SmallInteger, primary_key=True, autoincrement=False)
    opp_char_id: Mapped[int] = mapped_column(SmallInteger, primary_key=True, autoincrement=False)
    wins_real: Mapped[int] = mapped_column(Integer, nullable=False)
    losses_real: Mapped[int] = mapped_column(Integer, nullable=False)
    wins_adjusted: Mapped[float] = mapped_column(Float, nullable=False)
    losses_adjusted: Mapped[float] = mapped_column(Float, nullable=False)
    version: Mapped[int] = mapped_column(BigInteger, nullable=False)


class _CharacterMatchupColumns:
    """Shared shape of the character-vs-character matchup tables."""

    char_id: Mapped[int] = mapped_column(SmallInteger, primary_key=True, autoincrement=False)
    opp_char_id: Mapped[int] = mapped_column(SmallInteger, primary_key=True, autoincrement=False)
    game_count: Mapped[int] = mapped_column(Integer, nullable=False)
    wins_real: Mapped[int] = mapped_column(Integer, nullable=False)
    losses_real: Mapped[int] = mapped_column(Integer, nullable=False)
    wins_adjusted: Mapped[float] = mapped_column(Float, nullable=False)
    losses_adjusted: Mapped[float] = mapped_column(Float, nullable=False)
    win_rate_real: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    win_rate_adjusted: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    suspicious: Mapped[bool] = mapped_column(Boolean, nullable=False)
    evaluation: Mapped[str] = mapped_column(String(20), nullable=False)
    version: Mapped[int] = mapped_column(BigInteger, nullable=False)


class GlobalMatchup(_CharacterMatchupColumns, Base):
    __tablename__ = "global_matchups"


class HighRatedMatchup(_CharacterMatchupColumns, Base):
    __tablename__ = "high_rated_matchups"


class VersusMatchup(Base):
    """
    Population-level, skill-adjusted win rate of char_a against char_b over
    the recent analytics window.
    """
    __tablename__ = "versus_matchups"

    char_a: Mapped[int] = mapped_column(SmallInteger, primary_key=True, autoincrement=False)
    char_b: Mapped[int] = mapped_column(SmallInteger, primary_key=True, autoincrement=False)
    win_rate: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    game_count: Mapped[int] = mapped_column(Integer, nullable=False)
    pair_count: Mapped[int] = mapped_column(Integer, nullable=False)
    suspicious: Mapped[bool] = mapped_column(Boolean, nullable=False)
    evaluation: Mapped[str] = mapped_column(String(20), nullable=False)
    version: Mapped[int] = mapped_column(BigInteger, nullable=False)


class RatingDistribution(Base):
    """Histogram of established display ratings with a cumulative column."""

    __tablename__ = "player_rating_distribution"

    bucket: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    min_rating: Mapped[float] = mapped_column(Float, nullable=False)
    max_rating: Mapped[float] = mapped_column(Float, nullable=False)
    player_count: Mapped[int] = mapped_column(Integer, nullable=False)
    player_count_cum: Mapped[int] = mapped_column(Integer, nullable=False)
    version: Mapped[int] = mapped_column(BigInteger, nullable=False)


class FloorDistribution(Base):
    """Players per floor (by their most recent game) and games per floor."""

    __tablename__ = "player_floor_distribution"

    floor: Mapped[int] = mapped_column(SmallInteger, primary_key=True, autoincrement=False)
    player_count: Mapped[int] = mapped_column(Integer, nullable=False)
    game_count: Mapped[int] = mapped_column(Integer, nullable=False)
    version: Mapped[int] = mapped_column(BigInteger, nullable=False)


class CharacterPopularityGlobal(Base):
    __tablename__ = "character_popularity_global"

    char_id: Mapped[int] = mapped_column(SmallInteger, primary_key=True, autoincrement=False)
    popularity: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    version: Mapped[int] = mapped_column(BigInteger, nullable=False)


class CharacterPopularityRating(Base):
    """Character share within one rating bracket, with its delta against the global share."""

    __tablename__ = "character_popularity_rating"

    rating_bracket: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    char_id: Mapped[int] = mapped_column(SmallInteger, primary_key=True, autoincrement=False)
    rating_min: Mapped[float] = mapped_column(Float, nullable=False)
    rating_max: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    popularity: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    delta: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    version: Mapped[int] = mapped_column(BigInteger, nullable=False)


class _FraudIndexColumns:
    char_id: Mapped[int] = mapped_column(SmallInteger, primary_key=True, autoincrement=False)
    player_count: Mapped[int] = mapped_column(Integer, nullable=False)
    avg_delta: Mapped[float] = mapped_column(Float, nullable=False)
    version: Mapped[int] = mapped_column(BigInteger, nullable=False)


class FraudIndex(_FraudIndexColumns, Base):
    __tablename__ = "fraud_index"


class FraudIndexHigherRated(_FraudIndexColumns, Base):
    __tablename__ = "fraud_index_higher_rated"


class FraudIndexHighestRated(_FraudIndexColumns, Base):
    __tablename__ = "fraud_index_highest_rated"


class OutcomeCalibration(Base):
    """Observed win rate per percent of predicted win probability."""

    __tablename__ = "outcome_calibration"

    bucket: Mapped[int] = mapped_column(SmallInteger, primary_key=True, autoincrement=False)
    game_count: Mapped[int] = mapped_column(Integer, nullable=False)
    win_count: Mapped[int] = mapped_column(Integer, nullable=False)
    win_rate: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    version: Mapped[int] = mapped_column(BigInteger, nullable=False)


class DailyActivity(Base):
    """Distinct players with at least one game per UTC day."""

    __tablename__ = "daily_activity"

    day: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    player_count: Mapped[int] = mapped_column(Integer, nullable=False)
    version: Mapped[int] = mapped_column(BigInteger, nullable=False)
