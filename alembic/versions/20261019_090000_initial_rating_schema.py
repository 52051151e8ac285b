"""Initial rating engine schema

Revision ID: 3e8a51c0d4b7
Revises:
Create Date: 2026-10-19 09:00:00.000000+00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# Revision identifiers, used by Alembic.
revision: str = "3e8a51c0d4b7"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


AGGREGATE_TABLES = [
    "daily_activity",
    "outcome_calibration",
    "fraud_index_highest_rated",
    "fraud_index_higher_rated",
    "fraud_index",
    "character_popularity_rating",
    "character_popularity_global",
    "player_floor_distribution",
    "player_rating_distribution",
    "versus_matchups",
    "high_rated_matchups",
    "global_matchups",
    "player_matchups",
    "player_primary_character",
    "ranking_character",
    "ranking_global",
]


def _version_column() -> sa.Column:
    return sa.Column("version", sa.BigInteger(), nullable=False)


def _create_character_matchup_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column("char_id", sa.SmallInteger(), nullable=False),
        sa.Column("opp_char_id", sa.SmallInteger(), nullable=False),
        sa.Column("game_count", sa.Integer(), nullable=False),
        sa.Column("wins_real", sa.Integer(), nullable=False),
        sa.Column("losses_real", sa.Integer(), nullable=False),
        sa.Column("wins_adjusted", sa.Float(), nullable=False),
        sa.Column("losses_adjusted", sa.Float(), nullable=False),
        sa.Column("win_rate_real", sa.Float(), nullable=True),
        sa.Column("win_rate_adjusted", sa.Float(), nullable=True),
        sa.Column("suspicious", sa.Boolean(), nullable=False),
        sa.Column("evaluation", sa.String(length=20), nullable=False),
        _version_column(),
        sa.PrimaryKeyConstraint("char_id", "opp_char_id"),
    )


def _create_fraud_index_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column("char_id", sa.SmallInteger(), nullable=False),
        sa.Column("player_count", sa.Integer(), nullable=False),
        sa.Column("avg_delta", sa.Float(), nullable=False),
        _version_column(),
        sa.PrimaryKeyConstraint("char_id"),
    )


def upgrade() -> None:
    # Inputs
    op.create_table(
        "players",
        sa.Column("id", sa.BigInteger(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("vip_status", sa.String(length=50), nullable=True),
        sa.Column("cheater_status", sa.String(length=50), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "player_names",
        sa.Column("id", sa.BigInteger(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.ForeignKeyConstraint(["id"], ["players.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id", "name"),
    )
    op.create_table(
        "games",
        sa.Column("id", sa.BigInteger(), nullable=False),
        sa.Column("timestamp", sa.BigInteger(), nullable=False),
        sa.Column("id_a", sa.BigInteger(), nullable=False),
        sa.Column("char_a", sa.SmallInteger(), nullable=False),
        sa.Column("id_b", sa.BigInteger(), nullable=False),
        sa.Column("char_b", sa.SmallInteger(), nullable=False),
        sa.Column("winner", sa.String(length=1), nullable=False),
        sa.Column("game_floor", sa.SmallInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_games_timestamp", "games", ["timestamp", "id"], unique=False)
    op.create_index("idx_games_player_a", "games", ["id_a", "char_a"], unique=False)
    op.create_index("idx_games_player_b", "games", ["id_b", "char_b"], unique=False)

    # Engine state
    op.create_table(
        "player_ratings",
        sa.Column("id", sa.BigInteger(), nullable=False),
        sa.Column("char_id", sa.SmallInteger(), nullable=False),
        sa.Column("value", sa.Float(), nullable=False),
        sa.Column("deviation", sa.Float(), nullable=False),
        sa.Column("wins", sa.Integer(), nullable=False),
        sa.Column("losses", sa.Integer(), nullable=False),
        sa.Column("last_decay", sa.BigInteger(), nullable=False),
        sa.Column("top_rating_value", sa.Float(), nullable=True),
        sa.Column("top_rating_deviation", sa.Float(), nullable=True),
        sa.Column("top_rating_timestamp", sa.BigInteger(), nullable=True),
        sa.Column("top_defeated_id", sa.BigInteger(), nullable=True),
        sa.Column("top_defeated_char_id", sa.SmallInteger(), nullable=True),
        sa.Column("top_defeated_name", sa.String(length=255), nullable=True),
        sa.Column("top_defeated_value", sa.Float(), nullable=True),
        sa.Column("top_defeated_deviation", sa.Float(), nullable=True),
        sa.Column("top_defeated_floor", sa.SmallInteger(), nullable=True),
        sa.Column("top_defeated_timestamp", sa.BigInteger(), nullable=True),
        sa.PrimaryKeyConstraint("id", "char_id"),
    )
    op.create_index("idx_player_ratings_char_value", "player_ratings", ["char_id", "value"], unique=False)
    op.create_index("idx_player_ratings_last_decay", "player_ratings", ["last_decay"], unique=False)

    op.create_table(
        "game_ratings",
        sa.Column("game_id", sa.BigInteger(), nullable=False),
        sa.Column("value_a", sa.Float(), nullable=False),
        sa.Column("deviation_a", sa.Float(), nullable=False),
        sa.Column("value_b", sa.Float(), nullable=False),
        sa.Column("deviation_b", sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(["game_id"], ["games.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("game_id"),
    )

    op.create_table(
        "config",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("last_update", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "rating_parameter_sets",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("params", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("source", sa.String(length=30), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "created_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_index("idx_rating_parameter_sets_active", "rating_parameter_sets", ["is_active"], unique=False)

    op.create_table(
        "rejected_games",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("game_id", sa.BigInteger(), nullable=False),
        sa.Column("reason", sa.String(length=255), nullable=False),
        sa.Column("window_end", sa.BigInteger(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_rejected_games_game", "rejected_games", ["game_id"], unique=False)

    op.create_table(
        "rating_runs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("run_id", sa.String(length=64), nullable=False),
        sa.Column(
            "started_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("ended_at", sa.DateTime(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("window_start", sa.BigInteger(), nullable=False),
        sa.Column("window_end", sa.BigInteger(), nullable=False),
        sa.Column("summary_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("error_text", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("run_id"),
    )
    op.create_index("idx_rating_runs_started_at", "rating_runs", ["started_at"], unique=False)
    op.create_index(
        "idx_rating_runs_status_started_at",
        "rating_runs",
        ["status", "started_at"],
        unique=False,
    )

    # Aggregates
    op.create_table(
        "ranking_global",
        sa.Column("id", sa.BigInteger(), nullable=False),
        sa.Column("char_id", sa.SmallInteger(), nullable=False),
        sa.Column("global_rank", sa.Integer(), nullable=False),
        _version_column(),
        sa.PrimaryKeyConstraint("id", "char_id"),
    )
    op.create_index("idx_ranking_global_rank", "ranking_global", ["global_rank"], unique=False)

    op.create_table(
        "ranking_character",
        sa.Column("id", sa.BigInteger(), nullable=False),
        sa.Column("char_id", sa.SmallInteger(), nullable=False),
        sa.Column("character_rank", sa.Integer(), nullable=False),
        _version_column(),
        sa.PrimaryKeyConstraint("id", "char_id"),
    )
    op.create_index(
        "idx_ranking_character_rank",
        "ranking_character",
        ["char_id", "character_rank"],
        unique=False,
    )

    op.create_table(
        "player_primary_character",
        sa.Column("id", sa.BigInteger(), nullable=False),
        sa.Column("char_id", sa.SmallInteger(), nullable=False),
        _version_column(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "player_matchups",
        sa.Column("id", sa.BigInteger(), nullable=False),
        sa.Column("char_id", sa.SmallInteger(), nullable=False),
        sa.Column("opp_char_id", sa.SmallInteger(), nullable=False),
        sa.Column("wins_real", sa.Integer(), nullable=False),
        sa.Column("losses_real", sa.Integer(), nullable=False),
        sa.Column("wins_adjusted", sa.Float(), nullable=False),
        sa.Column("losses_adjusted", sa.Float(), nullable=False),
        _version_column(),
        sa.PrimaryKeyConstraint("id", "char_id", "opp_char_id"),
    )

    _create_character_matchup_table("global_matchups")
    _create_character_matchup_table("high_rated_matchups")

    op.create_table(
        "versus_matchups",
        sa.Column("char_a", sa.SmallInteger(), nullable=False),
        sa.Column("char_b", sa.SmallInteger(), nullable=False),
        sa.Column("win_rate", sa.Float(), nullable=True),
        sa.Column("game_count", sa.Integer(), nullable=False),
        sa.Column("pair_count", sa.Integer(), nullable=False),
        sa.Column("suspicious", sa.Boolean(), nullable=False),
        sa.Column("evaluation", sa.String(length=20), nullable=False),
        _version_column(),
        sa.PrimaryKeyConstraint("char_a", "char_b"),
    )

    op.create_table(
        "player_rating_distribution",
        sa.Column("bucket", sa.Integer(), nullable=False),
        sa.Column("min_rating", sa.Float(), nullable=False),
        sa.Column("max_rating", sa.Float(), nullable=False),
        sa.Column("player_count", sa.Integer(), nullable=False),
        sa.Column("player_count_cum", sa.Integer(), nullable=False),
        _version_column(),
        sa.PrimaryKeyConstraint("bucket"),
    )

    op.create_table(
        "player_floor_distribution",
        sa.Column("floor", sa.SmallInteger(), nullable=False),
        sa.Column("player_count", sa.Integer(), nullable=False),
        sa.Column("game_count", sa.Integer(), nullable=False),
        _version_column(),
        sa.PrimaryKeyConstraint("floor"),
    )

    op.create_table(
        "character_popularity_global",
        sa.Column("char_id", sa.SmallInteger(), nullable=False),
        sa.Column("popularity", sa.Float(), nullable=True),
        _version_column(),
        sa.PrimaryKeyConstraint("char_id"),
    )

    op.create_table(
        "character_popularity_rating",
        sa.Column("rating_bracket", sa.Integer(), nullable=False),
        sa.Column("char_id", sa.SmallInteger(), nullable=False),
        sa.Column("rating_min", sa.Float(), nullable=False),
        sa.Column("rating_max", sa.Float(), nullable=True),
        sa.Column("popularity", sa.Float(), nullable=True),
        sa.Column("delta", sa.Float(), nullable=True),
        _version_column(),
        sa.PrimaryKeyConstraint("rating_bracket", "char_id"),
    )

    _create_fraud_index_table("fraud_index")
    _create_fraud_index_table("fraud_index_higher_rated")
    _create_fraud_index_table("fraud_index_highest_rated")

    op.create_table(
        "outcome_calibration",
        sa.Column("bucket", sa.SmallInteger(), nullable=False),
        sa.Column("game_count", sa.Integer(), nullable=False),
        sa.Column("win_count", sa.Integer(), nullable=False),
        sa.Column("win_rate", sa.Float(), nullable=True),
        _version_column(),
        sa.PrimaryKeyConstraint("bucket"),
    )

    op.create_table(
        "daily_activity",
        sa.Column("day", sa.BigInteger(), nullable=False),
        sa.Column("player_count", sa.Integer(), nullable=False),
        _version_column(),
        sa.PrimaryKeyConstraint("day"),
    )


def downgrade() -> None:
    for table in AGGREGATE_TABLES:
        op.drop_table(table)

    op.drop_index("idx_rating_runs_status_started_at", table_name="rating_runs")
    op.drop_index("idx_rating_runs_started_at", table_name="rating_runs")
    op.drop_table("rating_runs")
    op.drop_index("idx_rejected_games_game", table_name="rejected_games")
    op.drop_table("rejected_games")
    op.drop_index("idx_rating_parameter_sets_active", table_name="rating_parameter_sets")
    op.drop_table("rating_parameter_sets")
    op.drop_table("config")
    op.drop_table("game_ratings")
    op.drop_index("idx_player_ratings_last_decay", table_name="player_ratings")
    op.drop_index("idx_player_ratings_char_value", table_name="player_ratings")
    op.drop_table("player_ratings")

    op.drop_index("idx_games_player_b", table_name="games")
    op.drop_index("idx_games_player_a", table_name="games")
    op.drop_index("idx_games_timestamp", table_name="games")
    op.drop_table("games")
    op.drop_table("player_names")
    op.drop_table("players")
