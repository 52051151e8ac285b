"""
Aggregation rebuilder: recomputes every derived table from ratings + snapshots.

Each table is replaced wholesale (DELETE then bulk INSERT) inside the run's
transaction, so readers see either the previous run's tables or this run's,
never a mix. Every row is stamped with the run's version (the period_end the
run commits), which makes the output a pure function of the inputs: running
the rebuild twice on the same state produces identical tables.

Nothing here writes player_ratings or game_ratings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy import delete, insert
from sqlalchemy.orm import Session

from ratingupdate.aggregates.anomaly import anomaly_index
from ratingupdate.aggregates.distributions import (
    BracketPopularityRow,
    PopularityRow,
    character_popularity,
    daily_activity,
    floor_distribution,
    rating_histogram,
)
from ratingupdate.aggregates.inputs import RatingRow, SnapshotRow, load_ratings, load_snapshots, recent
from ratingupdate.aggregates.matchups import (
    CharacterMatchupRow,
    character_matchups,
    high_rated,
    player_matchups,
    versus_matchups,
)
from ratingupdate.aggregates.outcomes import outcome_calibration
from ratingupdate.aggregates.rankings import character_ranking, global_ranking, primary_characters
from ratingupdate.config import Settings, settings as default_settings
from ratingupdate.db.models import (
    Base,
    CharacterPopularityGlobal,
    CharacterPopularityRating,
    DailyActivity,
    FloorDistribution,
    FraudIndex,
    FraudIndexHigherRated,
    FraudIndexHighestRated,
    GlobalMatchup,
    HighRatedMatchup,
    OutcomeCalibration,
    PlayerMatchup,
    PlayerPrimaryCharacter,
    RankingCharacter,
    RankingGlobal,
    RatingDistribution,
    VersusMatchup,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AggregateInputs:
    """Everything the reductions read, loaded once per rebuild."""
    ratings: list[RatingRow]
    snapshots: list[SnapshotRow]
    recent_snapshots: list[SnapshotRow]
    primaries: dict[int, int]
    popularity: tuple[list[PopularityRow], list[BracketPopularityRow]]
    period_end: int


@dataclass
class RebuildResult:
    """Row counts written per aggregate table."""
    version: int = 0
    tables: dict[str, int] = field(default_factory=dict)

    def summary(self) -> str:
        lines = [f"Aggregate rebuild complete (version={self.version}):"]
        for table, count in self.tables.items():
            lines.append(f"  {table:<30} {count}")
        return "\n".join(lines)


TableBuilder = Callable[[AggregateInputs], list[dict]]


class AggregationRebuilder:
    """
    Replaces every aggregate table from the current rating state.

    Usage:

        rebuilder = AggregationRebuilder(settings)
        result = rebuilder.run(session, period_end)
        session.commit()
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or default_settings

    def run(self, session: Session, period_end: int) -> RebuildResult:
        """
        Rebuild all aggregate tables as of period_end.

        Args:
            session: Active SQLAlchemy session. Caller is responsible for commit.
            period_end: The boundary the current run commits; also the row version.
        """
        ratings = load_ratings(session)
        snapshots = load_snapshots(session, period_end)
        recent_snapshots = recent(snapshots, period_end - self.settings.analytics_window_seconds)
        inputs = AggregateInputs(
            ratings=ratings,
            snapshots=snapshots,
            recent_snapshots=recent_snapshots,
            primaries=primary_characters(ratings),
            popularity=self._popularity(recent_snapshots),
            period_end=period_end,
        )

        result = RebuildResult(version=period_end)
        for model, build in self._builders():
            rows = build(inputs)
            self._replace(session, model, rows, period_end)
            result.tables[model.__tablename__] = len(rows)

        logger.info(result.summary())
        return result

    def _builders(self) -> list[tuple[type[Base], TableBuilder]]:
        return [
            (RankingGlobal, self._ranking_global),
            (RankingCharacter, self._ranking_character),
            (PlayerPrimaryCharacter, self._primary_character),
            (PlayerMatchup, self._player_matchups),
            (GlobalMatchup, self._global_matchups),
            (HighRatedMatchup, self._high_rated_matchups),
            (VersusMatchup, self._versus_matchups),
            (RatingDistribution, self._rating_distribution),
            (FloorDistribution, self._floor_distribution),
            (CharacterPopularityGlobal, self._popularity_global),
            (CharacterPopularityRating, self._popularity_rating),
            (FraudIndex, self._fraud(None)),
            (FraudIndexHigherRated, self._fraud(self.settings.anomaly_higher_rated_min)),
            (FraudIndexHighestRated, self._fraud(self.settings.anomaly_highest_rated_min)),
            (OutcomeCalibration, self._outcome_calibration),
            (DailyActivity, self._daily_activity),
        ]

    @staticmethod
    def _replace(session: Session, model: type[Base], rows: list[dict], version: int) -> None:
        session.execute(delete(model))
        if rows:
            session.execute(insert(model), [{**row, "version": version} for row in rows])

    # ------------------------------------------------------------------
    # Table builders
    # ------------------------------------------------------------------

    def _ranking_global(self, inputs: AggregateInputs) -> list[dict]:
        return [
            {"id": e.id, "char_id": e.char_id, "global_rank": e.rank}
            for e in global_ranking(inputs.ratings, self.settings.low_deviation)
        ]

    def _ranking_character(self, inputs: AggregateInputs) -> list[dict]:
        return [
            {"id": e.id, "char_id": e.char_id, "character_rank": e.rank}
            for e in character_ranking(inputs.ratings, self.settings.low_deviation)
        ]

    def _primary_character(self, inputs: AggregateInputs) -> list[dict]:
        return [
            {"id": player_id, "char_id": char_id}
            for player_id, char_id in sorted(inputs.primaries.items())
        ]

    def _player_matchups(self, inputs: AggregateInputs) -> list[dict]:
        return [
            {
                "id": player_id,
                "char_id": char_id,
                "opp_char_id": opp_char_id,
                "wins_real": tally.wins_real,
                "losses_real": tally.losses_real,
                "wins_adjusted": tally.wins_adjusted,
                "losses_adjusted": tally.losses_adjusted,
            }
            for (player_id, char_id, opp_char_id), tally in player_matchups(inputs.snapshots).items()
        ]

    @staticmethod
    def _character_rows(rows: list[CharacterMatchupRow]) -> list[dict]:
        return [row._asdict() for row in rows]

    def _global_matchups(self, inputs: AggregateInputs) -> list[dict]:
        s = self.settings
        return self._character_rows(
            character_matchups(inputs.snapshots, s.character_count, s.matchup_min_games)
        )

    def _high_rated_matchups(self, inputs: AggregateInputs) -> list[dict]:
        s = self.settings
        subset = high_rated(inputs.snapshots, s.high_rated_min_rating, s.low_deviation)
        return self._character_rows(
            character_matchups(subset, s.character_count, s.matchup_min_games)
        )

    def _versus_matchups(self, inputs: AggregateInputs) -> list[dict]:
        s = self.settings
        return [
            row._asdict()
            for row in versus_matchups(
                inputs.recent_snapshots, s.character_count, s.versus_min_pairs, s.versus_min_games
            )
        ]

    def _rating_distribution(self, inputs: AggregateInputs) -> list[dict]:
        return [
            bucket._asdict()
            for bucket in rating_histogram(
                inputs.ratings,
                inputs.primaries,
                self.settings.low_deviation,
                self.settings.rating_histogram_width,
            )
        ]

    def _floor_distribution(self, inputs: AggregateInputs) -> list[dict]:
        return [row._asdict() for row in floor_distribution(inputs.snapshots)]

    def _popularity(
        self, recent_snapshots: list[SnapshotRow]
    ) -> tuple[list[PopularityRow], list[BracketPopularityRow]]:
        s = self.settings
        return character_popularity(
            recent_snapshots,
            s.character_count,
            s.popularity_bracket_start,
            s.popularity_bracket_width,
            s.popularity_bracket_count,
        )

    def _popularity_global(self, inputs: AggregateInputs) -> list[dict]:
        global_rows, _ = inputs.popularity
        return [row._asdict() for row in global_rows]

    def _popularity_rating(self, inputs: AggregateInputs) -> list[dict]:
        _, bracket_rows = inputs.popularity
        return [row._asdict() for row in bracket_rows]

    def _fraud(self, min_other_rating: float | None) -> TableBuilder:
        def build(inputs: AggregateInputs) -> list[dict]:
            rows = anomaly_index(inputs.ratings, self.settings.low_deviation, min_other_rating)
            return [row._asdict() for row in rows]
        return build

    def _outcome_calibration(self, inputs: AggregateInputs) -> list[dict]:
        return [
            row._asdict()
            for row in outcome_calibration(inputs.snapshots, self.settings.low_deviation)
        ]

    def _daily_activity(self, inputs: AggregateInputs) -> list[dict]:
        return [
            row._asdict()
            for row in daily_activity(inputs.snapshots, inputs.period_end, self.settings.activity_days)
        ]
