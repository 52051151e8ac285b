"""
Aggregation module.

Pure reductions over ratings and snapshots, plus the rebuilder that
replaces the derived tables inside a rating run:
- rankings: global and per-character leaderboards, primary character
- matchups: player, character, high-rated and versus matchup tables
- distributions: rating and floor histograms, popularity, daily activity
- anomaly: per-character rating offset index in three variants
- outcomes: expected-outcome calibration curve
"""

from ratingupdate.aggregates.inputs import RatingRow, SnapshotRow, load_ratings, load_snapshots
from ratingupdate.aggregates.rebuilder import AggregationRebuilder, RebuildResult

__all__ = [
    "RatingRow",
    "SnapshotRow",
    "load_ratings",
    "load_snapshots",
    "AggregationRebuilder",
    "RebuildResult",
]
