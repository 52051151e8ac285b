"""
ratingupdate - periodic rating engine for a two-player fighting game

Rates every (player, character) pair with Glicko-2 once per rating period
and rebuilds the leaderboard and analytics tables from the result.

Main components:
- rating: Glicko-2 math, decay, watermarks and the batch period updater
- aggregates: rankings, matchups, distributions and anomaly tables
- tasks: period scheduler, run stages and advisory locks
- db: SQLAlchemy models and session management
"""

__version__ = "0.1.0"
