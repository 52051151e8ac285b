"""
Database module for the rating engine.

Provides SQLAlchemy ORM models and session management.

Usage:
    from ratingupdate.db import get_session, PlayerRating

    with get_session() as session:
        ratings = session.query(PlayerRating).all()
"""

from ratingupdate.db.models import (
    Base,
    CharacterPopularityGlobal,
    CharacterPopularityRating,
    DailyActivity,
    EngineConfig,
    FloorDistribution,
    FraudIndex,
    FraudIndexHigherRated,
    FraudIndexHighestRated,
    Game,
    GameRating,
    GlobalMatchup,
    HighRatedMatchup,
    OutcomeCalibration,
    Player,
    PlayerMatchup,
    PlayerName,
    PlayerPrimaryCharacter,
    PlayerRating,
    RankingCharacter,
    RankingGlobal,
    RatingDistribution,
    RatingParameterSet,
    RatingRun,
    RejectedGame,
    VersusMatchup,
)
from ratingupdate.db.session import SessionLocal, get_engine, get_session, new_session

__all__ = [
    # Base
    "Base",
    # Inputs
    "Player",
    "PlayerName",
    "Game",
    # Engine state
    "PlayerRating",
    "GameRating",
    "EngineConfig",
    "RatingParameterSet",
    "RejectedGame",
    "RatingRun",
    # Aggregates
    "RankingGlobal",
    "RankingCharacter",
    "PlayerPrimaryCharacter",
    "PlayerMatchup",
    "GlobalMatchup",
    "HighRatedMatchup",
    "VersusMatchup",
    "RatingDistribution",
    "FloorDistribution",
    "CharacterPopularityGlobal",
    "CharacterPopularityRating",
    "FraudIndex",
    "FraudIndexHigherRated",
    "FraudIndexHighestRated",
    "OutcomeCalibration",
    "DailyActivity",
    # Session
    "get_session",
    "get_engine",
    "new_session",
    "SessionLocal",
]
