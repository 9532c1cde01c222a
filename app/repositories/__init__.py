"""
Repository layer for data access.

Usage:
    from app.repositories import TeamRepository, MatchRecordRepository
    from app.core.database import SessionLocal

    db = SessionLocal()
    team_repo = TeamRepository(db)
    team = team_repo.get_for_update(team_id)
    db.close()
"""

from app.repositories.base import BaseRepository
from app.repositories.match_record_repository import MatchRecordRepository
from app.repositories.team_repository import TeamRepository
from app.repositories.tournament_repository import TournamentRepository

__all__ = [
    "BaseRepository",
    "MatchRecordRepository",
    "TeamRepository",
    "TournamentRepository",
]
