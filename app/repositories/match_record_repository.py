"""
Match Record Repository.

Usage:
    repo = MatchRecordRepository(db)
    records = repo.find_by_team(team_id)
    next_number = repo.next_match_number(team_id)
"""
from typing import List

from sqlalchemy import func

from app.models import MatchRecord
from app.repositories.base import BaseRepository


class MatchRecordRepository(BaseRepository[MatchRecord]):
    """Repository for match record data access."""

    def __init__(self, db):
        super().__init__(MatchRecord, db)

    def find_by_team(self, team_id: str) -> List[MatchRecord]:
        """All records of a team ordered by match number, then creation time."""
        return (
            self.db.query(MatchRecord)
            .filter(MatchRecord.team_id == team_id)
            .order_by(
                MatchRecord.match_number.is_(None),
                MatchRecord.match_number,
                MatchRecord.created_at,
            )
            .all()
        )

    def count_by_team(self, team_id: str) -> int:
        return self.count(MatchRecord.team_id == team_id)

    def next_match_number(self, team_id: str) -> int:
        """max(match_number) + 1 for the team; call while holding the team lock."""
        current = (
            self.db.query(func.max(MatchRecord.match_number))
            .filter(MatchRecord.team_id == team_id)
            .scalar()
        )
        return (current or 0) + 1

    def delete_by_team(self, team_id: str) -> int:
        """Delete every record of a team; returns the number removed."""
        return (
            self.db.query(MatchRecord)
            .filter(MatchRecord.team_id == team_id)
            .delete(synchronize_session="fetch")
        )
