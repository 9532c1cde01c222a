"""
Team Repository.

Usage:
    repo = TeamRepository(db)
    team = repo.get_for_update(team_id)   # row-locked until commit/rollback
    standings = repo.find_by_tournament(tournament_id)
"""
from typing import Optional, List

from app.models import Team
from app.repositories.base import BaseRepository


class TeamRepository(BaseRepository[Team]):
    """Repository for team data access."""

    def __init__(self, db):
        super().__init__(Team, db)

    def get_for_update(self, team_id: str) -> Optional[Team]:
        """
        Load a team with a row lock (SELECT ... FOR UPDATE).

        The lock serializes every mutation of the team's record set and the
        recompute that follows it. SQLite ignores the clause; its writer lock
        gives the same ordering.
        """
        return (
            self.db.query(Team)
            .filter(Team.id == team_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def find_by_tournament(self, tournament_id: str) -> List[Team]:
        """Teams of a tournament in creation order (ranking is applied by the caller)."""
        return (
            self.db.query(Team)
            .filter(Team.tournament_id == tournament_id)
            .order_by(Team.created_at, Team.name)
            .all()
        )

    def find_by_name(self, tournament_id: str, name: str) -> Optional[Team]:
        return self.where_first(Team.tournament_id == tournament_id, Team.name == name)
