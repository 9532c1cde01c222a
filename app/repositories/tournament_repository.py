"""
Tournament Repository.
"""
from typing import List

from app.models import Tournament
from app.repositories.base import BaseRepository


class TournamentRepository(BaseRepository[Tournament]):
    """Repository for tournament data access."""

    def __init__(self, db):
        super().__init__(Tournament, db)

    def find_recent(self) -> List[Tournament]:
        """Tournaments, newest first."""
        return self.find_all(order_by="-created_at")
