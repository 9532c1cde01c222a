"""
Tournaments, teams and standings.
"""
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.models import Team, Tournament
from app.repositories import TeamRepository, TournamentRepository
from app.services.scoring import rank_teams

logger = get_logger(__name__)


class TournamentNotFoundError(LookupError):
    def __init__(self, tournament_id: str):
        super().__init__(f"Tournament not found: {tournament_id}")
        self.tournament_id = tournament_id


class DuplicateTeamError(ValueError):
    def __init__(self, name: str):
        super().__init__(f"A team named {name!r} already exists in this tournament")
        self.name = name


class TournamentService:
    def __init__(self, db: Session):
        self.db = db
        self.tournaments = TournamentRepository(db)
        self.teams = TeamRepository(db)

    def create_tournament(self, name: str, description: Optional[str] = None, total_matches: int = 6) -> Tournament:
        name = (name or "").strip()
        if not name:
            raise ValueError("Tournament name is required")
        if total_matches < 1:
            raise ValueError("total_matches must be at least 1")

        tournament = self.tournaments.create(name=name, description=description, total_matches=total_matches)
        self.tournaments.save()
        self.tournaments.refresh(tournament)
        logger.info(f"Created tournament {tournament.id} ({name})")
        return tournament

    def list_tournaments(self) -> List[Tournament]:
        return self.tournaments.find_recent()

    def get_tournament(self, tournament_id: str) -> Tournament:
        tournament = self.tournaments.find_by_id(tournament_id)
        if tournament is None:
            raise TournamentNotFoundError(tournament_id)
        return tournament

    def create_team(self, tournament_id: str, name: str, logo_url: Optional[str] = None) -> Team:
        """New teams start with zeroed aggregates, which is the aggregate of no records."""
        self.get_tournament(tournament_id)
        name = (name or "").strip()
        if not name:
            raise ValueError("Team name is required")
        if self.teams.find_by_name(tournament_id, name) is not None:
            raise DuplicateTeamError(name)

        team = self.teams.create(tournament_id=tournament_id, name=name, logo_url=logo_url)
        self.teams.save()
        self.teams.refresh(team)
        logger.info(f"Created team {team.id} ({name}) in tournament {tournament_id}")
        return team

    def standings(self, tournament_id: str) -> List[Tuple[int, Team]]:
        """Teams ranked by points, then kills."""
        self.get_tournament(tournament_id)
        return rank_teams(self.teams.find_by_tournament(tournament_id))
