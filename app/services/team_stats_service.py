"""
Team aggregate recalculation.

`recalculate` is the only path that writes a team's derived stats from its
records. It always reads the complete record set and overwrites all six
fields; no caller ever adds or subtracts a delta.

Callers hold the team row lock (TeamRepository.get_for_update) from before
their record mutation until commit, and call `recalculate` inside that same
transaction, so readers only ever see a team whose stats match the records
committed alongside them.
"""
from typing import Optional

from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.core.metrics import record_recalculation, team_stats_overrides_total
from app.models import Team, utcnow
from app.repositories import MatchRecordRepository, TeamRepository
from app.services.scoring import TeamAggregate, compute_team_aggregate

logger = get_logger(__name__)


class TeamNotFoundError(LookupError):
    """Raised when a team id does not exist."""

    def __init__(self, team_id: str):
        super().__init__(f"Team not found: {team_id}")
        self.team_id = team_id


class TeamStatsService:
    """Recomputes and persists team aggregates."""

    def __init__(self, db: Session):
        self.db = db
        self.teams = TeamRepository(db)
        self.records = MatchRecordRepository(db)

    def lock_team(self, team_id: str) -> Team:
        """Lock the team row for the rest of the transaction."""
        team = self.teams.get_for_update(team_id)
        if team is None:
            raise TeamNotFoundError(team_id)
        return team

    def recalculate(self, team_id: str, trigger: str = "manual", team: Optional[Team] = None) -> TeamAggregate:
        """
        Recompute the team's six derived fields from all of its records.

        Does not commit. Pass `team` when the caller already holds the lock.

        Args:
            team_id: Team to recompute
            trigger: What caused the recompute (insert, update, delete, reset, manual)
            team: Already-locked team row

        Returns:
            The aggregate that was written
        """
        if team is None:
            team = self.lock_team(team_id)

        # Pending ORM changes must be visible to the query below
        self.db.flush()

        aggregate = compute_team_aggregate(self.records.find_by_team(team_id))
        self._apply(team, aggregate)
        self.db.flush()

        record_recalculation(trigger)
        logger.info(
            f"Recalculated team {team_id} ({trigger}): "
            f"{aggregate.total_points} pts over {aggregate.matches_played} matches",
            extra={"team_id": team_id, "trigger": trigger, **aggregate.as_dict()},
        )
        return aggregate

    def override(self, team: Team, aggregate: TeamAggregate) -> None:
        """
        Write aggregate values directly, ignoring the record set.

        The next recalculate() for this team replaces them.
        """
        self._apply(team, aggregate)
        self.db.flush()
        team_stats_overrides_total.inc()
        logger.warning(
            f"Team {team.id} stats overridden without touching match records; "
            f"the next recalculation will replace them",
            extra={"team_id": team.id, **aggregate.as_dict()},
        )

    @staticmethod
    def _apply(team: Team, aggregate: TeamAggregate) -> None:
        team.matches_played = aggregate.matches_played
        team.total_kills = aggregate.total_kills
        team.kill_points = aggregate.kill_points
        team.placement_points = aggregate.placement_points
        team.first_place_wins = aggregate.first_place_wins
        team.total_points = aggregate.total_points
        team.stats_updated_at = utcnow()
