"""
Match record mutations.

Every mutation follows the same shape:

    lock team row -> mutate records -> recalculate team -> commit

and rolls back as a whole on any error, so a record change never commits
without the team aggregate that reflects it.
"""
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.models import AnalysisStatus, MatchRecord
from app.repositories import MatchRecordRepository
from app.services.scoring import TeamAggregate, record_points, validate_result
from app.services.team_stats_service import TeamNotFoundError, TeamStatsService

logger = get_logger(__name__)


class MatchRecordNotFoundError(LookupError):
    """Raised when a match record id does not exist (or belongs to another team)."""

    def __init__(self, record_id: str):
        super().__init__(f"Match record not found: {record_id}")
        self.record_id = record_id


class InvalidMatchResultError(ValueError):
    """Raised for out-of-range placement, kills or match number."""
    pass


class MatchRecordService:
    """Create, edit, delete and reset match records with team recalculation."""

    def __init__(self, db: Session):
        self.db = db
        self.records = MatchRecordRepository(db)
        self.stats = TeamStatsService(db)

    # ========================================================================
    # Reads
    # ========================================================================

    def get_record(self, record_id: str, team_id: Optional[str] = None) -> MatchRecord:
        record = self.records.find_by_id(record_id)
        if record is None or (team_id is not None and record.team_id != team_id):
            raise MatchRecordNotFoundError(record_id)
        return record

    def list_records(self, team_id: str) -> List[MatchRecord]:
        """A team's records ordered by match number, then creation time."""
        if self.stats.teams.find_by_id(team_id) is None:
            raise TeamNotFoundError(team_id)
        return self.records.find_by_team(team_id)

    def count_records(self, team_id: str) -> int:
        return self.records.count_by_team(team_id)

    # ========================================================================
    # Mutations
    # ========================================================================

    def create_record(
        self,
        team_id: str,
        match_number: Optional[int] = None,
        placement: Optional[int] = None,
        kills: Optional[int] = None,
        screenshot_url: Optional[str] = None,
    ) -> MatchRecord:
        """
        Insert a record and recalculate the team.

        A missing (or 0) match number is assigned as max+1 for the team while
        the team lock is held. Records with both values set are stored as
        manual entries; anything else waits for analysis.
        """
        self._validate(placement, kills)
        if match_number is not None and match_number < 0:
            raise InvalidMatchResultError("match_number must be positive")

        try:
            team = self.stats.lock_team(team_id)

            if not match_number:
                match_number = self.records.next_match_number(team_id)

            points = record_points(placement, kills)
            record = self.records.create(
                team_id=team_id,
                match_number=match_number,
                placement=placement,
                kills=kills,
                points=points,
                screenshot_url=screenshot_url,
                analysis_status=AnalysisStatus.MANUAL if points is not None else AnalysisStatus.PENDING,
            )

            self.stats.recalculate(team_id, trigger="insert", team=team)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(record)
        logger.info(
            f"Created match record {record.id} for team {team_id} (match {match_number}, points={points})"
        )
        return record

    def update_result(
        self,
        record_id: str,
        placement: Optional[int] = None,
        kills: Optional[int] = None,
    ) -> MatchRecord:
        """
        Admin edit/verification of placement and kills.

        Only the given fields are overwritten; points are recomputed from the
        resulting pair and the record is marked manual once both are known.
        """
        self._validate(placement, kills)
        record = self.get_record(record_id)

        try:
            team = self.stats.lock_team(record.team_id)
            # Current values as of the lock
            self.db.refresh(record)

            new_placement = placement if placement is not None else record.placement
            new_kills = kills if kills is not None else record.kills
            points = record_points(new_placement, new_kills)

            changes = {"placement": new_placement, "kills": new_kills, "points": points}
            if points is not None:
                changes["analysis_status"] = AnalysisStatus.MANUAL
                changes["analysis_error"] = None
            self.records.update(record, **changes)

            self.stats.recalculate(record.team_id, trigger="update", team=team)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(record)
        logger.info(f"Updated match record {record_id}: placement={new_placement} kills={new_kills} points={points}")
        return record

    def apply_extraction(self, record_id: str, team_id: str, placement: int, kills: int) -> MatchRecord:
        """Persist a validated AI extraction and recalculate the team in one transaction."""
        record = self.get_record(record_id, team_id=team_id)

        try:
            team = self.stats.lock_team(team_id)
            self.records.update(
                record,
                placement=placement,
                kills=kills,
                points=record_points(placement, kills),
                analysis_status=AnalysisStatus.ANALYZED,
                analysis_error=None,
            )
            self.stats.recalculate(team_id, trigger="update", team=team)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(record)
        return record

    def mark_needs_review(self, record_id: str, error: str) -> None:
        """
        Flag a record whose extraction failed.

        placement/kills/points are left untouched, so the team aggregate does
        not change and no recompute is needed.
        """
        record = self.records.find_by_id(record_id)
        if record is None:
            return
        try:
            self.records.update(record, analysis_status=AnalysisStatus.NEEDS_REVIEW, analysis_error=error[:1000])
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.warning(f"Match record {record_id} flagged for manual review: {error}")

    def delete_record(self, record_id: str) -> str:
        """Delete a record and recalculate its team; returns the team id."""
        record = self.get_record(record_id)
        team_id = record.team_id

        try:
            team = self.stats.lock_team(team_id)
            self.records.delete(record)
            self.stats.recalculate(team_id, trigger="delete", team=team)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Deleted match record {record_id} from team {team_id}")
        return team_id

    def reset_team_stats(self, team_id: str, clear_matches: bool = False) -> TeamAggregate:
        """
        Admin reset of a team's stats.

        clear_matches=False zeroes the six aggregate fields and leaves the
        records alone. That is an override: the next record mutation
        recomputes from the records and the old totals come back.

        clear_matches=True deletes the team's records and recalculates, which
        leaves stats and records consistent.
        """
        try:
            team = self.stats.lock_team(team_id)
            if clear_matches:
                removed = self.records.delete_by_team(team_id)
                aggregate = self.stats.recalculate(team_id, trigger="reset", team=team)
                logger.info(f"Reset team {team_id}: deleted {removed} match records")
            else:
                aggregate = TeamAggregate()
                self.stats.override(team, aggregate)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        return aggregate

    def recalculate_team(self, team_id: str) -> TeamAggregate:
        """Explicit admin recompute."""
        try:
            aggregate = self.stats.recalculate(team_id, trigger="manual")
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return aggregate

    @staticmethod
    def _validate(placement: Optional[int], kills: Optional[int]) -> None:
        try:
            validate_result(placement, kills)
        except ValueError as e:
            raise InvalidMatchResultError(str(e)) from e
