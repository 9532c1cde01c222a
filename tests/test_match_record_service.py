"""Tests for match record mutations and the team recalculation that follows each one.

Each test follows the pattern:
- Given: a team with some records
- When: a record is created, edited, deleted or the team is reset
- Then: the record and the team's derived stats agree
"""
import pytest
from sqlalchemy.orm import Session

from app.models import AnalysisStatus, MatchRecord
from app.services.match_record_service import (
    InvalidMatchResultError,
    MatchRecordNotFoundError,
    MatchRecordService,
)
from app.services.team_stats_service import TeamNotFoundError


class TestCreateRecord:

    def test_manual_entry_scores_and_recalculates(self, db_session: Session, team_alpha):
        record = MatchRecordService(db_session).create_record(team_alpha.id, placement=1, kills=5)

        assert record.points == 15
        assert record.analysis_status == AnalysisStatus.MANUAL
        assert record.screenshot_url is None
        assert team_alpha.total_points == 15
        assert team_alpha.matches_played == 1
        assert team_alpha.first_place_wins == 1

    def test_pending_upload_has_no_points(self, db_session: Session, team_alpha):
        record = MatchRecordService(db_session).create_record(
            team_alpha.id, screenshot_url="https://cdn.test/m1.png"
        )

        assert record.points is None
        assert record.analysis_status == AnalysisStatus.PENDING
        assert team_alpha.matches_played == 1
        assert team_alpha.total_points == 0

    def test_match_numbers_auto_sequence(self, db_session: Session, team_alpha, team_bravo):
        service = MatchRecordService(db_session)

        first = service.create_record(team_alpha.id, placement=3, kills=0)
        second = service.create_record(team_alpha.id, placement=4, kills=0, match_number=0)
        other_team = service.create_record(team_bravo.id, placement=1, kills=0)

        assert first.match_number == 1
        assert second.match_number == 2
        assert other_team.match_number == 1

    def test_explicit_match_number_and_duplicates_allowed(self, db_session: Session, team_alpha):
        service = MatchRecordService(db_session)

        service.create_record(team_alpha.id, placement=2, kills=1, match_number=5)
        duplicate = service.create_record(team_alpha.id, placement=2, kills=1, match_number=5)
        next_auto = service.create_record(team_alpha.id, placement=2, kills=1)

        assert duplicate.match_number == 5
        assert next_auto.match_number == 6
        assert team_alpha.matches_played == 3
        assert team_alpha.total_points == 21

    @pytest.mark.parametrize("placement,kills", [(0, 1), (19, 1), (1, -1), (1, 51)])
    def test_rejects_invalid_values(self, db_session: Session, team_alpha, placement, kills):
        with pytest.raises(InvalidMatchResultError):
            MatchRecordService(db_session).create_record(team_alpha.id, placement=placement, kills=kills)

        assert db_session.query(MatchRecord).count() == 0

    def test_unknown_team(self, db_session: Session):
        with pytest.raises(TeamNotFoundError):
            MatchRecordService(db_session).create_record("missing-team", placement=1, kills=1)


class TestUpdateResult:

    def test_admin_edit_recomputes_points_and_team(self, db_session: Session, team_alpha):
        service = MatchRecordService(db_session)
        record = service.create_record(team_alpha.id, placement=5, kills=2)

        updated = service.update_result(record.id, placement=1, kills=7)

        assert updated.points == 17
        assert updated.analysis_status == AnalysisStatus.MANUAL
        assert team_alpha.total_points == 17
        assert team_alpha.first_place_wins == 1

    def test_partial_edit_keeps_other_value(self, db_session: Session, team_alpha):
        service = MatchRecordService(db_session)
        record = service.create_record(team_alpha.id, placement=2, kills=3)

        updated = service.update_result(record.id, kills=6)

        assert updated.placement == 2
        assert updated.points == 12
        assert team_alpha.total_kills == 6

    def test_verifying_a_flagged_upload(self, db_session: Session, team_alpha):
        service = MatchRecordService(db_session)
        record = service.create_record(team_alpha.id, screenshot_url="https://cdn.test/m1.png")
        service.mark_needs_review(record.id, "No tool call in AI response")

        updated = service.update_result(record.id, placement=3, kills=4)

        assert updated.analysis_status == AnalysisStatus.MANUAL
        assert updated.analysis_error is None
        assert updated.points == 9
        assert team_alpha.total_points == 9

    def test_unknown_record(self, db_session: Session):
        with pytest.raises(MatchRecordNotFoundError):
            MatchRecordService(db_session).update_result("missing", placement=1, kills=1)


class TestDeleteRecord:

    def test_delete_removes_exactly_that_contribution(self, db_session: Session, team_alpha):
        service = MatchRecordService(db_session)
        service.create_record(team_alpha.id, placement=1, kills=3)
        second = service.create_record(team_alpha.id, placement=2, kills=1)
        assert team_alpha.total_points == 20

        service.delete_record(second.id)

        assert team_alpha.matches_played == 1
        assert team_alpha.total_kills == 3
        assert team_alpha.kill_points == 3
        assert team_alpha.placement_points == 10
        assert team_alpha.first_place_wins == 1
        assert team_alpha.total_points == 13

    def test_unknown_record(self, db_session: Session):
        with pytest.raises(MatchRecordNotFoundError):
            MatchRecordService(db_session).delete_record("missing")


class TestResetTeamStats:

    def test_override_zeroes_stats_but_keeps_records(self, db_session: Session, team_alpha):
        service = MatchRecordService(db_session)
        service.create_record(team_alpha.id, placement=1, kills=3)

        service.reset_team_stats(team_alpha.id)

        assert team_alpha.total_points == 0
        assert team_alpha.matches_played == 0
        assert db_session.query(MatchRecord).filter_by(team_id=team_alpha.id).count() == 1

    def test_override_is_replaced_by_next_recalculation(self, db_session: Session, team_alpha):
        service = MatchRecordService(db_session)
        service.create_record(team_alpha.id, placement=1, kills=3)
        service.reset_team_stats(team_alpha.id)

        service.create_record(team_alpha.id, placement=2, kills=1)

        assert team_alpha.matches_played == 2
        assert team_alpha.total_points == 20

    def test_clear_matches_deletes_records(self, db_session: Session, team_alpha, team_bravo):
        service = MatchRecordService(db_session)
        service.create_record(team_alpha.id, placement=1, kills=3)
        service.create_record(team_alpha.id, placement=6, kills=0)
        service.create_record(team_bravo.id, placement=2, kills=2)

        aggregate = service.reset_team_stats(team_alpha.id, clear_matches=True)

        assert aggregate.matches_played == 0
        assert team_alpha.total_points == 0
        assert db_session.query(MatchRecord).filter_by(team_id=team_alpha.id).count() == 0
        assert db_session.query(MatchRecord).filter_by(team_id=team_bravo.id).count() == 1

        # Stays consistent after the next recompute
        service.recalculate_team(team_alpha.id)
        assert team_alpha.total_points == 0


class TestListRecords:

    def test_ordered_by_match_number(self, db_session: Session, team_alpha, make_record):
        make_record(team_alpha, placement=3, kills=0, match_number=2)
        make_record(team_alpha, placement=1, kills=0, match_number=1)
        make_record(team_alpha, placement=5, kills=0, match_number=3)

        records = MatchRecordService(db_session).list_records(team_alpha.id)

        assert [r.match_number for r in records] == [1, 2, 3]

    def test_unknown_team(self, db_session: Session):
        with pytest.raises(TeamNotFoundError):
            MatchRecordService(db_session).list_records("missing-team")
