"""Tests for TeamStatsService recalculation against a real (SQLite) session."""
import pytest
from sqlalchemy.orm import Session

from app.models import Team
from app.services.team_stats_service import TeamNotFoundError, TeamStatsService


def _stats(team: Team) -> dict:
    return {
        "matches_played": team.matches_played,
        "total_kills": team.total_kills,
        "kill_points": team.kill_points,
        "placement_points": team.placement_points,
        "first_place_wins": team.first_place_wins,
        "total_points": team.total_points,
    }


class TestRecalculate:

    def test_writes_aggregate_from_records(self, db_session: Session, team_alpha, make_record):
        make_record(team_alpha, placement=1, kills=3, match_number=1)
        make_record(team_alpha, placement=2, kills=1, match_number=2)

        TeamStatsService(db_session).recalculate(team_alpha.id)
        db_session.commit()

        assert _stats(team_alpha) == {
            "matches_played": 2,
            "total_kills": 4,
            "kill_points": 4,
            "placement_points": 16,
            "first_place_wins": 1,
            "total_points": 20,
        }
        assert team_alpha.stats_updated_at is not None

    def test_recalculating_twice_gives_same_values(self, db_session: Session, team_alpha, make_record):
        make_record(team_alpha, placement=4, kills=6)
        make_record(team_alpha, placement=11, kills=2)
        service = TeamStatsService(db_session)

        first = service.recalculate(team_alpha.id)
        db_session.commit()
        second = service.recalculate(team_alpha.id)
        db_session.commit()

        assert first == second
        assert team_alpha.total_points == 4 + 6 + 0 + 2

    def test_replaces_stale_values_instead_of_adding(self, db_session: Session, team_alpha, make_record):
        team_alpha.total_points = 999
        team_alpha.matches_played = 42
        db_session.commit()
        make_record(team_alpha, placement=3, kills=2)

        TeamStatsService(db_session).recalculate(team_alpha.id)
        db_session.commit()

        assert team_alpha.total_points == 7
        assert team_alpha.matches_played == 1

    def test_only_counts_own_records(self, db_session: Session, team_alpha, team_bravo, make_record):
        make_record(team_alpha, placement=1, kills=5)
        make_record(team_bravo, placement=2, kills=8)

        TeamStatsService(db_session).recalculate(team_alpha.id)
        db_session.commit()

        assert team_alpha.total_kills == 5
        assert team_alpha.total_points == 15

    def test_pending_records_count_as_played_only(self, db_session: Session, team_alpha, make_record):
        make_record(team_alpha, screenshot_url="https://cdn.test/a.png")
        make_record(team_alpha, placement=5, kills=1)

        aggregate = TeamStatsService(db_session).recalculate(team_alpha.id)
        db_session.commit()

        assert aggregate.matches_played == 2
        assert aggregate.total_points == 4

    def test_unknown_team(self, db_session: Session):
        with pytest.raises(TeamNotFoundError):
            TeamStatsService(db_session).recalculate("missing-team")
