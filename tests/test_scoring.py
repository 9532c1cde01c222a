"""Unit tests for the scoring rules.

Test Strategy:
1. Placement table is exact and total (any integer, None)
2. Record points combine placement points and kills
3. Team aggregate is a pure function of the record set
4. Standings order by points, then kills, stably
"""
from dataclasses import dataclass
from typing import Optional

import pytest

from app.services.scoring import (
    KILL_POINTS,
    PLACEMENT_POINTS,
    TeamAggregate,
    compare_teams,
    compute_team_aggregate,
    kill_points,
    placement_points,
    preview,
    rank_teams,
    record_points,
    sort_teams,
    validate_result,
)


@dataclass
class Match:
    placement: Optional[int] = None
    kills: Optional[int] = None


@dataclass
class Standing:
    name: str
    total_points: int
    total_kills: int


class TestPlacementPoints:
    """Placement -> points table."""

    @pytest.mark.parametrize("placement,expected", [
        (1, 10), (2, 6), (3, 5), (4, 4), (5, 3), (6, 2), (7, 1), (8, 1),
    ])
    def test_scoring_positions(self, placement, expected):
        assert placement_points(placement) == expected

    @pytest.mark.parametrize("placement", [9, 10, 17, 18, 0, -1, 100])
    def test_everything_else_scores_zero(self, placement):
        assert placement_points(placement) == 0

    def test_none_scores_zero(self):
        assert placement_points(None) == 0

    def test_matches_table_for_wide_range(self):
        for p in range(-50, 51):
            assert placement_points(p) == PLACEMENT_POINTS.get(p, 0)


class TestRecordPoints:

    def test_kill_multiplier_is_one(self):
        assert KILL_POINTS == 1
        assert kill_points(7) == 7
        assert kill_points(None) == 0

    @pytest.mark.parametrize("placement,kills,expected", [
        (1, 5, 15),
        (9, 3, 3),
        (1, 0, 10),
        (8, 2, 3),
        (18, 0, 0),
    ])
    def test_points_formula(self, placement, kills, expected):
        assert record_points(placement, kills) == expected

    def test_unknown_values_give_no_points(self):
        assert record_points(None, 4) is None
        assert record_points(2, None) is None
        assert record_points(None, None) is None


class TestComputeTeamAggregate:
    """Full-replace aggregation over a team's records."""

    def test_two_record_example(self):
        aggregate = compute_team_aggregate([Match(1, 3), Match(2, 1)])

        assert aggregate == TeamAggregate(
            matches_played=2,
            total_kills=4,
            kill_points=4,
            placement_points=16,
            first_place_wins=1,
            total_points=20,
        )

    def test_removing_a_record_removes_exactly_its_contribution(self):
        aggregate = compute_team_aggregate([Match(1, 3)])

        assert aggregate == TeamAggregate(
            matches_played=1,
            total_kills=3,
            kill_points=3,
            placement_points=10,
            first_place_wins=1,
            total_points=13,
        )

    def test_null_values_only_count_as_played(self):
        aggregate = compute_team_aggregate([Match(None, None), Match(3, None), Match(None, 2)])

        assert aggregate.matches_played == 3
        assert aggregate.total_kills == 2
        assert aggregate.kill_points == 2
        assert aggregate.placement_points == 5
        assert aggregate.first_place_wins == 0
        assert aggregate.total_points == 7

    def test_empty_record_set_is_all_zero(self):
        assert compute_team_aggregate([]) == TeamAggregate()

    def test_is_idempotent(self):
        records = [Match(1, 6), Match(4, 2), Match(12, 0)]
        assert compute_team_aggregate(records) == compute_team_aggregate(records)

    def test_total_is_sum_of_parts(self):
        aggregate = compute_team_aggregate([Match(2, 5), Match(7, 1), Match(1, 9)])
        assert aggregate.total_points == aggregate.placement_points + aggregate.kill_points

    def test_counts_chicken_dinners(self):
        aggregate = compute_team_aggregate([Match(1, 0), Match(1, 2), Match(2, 0)])
        assert aggregate.first_place_wins == 2


class TestRanking:

    def test_points_then_kills(self):
        a = Standing("A", total_points=20, total_kills=10)
        b = Standing("B", total_points=20, total_kills=15)
        c = Standing("C", total_points=25, total_kills=0)

        assert [t.name for t in sort_teams([a, b, c])] == ["C", "B", "A"]

    def test_full_ties_keep_input_order(self):
        first = Standing("first", total_points=10, total_kills=3)
        second = Standing("second", total_points=10, total_kills=3)

        assert compare_teams(first, second) == 0
        assert [t.name for t in sort_teams([first, second])] == ["first", "second"]

    def test_rank_teams_is_one_based(self):
        ranked = rank_teams([
            Standing("low", total_points=1, total_kills=0),
            Standing("high", total_points=30, total_kills=12),
        ])

        assert [(rank, team.name) for rank, team in ranked] == [(1, "high"), (2, "low")]


class TestValidationAndPreview:

    def test_rejects_out_of_range_values(self):
        with pytest.raises(ValueError):
            validate_result(0, 1)
        with pytest.raises(ValueError):
            validate_result(19, 1)
        with pytest.raises(ValueError):
            validate_result(1, -1)
        with pytest.raises(ValueError):
            validate_result(1, 51)

    def test_accepts_boundaries_and_missing_values(self):
        assert validate_result(1, 0) == (1, 0)
        assert validate_result(18, 50) == (18, 50)
        assert validate_result(None, None) == (None, None)

    def test_preview_matches_stored_points(self):
        result = preview(2, 4)

        assert result == {
            "placement": 2,
            "kills": 4,
            "placement_points": 6,
            "kill_points": 4,
            "points": record_points(2, 4),
        }
