"""
PUBG scoring rules.

Single source of truth for per-match points, team aggregates and standings
order. Everything here is pure: the points preview endpoint, record
persistence and the team recompute all call these functions, so a preview
can never disagree with what gets stored.

Scoring:
    points = PLACEMENT_POINTS.get(placement, 0) + kills * KILL_POINTS

Usage:
    from app.services.scoring import record_points, compute_team_aggregate

    record_points(1, 5)                 # 15
    compute_team_aggregate(records)     # TeamAggregate(...)
"""
from dataclasses import dataclass, asdict
from functools import cmp_to_key
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple, TypeVar

# Placement rank -> points. Anything not listed (9th and below, or an
# out-of-range value) scores 0.
PLACEMENT_POINTS: Dict[int, int] = {
    1: 10,
    2: 6,
    3: 5,
    4: 4,
    5: 3,
    6: 2,
    7: 1,
    8: 1,
}

# Points per kill
KILL_POINTS = 1

MIN_PLACEMENT = 1
MAX_PLACEMENT = 18
MAX_KILLS = 50


class ScoredMatch(Protocol):
    placement: Optional[int]
    kills: Optional[int]


class RankableTeam(Protocol):
    total_points: int
    total_kills: int


@dataclass(frozen=True)
class TeamAggregate:
    """The six derived team fields."""
    matches_played: int = 0
    total_kills: int = 0
    kill_points: int = 0
    placement_points: int = 0
    first_place_wins: int = 0
    total_points: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


def placement_points(placement: Optional[int]) -> int:
    """Points for a placement; total over all integers (and None)."""
    if placement is None or isinstance(placement, bool):
        return 0
    return PLACEMENT_POINTS.get(placement, 0)


def kill_points(kills: Optional[int]) -> int:
    if kills is None:
        return 0
    return kills * KILL_POINTS


def record_points(placement: Optional[int], kills: Optional[int]) -> Optional[int]:
    """
    Points for one match, or None while placement or kills is unknown.

    Examples:
        record_points(1, 5) == 15
        record_points(9, 3) == 3
        record_points(1, None) is None
    """
    if placement is None or kills is None:
        return None
    return placement_points(placement) + kill_points(kills)


def compute_team_aggregate(records: Iterable[ScoredMatch]) -> TeamAggregate:
    """
    Recompute a team's derived stats from its full record set.

    Every record counts towards matches_played, including ones still
    awaiting analysis; null placement/kills contribute 0 elsewhere.
    """
    matches_played = 0
    total_kills = 0
    placement_total = 0
    first_place_wins = 0

    for record in records:
        matches_played += 1
        total_kills += record.kills or 0
        placement_total += placement_points(record.placement)
        if record.placement == 1:
            first_place_wins += 1

    total_kill_points = total_kills * KILL_POINTS
    return TeamAggregate(
        matches_played=matches_played,
        total_kills=total_kills,
        kill_points=total_kill_points,
        placement_points=placement_total,
        first_place_wins=first_place_wins,
        total_points=placement_total + total_kill_points,
    )


def validate_result(placement: Optional[int], kills: Optional[int]) -> Tuple[Optional[int], Optional[int]]:
    """
    Check manually supplied placement/kills against the accepted ranges.

    Raises:
        ValueError: if a value is present but not an integer in range
    """
    if placement is not None:
        if isinstance(placement, bool) or not isinstance(placement, int):
            raise ValueError("placement must be an integer")
        if not MIN_PLACEMENT <= placement <= MAX_PLACEMENT:
            raise ValueError(f"placement must be between {MIN_PLACEMENT} and {MAX_PLACEMENT}")
    if kills is not None:
        if isinstance(kills, bool) or not isinstance(kills, int):
            raise ValueError("kills must be an integer")
        if not 0 <= kills <= MAX_KILLS:
            raise ValueError(f"kills must be between 0 and {MAX_KILLS}")
    return placement, kills


def compare_teams(a: RankableTeam, b: RankableTeam) -> int:
    """Standings comparator: more points first, then more kills."""
    if a.total_points != b.total_points:
        return -1 if a.total_points > b.total_points else 1
    if a.total_kills != b.total_kills:
        return -1 if a.total_kills > b.total_kills else 1
    return 0


T = TypeVar("T", bound=RankableTeam)


def sort_teams(teams: Sequence[T]) -> List[T]:
    """Stable sort by compare_teams."""
    return sorted(teams, key=cmp_to_key(compare_teams))


def rank_teams(teams: Sequence[T]) -> List[Tuple[int, T]]:
    """Sorted teams paired with 1-based positions."""
    return [(position, team) for position, team in enumerate(sort_teams(teams), start=1)]


def preview(placement: Optional[int], kills: Optional[int]) -> Dict[str, Any]:
    """Breakdown shown before a manual entry is saved."""
    return {
        "placement": placement,
        "kills": kills,
        "placement_points": placement_points(placement),
        "kill_points": kill_points(kills),
        "points": record_points(placement, kills),
    }
