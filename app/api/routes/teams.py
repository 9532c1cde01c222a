"""
Team API routes: team detail plus admin stats maintenance.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.errors import to_http_exception
from app.core.auth import Identity, require_admin
from app.core.database import get_db
from app.core.rate_limit import GENERAL_LIMIT, limiter
from app.models import Team
from app.repositories import TeamRepository
from app.services.match_record_service import MatchRecordService
from app.services.scoring import TeamAggregate
from app.services.team_stats_service import TeamNotFoundError

router = APIRouter(prefix="/teams", tags=["teams"])


class TeamResponse(BaseModel):
    """Team with its derived scoring fields."""
    id: str
    name: str
    tournament_id: str
    logo_url: Optional[str] = None
    total_points: int
    placement_points: int
    kill_points: int
    total_kills: int
    matches_played: int
    first_place_wins: int = Field(..., description="Chicken dinners")
    stats_updated_at: Optional[datetime] = None


class TeamStatsResponse(BaseModel):
    team_id: str
    matches_played: int
    total_kills: int
    kill_points: int
    placement_points: int
    first_place_wins: int
    total_points: int
    records_cleared: bool = False


def to_team_response(team: Team) -> TeamResponse:
    return TeamResponse(
        id=team.id,
        name=team.name,
        tournament_id=team.tournament_id,
        logo_url=team.logo_url,
        total_points=team.total_points,
        placement_points=team.placement_points,
        kill_points=team.kill_points,
        total_kills=team.total_kills,
        matches_played=team.matches_played,
        first_place_wins=team.first_place_wins,
        stats_updated_at=team.stats_updated_at,
    )


def to_stats_response(team_id: str, aggregate: TeamAggregate, records_cleared: bool = False) -> TeamStatsResponse:
    return TeamStatsResponse(team_id=team_id, records_cleared=records_cleared, **aggregate.as_dict())


@router.get("/{team_id}", response_model=TeamResponse)
@limiter.limit(GENERAL_LIMIT)
async def get_team(request: Request, team_id: str, db: Session = Depends(get_db)):
    team = TeamRepository(db).find_by_id(team_id)
    if team is None:
        raise to_http_exception(TeamNotFoundError(team_id))
    return to_team_response(team)


@router.post("/{team_id}/reset", response_model=TeamStatsResponse)
@limiter.limit(GENERAL_LIMIT)
async def reset_team(
    request: Request,
    team_id: str,
    clear_matches: bool = Query(
        False,
        description="Also delete the team's match records. Without it the zeroed "
                    "stats are an override that the next record change recomputes.",
    ),
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Reset a team's stats to zero."""
    try:
        aggregate = MatchRecordService(db).reset_team_stats(team_id, clear_matches=clear_matches)
    except Exception as e:
        raise to_http_exception(e)
    return to_stats_response(team_id, aggregate, records_cleared=clear_matches)


@router.post("/{team_id}/recalculate", response_model=TeamStatsResponse)
@limiter.limit(GENERAL_LIMIT)
async def recalculate_team(
    request: Request,
    team_id: str,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Recompute a team's stats from its match records."""
    try:
        aggregate = MatchRecordService(db).recalculate_team(team_id)
    except Exception as e:
        raise to_http_exception(e)
    return to_stats_response(team_id, aggregate)
