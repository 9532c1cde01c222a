"""
Tournament API routes.

Provides endpoints for:
- Creating (admin) and listing tournaments
- Adding teams to a tournament (admin)
- Public standings, ordered by total points then total kills
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.errors import to_http_exception
from app.api.routes.teams import TeamResponse, to_team_response
from app.core.auth import Identity, require_admin
from app.core.database import get_db
from app.core.rate_limit import GENERAL_LIMIT, limiter
from app.models import Tournament
from app.services.tournament_service import TournamentService

router = APIRouter(prefix="/tournaments", tags=["tournaments"])


class TournamentCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    total_matches: int = Field(6, ge=1)


class TournamentResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    total_matches: int
    created_at: datetime


class TeamCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    logo_url: Optional[str] = None


class StandingEntry(BaseModel):
    rank: int
    team: TeamResponse


class StandingsResponse(BaseModel):
    tournament: TournamentResponse
    standings: List[StandingEntry]


def to_tournament_response(tournament: Tournament) -> TournamentResponse:
    return TournamentResponse(
        id=tournament.id,
        name=tournament.name,
        description=tournament.description,
        total_matches=tournament.total_matches,
        created_at=tournament.created_at,
    )


@router.post("", response_model=TournamentResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(GENERAL_LIMIT)
async def create_tournament(
    request: Request,
    body: TournamentCreateRequest,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        tournament = TournamentService(db).create_tournament(
            body.name, description=body.description, total_matches=body.total_matches
        )
    except Exception as e:
        raise to_http_exception(e)
    return to_tournament_response(tournament)


@router.get("", response_model=List[TournamentResponse])
@limiter.limit(GENERAL_LIMIT)
async def list_tournaments(request: Request, db: Session = Depends(get_db)):
    return [to_tournament_response(t) for t in TournamentService(db).list_tournaments()]


@router.post("/{tournament_id}/teams", response_model=TeamResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(GENERAL_LIMIT)
async def create_team(
    request: Request,
    tournament_id: str,
    body: TeamCreateRequest,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        team = TournamentService(db).create_team(tournament_id, body.name, logo_url=body.logo_url)
    except Exception as e:
        raise to_http_exception(e)
    return to_team_response(team)


@router.get("/{tournament_id}/standings", response_model=StandingsResponse)
@limiter.limit(GENERAL_LIMIT)
async def get_standings(request: Request, tournament_id: str, db: Session = Depends(get_db)):
    """Ranked standings for a tournament."""
    service = TournamentService(db)
    try:
        tournament = service.get_tournament(tournament_id)
        ranked = service.standings(tournament_id)
    except Exception as e:
        raise to_http_exception(e)

    return StandingsResponse(
        tournament=to_tournament_response(tournament),
        standings=[StandingEntry(rank=rank, team=to_team_response(team)) for rank, team in ranked],
    )
