"""
Match record API routes.

Provides endpoints for:
- Listing a team's match records
- Manual points entry (admin)
- Verifying/editing placement and kills (admin)
- Deleting a record (owning team or admin)
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.errors import to_http_exception
from app.core.auth import Identity, ensure_team_access, get_identity, require_admin
from app.core.database import get_db
from app.core.logging import get_logger
from app.core.rate_limit import GENERAL_LIMIT, limiter
from app.models import MatchRecord
from app.services.match_record_service import MatchRecordService

logger = get_logger(__name__)

router = APIRouter(tags=["matches"])


# ==================== REQUEST / RESPONSE MODELS ====================

class MatchRecordResponse(BaseModel):
    """Match record response model."""
    id: str
    team_id: str
    match_number: Optional[int] = None
    placement: Optional[int] = Field(None, description="Final rank, 1-18")
    kills: Optional[int] = None
    points: Optional[int] = Field(None, description="Placement points + kills")
    screenshot_url: Optional[str] = None
    analysis_status: str = Field(..., description="pending, analyzed, needs_review or manual")
    analysis_error: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ManualEntryRequest(BaseModel):
    match_number: Optional[int] = Field(None, description="Omit (or 0) to use the next number")
    placement: int
    kills: int


class ResultUpdateRequest(BaseModel):
    placement: Optional[int] = None
    kills: Optional[int] = None


def to_record_response(record: MatchRecord) -> MatchRecordResponse:
    return MatchRecordResponse(
        id=record.id,
        team_id=record.team_id,
        match_number=record.match_number,
        placement=record.placement,
        kills=record.kills,
        points=record.points,
        screenshot_url=record.screenshot_url,
        analysis_status=record.analysis_status,
        analysis_error=record.analysis_error,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


# ==================== ENDPOINTS ====================

@router.get("/teams/{team_id}/matches", response_model=List[MatchRecordResponse])
@limiter.limit(GENERAL_LIMIT)
async def list_matches(request: Request, team_id: str, db: Session = Depends(get_db)):
    """List a team's match records ordered by match number."""
    try:
        records = MatchRecordService(db).list_records(team_id)
    except Exception as e:
        raise to_http_exception(e)
    return [to_record_response(r) for r in records]


@router.post(
    "/teams/{team_id}/matches",
    response_model=MatchRecordResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(GENERAL_LIMIT)
async def create_manual_entry(
    request: Request,
    team_id: str,
    body: ManualEntryRequest,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Add a match result by hand.

    The record has no screenshot and counts towards the team immediately.
    """
    try:
        record = MatchRecordService(db).create_record(
            team_id,
            match_number=body.match_number,
            placement=body.placement,
            kills=body.kills,
        )
    except Exception as e:
        raise to_http_exception(e)
    return to_record_response(record)


@router.patch("/matches/{record_id}", response_model=MatchRecordResponse)
@limiter.limit(GENERAL_LIMIT)
async def update_match(
    request: Request,
    record_id: str,
    body: ResultUpdateRequest,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Verify or correct the placement/kills read from a screenshot."""
    if body.placement is None and body.kills is None:
        raise HTTPException(status_code=400, detail="Provide placement and/or kills")

    try:
        record = MatchRecordService(db).update_result(record_id, placement=body.placement, kills=body.kills)
    except Exception as e:
        raise to_http_exception(e)
    return to_record_response(record)


@router.delete("/matches/{record_id}")
@limiter.limit(GENERAL_LIMIT)
async def delete_match(
    request: Request,
    record_id: str,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    """Delete a record. Players may only delete their own team's records."""
    service = MatchRecordService(db)
    try:
        record = service.get_record(record_id)
        ensure_team_access(identity, record.team_id)
        team_id = service.delete_record(record_id)
    except Exception as e:
        raise to_http_exception(e)
    return {"success": True, "id": record_id, "team_id": team_id}
