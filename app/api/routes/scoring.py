"""
Scoring API routes.

Preview uses the same functions that score stored records, so what an
admin sees before saving is what gets written.
"""
from typing import Dict, Optional

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel

from app.api.errors import to_http_exception
from app.core.rate_limit import GENERAL_LIMIT, limiter
from app.services import scoring

router = APIRouter(prefix="/scoring", tags=["scoring"])


class PointsPreviewResponse(BaseModel):
    placement: Optional[int] = None
    kills: Optional[int] = None
    placement_points: int
    kill_points: int
    points: Optional[int] = None


class ScoringRulesResponse(BaseModel):
    placement_points: Dict[int, int]
    kill_points: int
    max_placement: int
    max_kills: int


@router.get("/preview", response_model=PointsPreviewResponse)
@limiter.limit(GENERAL_LIMIT)
async def preview_points(
    request: Request,
    placement: Optional[int] = Query(None, description="Final rank, 1-18"),
    kills: Optional[int] = Query(None, description="Total team kills"),
):
    try:
        scoring.validate_result(placement, kills)
    except Exception as e:
        raise to_http_exception(e)
    return PointsPreviewResponse(**scoring.preview(placement, kills))


@router.get("/rules", response_model=ScoringRulesResponse)
@limiter.limit(GENERAL_LIMIT)
async def scoring_rules(request: Request):
    return ScoringRulesResponse(
        placement_points=scoring.PLACEMENT_POINTS,
        kill_points=scoring.KILL_POINTS,
        max_placement=scoring.MAX_PLACEMENT,
        max_kills=scoring.MAX_KILLS,
    )
