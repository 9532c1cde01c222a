"""
Screenshot analysis API routes.

- POST /screenshots/analyze: extract placement/kills for one stored record
- POST /teams/{team_id}/screenshots: store and analyze a batch of uploads

Both are limited to the owning team's players (or an admin) and share the
stricter analysis rate limit, since every item costs an AI gateway call.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.errors import to_http_exception
from app.core.auth import Identity, ensure_team_access, get_identity
from app.core.database import get_db
from app.core.logging import get_logger
from app.core.rate_limit import ANALYSIS_LIMIT, limiter
from app.services.screenshot_analysis_service import ScreenshotAnalysisService, ScreenshotSubmission
from app.services.screenshot_extraction_service import ScreenshotExtractionClient, get_extraction_client

logger = get_logger(__name__)

router = APIRouter(tags=["screenshots"])


# ==================== REQUEST / RESPONSE MODELS ====================

class AnalyzeScreenshotRequest(BaseModel):
    screenshot_url: str = Field(..., min_length=1)
    screenshot_id: str = Field(..., min_length=1, description="Match record id")
    team_id: str = Field(..., min_length=1)


class AnalyzeScreenshotResponse(BaseModel):
    success: bool
    placement: int
    kills: int
    points: int


class ScreenshotItem(BaseModel):
    screenshot_url: str
    content_type: Optional[str] = Field(None, description="MIME type reported by the uploader")
    size_bytes: Optional[int] = Field(None, ge=0)


class BatchSubmitRequest(BaseModel):
    screenshots: List[ScreenshotItem]


class BatchItemResponse(BaseModel):
    screenshot_url: str
    record_id: Optional[str] = None
    success: bool
    needs_review: bool
    placement: Optional[int] = None
    kills: Optional[int] = None
    points: Optional[int] = None
    error: Optional[str] = None


class BatchSubmitResponse(BaseModel):
    team_id: str
    success_count: int
    failure_count: int
    items: List[BatchItemResponse]


# ==================== ENDPOINTS ====================

@router.post("/screenshots/analyze", response_model=AnalyzeScreenshotResponse)
@limiter.limit(ANALYSIS_LIMIT)
async def analyze_screenshot(
    request: Request,
    body: AnalyzeScreenshotRequest,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    client: ScreenshotExtractionClient = Depends(get_extraction_client),
):
    """
    Analyze a stored screenshot and update the team standings.

    On failure the record is kept with empty placement/kills and flagged
    for manual review.
    """
    ensure_team_access(identity, body.team_id)

    try:
        record = await ScreenshotAnalysisService(db, client).analyze(
            body.screenshot_id, body.team_id, body.screenshot_url
        )
    except Exception as e:
        raise to_http_exception(e)

    return AnalyzeScreenshotResponse(
        success=True,
        placement=record.placement,
        kills=record.kills,
        points=record.points,
    )


@router.post("/teams/{team_id}/screenshots", response_model=BatchSubmitResponse)
@limiter.limit(ANALYSIS_LIMIT)
async def submit_screenshots(
    request: Request,
    team_id: str,
    body: BatchSubmitRequest,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    client: ScreenshotExtractionClient = Depends(get_extraction_client),
):
    """
    Submit up to MAX_BATCH_SIZE uploaded screenshots for a team.

    Items are analyzed one after another; failures do not stop the batch.
    """
    ensure_team_access(identity, team_id)

    submissions = [
        ScreenshotSubmission(
            screenshot_url=item.screenshot_url,
            content_type=item.content_type,
            size_bytes=item.size_bytes,
        )
        for item in body.screenshots
    ]

    try:
        result = await ScreenshotAnalysisService(db, client).submit_batch(team_id, submissions)
    except Exception as e:
        raise to_http_exception(e)

    return BatchSubmitResponse(
        team_id=team_id,
        success_count=result.success_count,
        failure_count=result.failure_count,
        items=[
            BatchItemResponse(
                screenshot_url=item.screenshot_url,
                record_id=item.record_id,
                success=item.success,
                needs_review=item.needs_review,
                placement=item.placement,
                kills=item.kills,
                points=item.points,
                error=item.error,
            )
            for item in result.items
        ],
    )
