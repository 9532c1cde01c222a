"""
Service exception -> HTTP status mapping shared by the routers.
"""
from fastapi import HTTPException, status

from app.core.logging import get_logger
from app.services.screenshot_analysis_service import UploadLimitError
from app.services.screenshot_extraction_service import ExtractionError

logger = get_logger(__name__)


def to_http_exception(exc: Exception) -> HTTPException:
    """
    Translate a service-layer error.

    UploadLimitError -> 409, other ValueError -> 400, LookupError -> 404,
    ExtractionError -> 500. Anything else is a 500 and gets logged with
    its traceback.
    """
    if isinstance(exc, HTTPException):
        return exc
    if isinstance(exc, UploadLimitError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, ValueError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, LookupError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ExtractionError):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"AI analysis failed: {exc}",
        )

    logger.exception(f"Unexpected error: {exc}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal server error",
    )
