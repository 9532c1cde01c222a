"""
Screenshot analysis orchestration.

Ties the extraction client to match record persistence:

    analyze:       extract -> write placement/kills/points + recalculate team
    submit_batch:  validate all -> for each screenshot: insert record, analyze

A failed extraction or a failed save never touches placement/kills; the
record is kept and flagged `needs_review` so an admin can enter the result
by hand.
"""
import asyncio
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.logging import get_logger
from app.core.metrics import batch_items_total
from app.models import MatchRecord
from app.services.match_record_service import MatchRecordService
from app.services.screenshot_extraction_service import ExtractionError, ScreenshotExtractionClient
from app.services.team_stats_service import TeamNotFoundError

logger = get_logger(__name__)


class InvalidScreenshotError(ValueError):
    """Submission rejected before any record is written."""
    pass


class UploadLimitError(ValueError):
    """The team already has the maximum number of screenshots."""

    def __init__(self, existing: int, limit: int):
        super().__init__(
            f"Upload limit reached: team has {existing} of {limit} screenshots"
        )
        self.existing = existing
        self.limit = limit


@dataclass
class ScreenshotSubmission:
    """One already-uploaded screenshot. Type and size are checked when the uploader reports them."""
    screenshot_url: str
    content_type: Optional[str] = None
    size_bytes: Optional[int] = None


@dataclass
class BatchItemResult:
    screenshot_url: str
    record_id: Optional[str] = None
    success: bool = False
    placement: Optional[int] = None
    kills: Optional[int] = None
    points: Optional[int] = None
    error: Optional[str] = None

    @property
    def needs_review(self) -> bool:
        return self.record_id is not None and not self.success


@dataclass
class BatchResult:
    items: List[BatchItemResult] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for item in self.items if item.success)

    @property
    def failure_count(self) -> int:
        return len(self.items) - self.success_count


class ScreenshotAnalysisService:
    """Runs extraction for match records and persists the outcome."""

    def __init__(
        self,
        db: Session,
        client: ScreenshotExtractionClient,
        item_delay: Optional[float] = None,
    ):
        self.db = db
        self.client = client
        self.records = MatchRecordService(db)
        self.item_delay = settings.BATCH_ITEM_DELAY if item_delay is None else item_delay

    async def analyze(self, record_id: str, team_id: str, screenshot_url: str) -> MatchRecord:
        """
        Extract placement/kills for a record and recalculate its team.

        Raises:
            MatchRecordNotFoundError: record missing or not owned by team_id
            ExtractionError: extraction failed (record is flagged needs_review)
            SQLAlchemyError: the result could not be saved (record is flagged needs_review)
        """
        self.records.get_record(record_id, team_id=team_id)
        # No transaction may stay open across the gateway call
        self.db.commit()

        logger.info(f"Analyzing screenshot for record {record_id}: {screenshot_url}")
        try:
            data = await self.client.extract(screenshot_url)
        except ExtractionError as e:
            self._flag_for_review(record_id, str(e))
            raise

        try:
            record = self.records.apply_extraction(record_id, team_id, data.placement, data.kills)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Could not save extraction for record {record_id}: {e}")
            self._flag_for_review(
                record_id,
                f"Extracted placement={data.placement} kills={data.kills} but saving failed: {e}",
            )
            raise

        logger.info(
            f"Record {record_id} analyzed: placement={record.placement} kills={record.kills} points={record.points}"
        )
        return record

    def _flag_for_review(self, record_id: str, error: str) -> None:
        """Best effort: the original failure is what the caller sees."""
        try:
            self.records.mark_needs_review(record_id, error)
        except SQLAlchemyError:
            logger.exception(f"Could not flag record {record_id} for review")

    def validate_batch(self, team_id: str, screenshots: Sequence[ScreenshotSubmission]) -> None:
        """
        Check a batch against the upload rules without writing anything.

        Raises:
            TeamNotFoundError: unknown team
            InvalidScreenshotError: empty/oversized batch, bad URL, type or size
            UploadLimitError: the batch would exceed the per-team cap
        """
        if self.records.stats.teams.find_by_id(team_id) is None:
            raise TeamNotFoundError(team_id)

        if not screenshots:
            raise InvalidScreenshotError("No screenshots submitted")
        if len(screenshots) > settings.MAX_BATCH_SIZE:
            raise InvalidScreenshotError(
                f"Too many screenshots in one batch: {len(screenshots)} (max {settings.MAX_BATCH_SIZE})"
            )

        allowed_types = settings.ALLOWED_SCREENSHOT_TYPES
        for item in screenshots:
            if not item.screenshot_url or not item.screenshot_url.startswith(("http://", "https://")):
                raise InvalidScreenshotError(f"Invalid screenshot URL: {item.screenshot_url!r}")
            if item.content_type is not None and item.content_type.lower() not in allowed_types:
                raise InvalidScreenshotError(
                    f"Unsupported file type {item.content_type}; only JPG and PNG images are accepted"
                )
            if item.size_bytes is not None and item.size_bytes > settings.MAX_SCREENSHOT_BYTES:
                raise InvalidScreenshotError(
                    f"Screenshot too large: {item.size_bytes} bytes (max {settings.MAX_SCREENSHOT_BYTES})"
                )

        existing = self.records.count_records(team_id)
        if existing + len(screenshots) > settings.MAX_SCREENSHOTS_PER_TEAM:
            raise UploadLimitError(existing, settings.MAX_SCREENSHOTS_PER_TEAM)

    async def submit_batch(self, team_id: str, screenshots: Sequence[ScreenshotSubmission]) -> BatchResult:
        """
        Store and analyze screenshots one at a time.

        Each record is committed before its extraction starts, so an upload
        is kept even when analysis fails. A failed item (extraction or
        database error) is recorded in the result and the batch moves on.
        """
        self.validate_batch(team_id, screenshots)

        result = BatchResult()
        for index, item in enumerate(screenshots):
            if index and self.item_delay:
                await asyncio.sleep(self.item_delay)

            outcome = BatchItemResult(screenshot_url=item.screenshot_url)
            try:
                record = self.records.create_record(team_id, screenshot_url=item.screenshot_url)
            except SQLAlchemyError as e:
                logger.error(f"Could not store screenshot {item.screenshot_url} for team {team_id}: {e}")
                outcome.error = f"Could not store screenshot: {e}"
                batch_items_total.labels(outcome="failed").inc()
                result.items.append(outcome)
                continue

            outcome.record_id = record.id
            try:
                analyzed = await self.analyze(record.id, team_id, item.screenshot_url)
            except (ExtractionError, SQLAlchemyError) as e:
                outcome.error = str(e)
                batch_items_total.labels(outcome="needs_review").inc()
            else:
                outcome.success = True
                outcome.placement = analyzed.placement
                outcome.kills = analyzed.kills
                outcome.points = analyzed.points
                batch_items_total.labels(outcome="analyzed").inc()

            result.items.append(outcome)

        logger.info(
            f"Batch for team {team_id}: {result.success_count} analyzed, "
            f"{result.failure_count} need manual review"
        )
        return result
