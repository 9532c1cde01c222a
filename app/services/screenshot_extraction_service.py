"""
AI screenshot extraction.

Sends a PUBG results screenshot URL to an OpenAI-compatible vision model,
forcing an `extract_match_data` tool call, and returns a validated
`ExtractedMatchData(placement, kills)`.

Attempt loop (driven by tenacity):

    Attempting(n) --2xx + valid tool call--> Succeeded
    Attempting(n) --429/402/5xx, network error, undecodable body--> Backoff(n)
    Backoff(n)    --sleep n * base delay--> Attempting(n + 1)
    Attempting(n) --other non-2xx, missing/invalid tool call, n == max--> Failed

Usage:
    client = get_extraction_client()
    data = await client.extract("https://.../screenshot.png")
    data.placement, data.kills
"""
import json
import time
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from app.core.config import settings
from app.core.logging import get_logger
from app.core.metrics import (
    extraction_attempts_total,
    extraction_duration_seconds,
    extraction_success_total,
    record_extraction_failure,
)
from app.services.scoring import MAX_KILLS, MAX_PLACEMENT, MIN_PLACEMENT

logger = get_logger(__name__)

TOOL_NAME = "extract_match_data"

EXTRACTION_PROMPT = """Analyze this PUBG match results screenshot and extract:

1. PLACEMENT (rank): Look for the placement number, usually shown as "#2" or "2nd place" or similar. This is typically displayed prominently at the top of the screen. The placement should be a number from 1 to 18.

2. TOTAL TEAM KILLS: This screenshot may show kills in different ways:
   - If you see a detailed stats table with an "Eliminations" column, sum up all the eliminations for all team members
   - If you see player cards at the bottom with individual elimination numbers, sum those up
   - If you see "Eliminations: X" anywhere, use that total
   - The kills could be labeled as "Eliminations", "Kills", or shown with a number

Important:
- For kills/eliminations, you need to add up ALL team members' kills to get the total
- Look carefully at the entire screenshot to find where the kill information is displayed
- The placement is usually shown with a large "#" symbol followed by the rank number

Return the total team placement and total team kills."""

EXTRACTION_TOOL: Dict[str, Any] = {
    "type": "function",
    "function": {
        "name": TOOL_NAME,
        "description": "Extract placement rank and kills from PUBG match screenshot",
        "parameters": {
            "type": "object",
            "properties": {
                "placement": {
                    "type": "integer",
                    "description": "The team's placement/rank in the match (1-18)",
                },
                "kills": {
                    "type": "integer",
                    "description": "Total number of kills in the match",
                },
            },
            "required": ["placement", "kills"],
            "additionalProperties": False,
        },
    },
}

# Retried in addition to every 5xx
RETRYABLE_STATUS_CODES = frozenset({402, 429})


class ExtractionError(Exception):
    """Extraction failed and should not be retried."""

    error_type = "extraction_error"

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TransientExtractionError(ExtractionError):
    """Retryable failure (429/402/5xx, network error or an undecodable body)."""

    error_type = "transient"


class InvalidExtractionError(ExtractionError):
    """The model answered, but its tool-call arguments did not pass validation."""

    error_type = "invalid_output"


class ExtractedMatchData(BaseModel):
    """Strictly validated tool-call arguments."""

    model_config = ConfigDict(strict=True, extra="forbid")

    placement: int = Field(ge=MIN_PLACEMENT, le=MAX_PLACEMENT)
    kills: int = Field(ge=0, le=MAX_KILLS)


def is_retryable_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUS_CODES or 500 <= status_code <= 599


def build_request_payload(screenshot_url: str, model: str) -> Dict[str, Any]:
    """Chat-completions body with the prompt, the image and a forced tool call."""
    return {
        "model": model,
        "messages": [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": EXTRACTION_PROMPT},
                    {"type": "image_url", "image_url": {"url": screenshot_url}},
                ],
            }
        ],
        "tools": [EXTRACTION_TOOL],
        "tool_choice": {"type": "function", "function": {"name": TOOL_NAME}},
    }


def parse_tool_call(payload: Any) -> ExtractedMatchData:
    """
    Pull `{placement, kills}` out of a chat-completions response body.

    Raises:
        ExtractionError: no tool call in the response
        InvalidExtractionError: arguments are not valid JSON or fail validation
    """
    try:
        tool_call = payload["choices"][0]["message"]["tool_calls"][0]
        arguments = tool_call["function"]["arguments"]
    except (KeyError, IndexError, TypeError):
        raise ExtractionError("No tool call in AI response")

    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments)
        except ValueError as e:
            raise InvalidExtractionError(f"Tool call arguments are not valid JSON: {e}")

    try:
        return ExtractedMatchData.model_validate(arguments)
    except ValidationError as e:
        raise InvalidExtractionError(f"Tool call arguments failed validation: {e.errors(include_url=False)}")


class ScreenshotExtractionClient:
    """
    Async client for the AI gateway.

    The httpx client is created on first use and reused across requests;
    call `close()` on shutdown.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.AI_GATEWAY_API_KEY
        self.url = url or settings.AI_GATEWAY_URL
        self.model = model or settings.AI_MODEL
        self.timeout = timeout if timeout is not None else settings.AI_REQUEST_TIMEOUT
        self.max_attempts = max_attempts if max_attempts is not None else settings.AI_MAX_ATTEMPTS
        self.retry_base_delay = (
            retry_base_delay if retry_base_delay is not None else settings.AI_RETRY_BASE_DELAY
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=5),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def extract(self, screenshot_url: str) -> ExtractedMatchData:
        """
        Extract placement and kills from a screenshot.

        Raises:
            ExtractionError: after a non-retryable failure or when all
                attempts are used up (the last error is re-raised)
        """
        if not self.api_key:
            raise ExtractionError("AI_GATEWAY_API_KEY is not configured")

        started = time.perf_counter()
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(start=self.retry_base_delay, increment=self.retry_base_delay),
            retry=retry_if_exception_type(TransientExtractionError),
            before=self._log_attempt,
            before_sleep=self._log_backoff,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    data = await self._attempt(screenshot_url)
        except ExtractionError as e:
            record_extraction_failure(e.error_type)
            logger.error(
                f"Extraction failed for {screenshot_url}: {e}",
                extra={"status_code": e.status_code, "error_type": e.error_type},
            )
            raise
        finally:
            extraction_duration_seconds.observe(time.perf_counter() - started)

        extraction_success_total.inc()
        logger.info(f"Extraction succeeded: placement={data.placement} kills={data.kills}")
        return data

    async def _attempt(self, screenshot_url: str) -> ExtractedMatchData:
        """One HTTP round trip; classifies every failure as transient or not."""
        extraction_attempts_total.inc()
        try:
            response = await self._get_client().post(
                self.url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=build_request_payload(screenshot_url, self.model),
            )
        except httpx.RequestError as e:
            raise TransientExtractionError(f"AI gateway request failed: {e.__class__.__name__}: {e}")

        if not response.is_success:
            body = response.text
            if is_retryable_status(response.status_code):
                raise TransientExtractionError(
                    f"AI gateway returned {response.status_code}",
                    status_code=response.status_code,
                    body=body,
                )
            raise ExtractionError(
                f"AI gateway error {response.status_code}: {body[:500]}",
                status_code=response.status_code,
                body=body,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise TransientExtractionError(
                f"AI gateway returned an undecodable body: {e}",
                status_code=response.status_code,
            )

        return parse_tool_call(payload)

    def _log_attempt(self, retry_state: RetryCallState) -> None:
        logger.debug(f"Extraction attempt {retry_state.attempt_number}/{self.max_attempts}")

    def _log_backoff(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            f"Extraction attempt {retry_state.attempt_number}/{self.max_attempts} failed ({error}); "
            f"retrying in {retry_state.next_action.sleep if retry_state.next_action else 0:.2f}s"
        )


_extraction_client: Optional[ScreenshotExtractionClient] = None


def get_extraction_client() -> ScreenshotExtractionClient:
    """FastAPI dependency returning the process-wide extraction client."""
    global _extraction_client
    if _extraction_client is None:
        _extraction_client = ScreenshotExtractionClient()
    return _extraction_client


async def close_extraction_client() -> None:
    global _extraction_client
    if _extraction_client is not None:
        await _extraction_client.close()
        _extraction_client = None
