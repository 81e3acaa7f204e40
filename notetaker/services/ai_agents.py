"""
AI agents for meeting transcripts: a summary agent and an action-items agent.

Both calls go through the same wrapper: input validation, one chat-completion
request, response validation, bounded retries with linear backoff, and an
overall deadline. Every failure comes back as a result object with
``success=False``; nothing is raised to callers.
"""
import asyncio
import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from aiolimiter import AsyncLimiter
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

from notetaker.exceptions import AIProcessingError
from notetaker.logging_config import get_logger
from notetaker.monitoring import ai_operations_total, ai_operation_duration, record_error, track_time
from notetaker.schemas import ActionItemsResult, SummaryResult, TranscriptProcessingResult

logger = get_logger(__name__)

OPENAI_API_URL = "https://api.openai.com/v1/chat/completions"

NON_RETRYABLE_CODES = frozenset({"INVALID_API_KEY", "INVALID_TEXT_TYPE", "EMPTY_TEXT"})

SUMMARY_SYSTEM_PROMPT = """You are a professional meeting summarization agent. Your task is to create concise, well-structured summaries of meeting transcripts.

INSTRUCTIONS:
- Create a clear, professional summary that captures the key points discussed
- Focus on main topics, decisions made, and important discussions
- Use bullet points or numbered lists for better readability
- Keep the summary concise but comprehensive (aim for 200-400 words)
- Maintain a professional tone
- If speaker names are mentioned, include them when relevant to key points

FORMAT:
## Key Topics Discussed
## Decisions Made
## Important Points
## Next Steps (if mentioned)

Leave out filler and meeting logistics such as "can you hear me"."""

ACTION_ITEMS_SYSTEM_PROMPT = """You are an expert action items extraction agent. Extract specific, actionable tasks from meeting transcripts.

EXTRACT: tasks someone committed to, follow-ups, deadlines, assignments and agreed next steps.
IGNORE: general discussion, ideas without commitment, past actions already completed, informational statements.

OUTPUT RULES:
1. Return ONLY action items, one per line
2. Start each line with a dash (-)
3. Include WHO will do WHAT and WHEN (if mentioned), e.g. "- Sarah will complete the grant report (Sarah - 2025-03-14)"
4. No extra text, headers, or explanations

If you find NO actionable items, return exactly: "No action items found\""""

NO_ITEMS_PHRASES = ("no action items found", "no clear action items", "no action items identified")
SKIP_LINE_PHRASES = ("no action items", "action items:", "here are the")
DROP_ITEM_PHRASES = ("no action", "none identified")
BULLET_PREFIX = re.compile(r"^[-•*\d+.)\s]+")
SURROUNDING_QUOTES = re.compile(r"^[\"']|[\"']$")
MIN_ITEM_LENGTH = 6


def validate_transcript_text(text: Any, large_threshold: int = 100_000) -> str:
    """
    Reject input no retry could fix.

    Raises:
        AIProcessingError: INVALID_TEXT_TYPE or EMPTY_TEXT
    """
    if not isinstance(text, str):
        raise AIProcessingError(
            "Transcript text is not a valid string",
            service="TranscriptValidation",
            code="INVALID_TEXT_TYPE",
            context={"text_type": type(text).__name__},
        )
    if not text.strip():
        raise AIProcessingError(
            "Transcript text is empty",
            service="TranscriptValidation",
            code="EMPTY_TEXT",
            context={"original_length": len(text)},
        )
    if len(text) > large_threshold:
        logger.warning("large_transcript", length=len(text), threshold=large_threshold)
    return text


def validate_openai_response(data: Any, operation: str) -> str:
    """
    Extract ``choices[0].message.content`` or fail.

    Raises:
        AIProcessingError: INVALID_RESPONSE or MISSING_CONTENT
    """
    choices = data.get("choices") if isinstance(data, dict) else None
    if not choices or not isinstance(choices, list) or not isinstance(choices[0], dict):
        raise AIProcessingError(
            "Invalid OpenAI API response structure",
            service="OpenAI",
            code="INVALID_RESPONSE",
            context={"operation": operation},
        )
    content = (choices[0].get("message") or {}).get("content")
    if not isinstance(content, str) or not content.strip():
        raise AIProcessingError(
            "OpenAI response missing content",
            service="OpenAI",
            code="MISSING_CONTENT",
            context={"operation": operation},
        )
    return content.strip()


def handle_openai_error(error: Exception, operation: str) -> AIProcessingError:
    """Map a transport or HTTP failure to a coded AIProcessingError."""
    if isinstance(error, AIProcessingError):
        return error

    context: Dict[str, Any] = {"operation": operation, "original_error": str(error)}

    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        context["status"] = status
        if status == 401:
            message, code = "Invalid OpenAI API key", "INVALID_API_KEY"
        elif status == 429:
            message, code = "OpenAI API rate limit exceeded", "RATE_LIMIT_EXCEEDED"
        elif status == 500:
            message, code = "OpenAI API server error", "SERVER_ERROR"
        elif status == 503:
            message, code = "OpenAI API service unavailable", "SERVICE_UNAVAILABLE"
        else:
            try:
                detail = (error.response.json().get("error") or {}).get("message")
            except (ValueError, AttributeError):
                detail = None
            message, code = f"OpenAI API error: {detail or 'Unknown error'}", "API_ERROR"
    elif isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError)):
        message, code = "OpenAI API request timeout", "TIMEOUT"
    elif isinstance(error, httpx.TransportError):
        message, code = f"Cannot connect to OpenAI API (network error): {error}", "NETWORK_ERROR"
    elif isinstance(error, ValueError):
        message, code = "Invalid OpenAI API response structure", "INVALID_RESPONSE"
    else:
        message, code = str(error) or "Unknown error occurred", "UNKNOWN_ERROR"

    return AIProcessingError(message, service="OpenAI", code=code, context=context)


def _is_retryable(error: BaseException) -> bool:
    return not (isinstance(error, AIProcessingError) and error.code in NON_RETRYABLE_CODES)


def parse_action_items_response(response: str, max_items: int = 20) -> List[str]:
    """
    Parse the action-items agent output into a list of items.

    Handles the "no items" sentinel, a JSON array, or a bulleted/numbered
    list. Malformed JSON falls back to a looser line split.
    """
    text = response.strip()
    lower = text.lower()
    if any(phrase in lower for phrase in NO_ITEMS_PHRASES):
        return []

    try:
        if text.startswith("[") and text.endswith("]"):
            parsed = json.loads(text)
            if not isinstance(parsed, list):
                raise ValueError("action items JSON is not an array")
            items = [item for item in parsed if isinstance(item, str)]
        else:
            items = []
            for line in text.splitlines():
                line = line.strip()
                lowered = line.lower()
                if not line or any(phrase in lowered for phrase in SKIP_LINE_PHRASES):
                    continue
                cleaned = BULLET_PREFIX.sub("", line).strip()
                items.append(SURROUNDING_QUOTES.sub("", cleaned))
    except ValueError as e:
        logger.warning("action_items_parse_fallback", error=str(e), response_length=len(text))
        items = [
            BULLET_PREFIX.sub("", line.strip()).strip()
            for line in re.split(r"[\r\n]+", text)
            if len(line.strip()) > 10
        ]

    items = [item.strip() for item in items]
    items = [
        item for item in items
        if len(item) >= MIN_ITEM_LENGTH and not any(phrase in item.lower() for phrase in DROP_ITEM_PHRASES)
    ]
    return items[:max_items]


class AIAgentsService:
    """Summary and action-items agents over the OpenAI chat completions API."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        max_tokens: int = 1000,
        temperature: float = 0.3,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        operation_timeout: float = 180.0,
        large_transcript_threshold: int = 100_000,
        max_action_items: int = 20,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        limiter: Optional[AsyncLimiter] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.operation_timeout = operation_timeout
        self.large_transcript_threshold = large_transcript_threshold
        self.max_action_items = max_action_items
        self.transport = transport
        self.limiter = limiter

    @classmethod
    def from_settings(cls, settings, limiter: Optional[AsyncLimiter] = None) -> "AIAgentsService":
        return cls(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            max_tokens=settings.openai_max_tokens,
            temperature=settings.openai_temperature,
            timeout=settings.http_timeout_seconds,
            max_retries=settings.ai_max_retries,
            retry_delay=settings.ai_retry_delay,
            operation_timeout=settings.ai_operation_timeout_seconds,
            large_transcript_threshold=settings.large_transcript_threshold,
            max_action_items=settings.max_action_items,
            limiter=limiter,
        )

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            return await client.post(OPENAI_API_URL, headers=headers, json=payload)

    async def _chat_completion(self, system_prompt: str, user_prompt: str, operation: str) -> str:
        """One request/response; every failure surfaces as AIProcessingError."""
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        try:
            if self.limiter:
                async with self.limiter:
                    response = await self._post(payload)
            else:
                response = await self._post(payload)
            response.raise_for_status()
            data = response.json()
        except Exception as e:
            raise handle_openai_error(e, operation)

        content = validate_openai_response(data, operation)
        usage = data.get("usage") or {}
        logger.info("openai_completion_received", operation=operation, tokens_used=usage.get("total_tokens"))
        return content

    async def _with_retries(self, call: Callable[[], Awaitable[Any]]) -> Any:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_incrementing(start=self.retry_delay, increment=self.retry_delay),
            retry=retry_if_exception(_is_retryable),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await call()

    async def _run(self, operation: str, label: str, text: Any,
                   call: Callable[[], Awaitable[Any]]) -> Any:
        """
        Validate, then run ``call`` with retries under the overall deadline.

        Raises:
            AIProcessingError: With the message callers should see
        """
        validate_transcript_text(text, self.large_transcript_threshold)
        try:
            return await asyncio.wait_for(self._with_retries(call), timeout=self.operation_timeout)
        except asyncio.TimeoutError:
            raise AIProcessingError(
                f"{label} timed out after {self.operation_timeout:g}s",
                service="OpenAI",
                code="TIMEOUT",
                context={"operation": operation},
            )
        except AIProcessingError as e:
            if e.code in NON_RETRYABLE_CODES:
                raise
            raise AIProcessingError(
                f"{label} failed after {self.max_retries} attempts: {e}",
                service=e.service,
                code=e.code,
                context=e.context,
            )

    def _record_failure(self, operation: str, error: AIProcessingError, text: Any) -> None:
        ai_operations_total.labels(operation=operation, status="error").inc()
        record_error(error.code or "AIProcessingError", "ai_agents")
        fields = {**error.to_log_dict(), "operation": operation}
        logger.error(
            "ai_operation_failed",
            text_length=len(text) if isinstance(text, str) else None,
            **fields,
        )

    @track_time(ai_operation_duration, {"operation": "summary"})
    async def generate_summary(self, transcript_text: Any) -> SummaryResult:
        """
        Agent 1: concise summary of a meeting transcript.

        Args:
            transcript_text: Full transcript text

        Returns:
            SummaryResult; ``success=False`` with ``error`` on any failure
        """
        user_prompt = f"Please summarize the following meeting transcript:\n\n{transcript_text}"

        async def call() -> str:
            return await self._chat_completion(SUMMARY_SYSTEM_PROMPT, user_prompt, "generate_summary")

        try:
            summary = await self._run("generate_summary", "Summary generation", transcript_text, call)
        except AIProcessingError as e:
            self._record_failure("summary", e, transcript_text)
            return SummaryResult(summary="", success=False, error=str(e))

        ai_operations_total.labels(operation="summary", status="success").inc()
        logger.info("summary_generated", summary_length=len(summary))
        return SummaryResult(summary=summary, success=True)

    @track_time(ai_operation_duration, {"operation": "action_items"})
    async def extract_action_items(self, transcript_text: Any) -> ActionItemsResult:
        """
        Agent 2: actionable items from a meeting transcript.

        Args:
            transcript_text: Full transcript text

        Returns:
            ActionItemsResult; ``success=False`` with ``error`` on any failure
        """
        user_prompt = f"Please extract all action items from the following meeting transcript:\n\n{transcript_text}"

        async def call() -> List[str]:
            content = await self._chat_completion(ACTION_ITEMS_SYSTEM_PROMPT, user_prompt, "extract_action_items")
            return parse_action_items_response(content, self.max_action_items)

        try:
            items = await self._run("extract_action_items", "Action items extraction", transcript_text, call)
        except AIProcessingError as e:
            self._record_failure("action_items", e, transcript_text)
            return ActionItemsResult(action_items=[], success=False, error=str(e))

        ai_operations_total.labels(operation="action_items", status="success").inc()
        if not items:
            logger.warning("no_action_items_extracted")
        logger.info("action_items_extracted", count=len(items))
        return ActionItemsResult(action_items=items, success=True)

    async def process_transcript(self, transcript_text: Any, transcript_id: Any = None) -> TranscriptProcessingResult:
        """Run both agents concurrently on one transcript."""
        processed_at = datetime.now(timezone.utc)
        try:
            validate_transcript_text(transcript_text, self.large_transcript_threshold)
        except AIProcessingError as e:
            logger.error("transcript_processing_rejected", transcript_id=transcript_id, **e.to_log_dict())
            return TranscriptProcessingResult(
                transcript_id=str(transcript_id),
                summary=SummaryResult(summary="", success=False, error=str(e)),
                action_items=ActionItemsResult(action_items=[], success=False, error=str(e)),
                processed_at=processed_at,
            )

        summary, action_items = await asyncio.gather(
            self.generate_summary(transcript_text),
            self.extract_action_items(transcript_text),
        )
        logger.info(
            "transcript_processed",
            transcript_id=transcript_id,
            summary_success=summary.success,
            action_items_success=action_items.success,
            action_items_count=len(action_items.action_items),
        )
        return TranscriptProcessingResult(
            transcript_id=str(transcript_id),
            summary=summary,
            action_items=action_items,
            processed_at=processed_at,
        )
