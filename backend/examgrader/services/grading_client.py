"""
Grading client - sends the assembled request to the grading model, pulls JSON
out of whatever text comes back and checks it with the response validator.

Transport errors, timeouts and unusable payloads all go through the same
retry policy. A payload that cannot be parsed as JSON is not retried; it is
reported so the caller can fall back.
"""

import asyncio
import json
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Protocol

from examgrader.config import GradingConfig, logger
from examgrader.services.fallback import (
    REASON_ALL_RETRIES_FAILED,
    REASON_JSON_PARSE_FAILED,
    REASON_UNUSABLE_RESPONSE,
)
from examgrader.services.llm import UserMessage
from examgrader.services.retry import RetriesExhausted, RetryPolicy, retry_async
from examgrader.services.validator import ValidationResult, validate_response

CODE_FENCE_PATTERN = re.compile(r"```(?:json|JSON)?\s*|\s*```")
JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


class ChatClient(Protocol):
    async def send_message(self, message: UserMessage) -> str: ...


class GradingTimeoutError(TimeoutError):
    pass


class UnusableResponseError(Exception):
    """The model returned JSON that failed validation badly enough to retry."""

    def __init__(self, validation: ValidationResult, payload: Any, raw_text: str):
        self.validation = validation
        self.payload = payload
        self.raw_text = raw_text
        super().__init__(f"Unusable AI response ({len(validation.issues)} issues)")


@dataclass
class GradingAttempt:
    """Outcome of the grading call, success or not. Never raised."""
    ok: bool
    payload: Optional[dict] = None
    raw_text: str = ""
    validation: Optional[ValidationResult] = None
    attempts: int = 0
    failure_reason: Optional[str] = None
    error: Optional[str] = None
    errors: List[str] = field(default_factory=list)


def _loads_object(text: str) -> Optional[dict]:
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, TypeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


def extract_json(text: str) -> Optional[dict]:
    """
    Pull a JSON object out of a model response.

    Tries, in order: the text with code fences removed, the first {...} span,
    and the slice from the first '{' to the last '}'.
    """
    if not isinstance(text, str) or not text.strip():
        return None

    # Strategy 1: strip code fences
    parsed = _loads_object(CODE_FENCE_PATTERN.sub("", text).strip())
    if parsed is not None:
        return parsed

    # Strategy 2: find JSON object in surrounding prose
    match = JSON_OBJECT_PATTERN.search(text)
    if match:
        parsed = _loads_object(match.group())
        if parsed is not None:
            return parsed

    # Strategy 3: outermost braces
    first, last = text.find("{"), text.rfind("}")
    if first != -1 and last > first:
        parsed = _loads_object(text[first:last + 1])
        if parsed is not None:
            return parsed

    logger.error(f"Failed to extract JSON from malformed response: {text[:500]}")
    return None


async def request_grading(chat: ChatClient, message: UserMessage,
                          total_possible_marks: Optional[float],
                          config: Optional[GradingConfig] = None,
                          sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> GradingAttempt:
    """Call the model under the retry policy and return a GradingAttempt."""
    config = config or GradingConfig()
    policy = RetryPolicy.from_config(config)
    attempts_made = 0

    async def attempt_once(attempt: int) -> GradingAttempt:
        nonlocal attempts_made
        attempts_made = attempt
        logger.info(f"Sending paper to AI (attempt {attempt}/{policy.max_attempts})...")
        try:
            text = await asyncio.wait_for(chat.send_message(message), timeout=config.timeout_seconds)
        except asyncio.TimeoutError:
            raise GradingTimeoutError(f"AI grading timed out after {config.timeout_seconds:g}s")

        payload = extract_json(text)
        if payload is None:
            return GradingAttempt(ok=False, raw_text=text, attempts=attempt,
                                  failure_reason=REASON_JSON_PARSE_FAILED,
                                  error="Could not parse JSON from AI response")

        validation = validate_response(payload, total_possible_marks, config)
        if not validation.is_valid:
            raise UnusableResponseError(validation, payload, text)

        if validation.issues:
            logger.info("Using AI response despite validation issues")
        else:
            logger.info("AI response validation passed")
        return GradingAttempt(ok=True, payload=payload, raw_text=text,
                              validation=validation, attempts=attempt)

    try:
        return await retry_async(attempt_once, policy, sleep=sleep)
    except RetriesExhausted as exhausted:
        last = exhausted.last_error
        messages = [str(e) for e in exhausted.errors]
        logger.error(f"AI evaluation failed after {len(exhausted.errors)} attempt(s): {last}")
        if isinstance(last, UnusableResponseError):
            return GradingAttempt(ok=False, payload=last.payload, raw_text=last.raw_text,
                                  validation=last.validation, attempts=attempts_made,
                                  failure_reason=REASON_UNUSABLE_RESPONSE,
                                  error=str(last), errors=messages)
        return GradingAttempt(ok=False, attempts=attempts_made,
                              failure_reason=REASON_ALL_RETRIES_FAILED,
                              error=str(last), errors=messages)
