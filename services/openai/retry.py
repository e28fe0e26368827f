"""Retry wrapper with exponential backoff for model calls.

Rate-limit/quota errors and malformed JSON output are treated as transient.
Any other error is raised on the first failure.
"""

import asyncio
import json
import logging
from typing import Awaitable, Callable, TypeVar

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ATTEMPTS = 3
INITIAL_DELAY_SECONDS = 2.0


def is_quota_error(exc: BaseException) -> bool:
    """Return True for HTTP 429 / quota exhaustion errors."""
    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    if status == 429:
        return True
    message = str(exc).lower()
    return "quota" in message or "429" in message


def is_parse_error(exc: BaseException) -> bool:
    """Return True for errors caused by truncated or malformed JSON output."""
    return isinstance(exc, json.JSONDecodeError) or "JSON" in str(exc)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    retries: int = MAX_ATTEMPTS,
    initial_delay: float = INITIAL_DELAY_SECONDS,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> T:
    """Run `operation`, retrying transient failures with doubling delays.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt.
        retries: Total number of attempts.
        initial_delay: Seconds to wait before the second attempt.
        sleep: Awaitable sleep function, injectable for tests.

    Returns:
        The first successful result.

    Raises:
        The last error once attempts are exhausted, or any non-transient error immediately.
    """
    if retries < 1:
        raise ValueError("retries must be at least 1")

    delay = initial_delay
    for attempt in range(1, retries + 1):
        try:
            return await operation()
        except Exception as exc:
            quota = is_quota_error(exc)
            if (quota or is_parse_error(exc)) and attempt < retries:
                LOGGER.warning(
                    "%s error encountered. Retrying in %.1fs... (Attempt %d/%d)",
                    "Quota" if quota else "Syntax",
                    delay,
                    attempt,
                    retries,
                )
                await sleep(delay)
                delay *= 2
                continue
            raise
    raise RuntimeError("with_retry finished without a result")
