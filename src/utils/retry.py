"""Retry helpers for transient failures.

Classifies errors by message text and retries async callables with
jittered exponential backoff.

Example:
    result = await retry_async(lambda: telegram.get_updates(offset), max_attempts=3)
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BASE_DELAY = 0.5
DEFAULT_MAX_ATTEMPTS = 3

_DEFAULT_RETRYABLE_PATTERNS = [
    "network",
    "timeout",
    "timed out",
    "econnreset",
    "econnrefused",
    "connection reset",
    "connection refused",
    "rate limit",
    "too many requests",
    "429",
    "500",
    "502",
    "503",
    "504",
]


def is_retryable_error(error: BaseException | str) -> bool:
    """Check if an error is transient using default patterns.

    Args:
        error: Exception or error text.

    Returns:
        True if the error text matches a retryable pattern.
    """
    if isinstance(error, (asyncio.TimeoutError, ConnectionError)):
        return True
    text = str(error).lower()
    return any(p in text for p in _DEFAULT_RETRYABLE_PATTERNS)


def backoff_delay(attempt: int, base_delay: float = DEFAULT_BASE_DELAY, jitter: bool = True) -> float:
    """Delay before the retry following `attempt` (0-based).

    Doubles each attempt; with jitter, a uniform value in [delay/2, delay].
    """
    delay = base_delay * (2 ** attempt)
    if jitter:
        delay = random.uniform(delay / 2, delay)
    return delay


async def retry_async(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    is_retryable: Callable[[BaseException], bool] = is_retryable_error,
    description: str = "operation",
) -> T:
    """Await func, retrying transient failures with exponential backoff.

    Args:
        func: Zero-argument coroutine factory; called once per attempt.
        max_attempts: Total attempts including the first.
        base_delay: Base delay in seconds (doubles each retry).
        is_retryable: Classifier deciding whether a failure is retried.
        description: Label for log lines.

    Returns:
        The first successful result.

    Raises:
        Exception: The last failure, when non-retryable or attempts are exhausted.
    """
    for attempt in range(max_attempts):
        try:
            return await func()
        except Exception as e:
            if attempt + 1 >= max_attempts or not is_retryable(e):
                raise
            delay = backoff_delay(attempt, base_delay)
            logger.warning(
                "%s failed with retryable error (attempt %d/%d), retrying in %.1fs: %s",
                description, attempt + 1, max_attempts, delay, str(e)[:200],
            )
            await asyncio.sleep(delay)
    raise RuntimeError("retry_async called with max_attempts < 1")
