"""
Retry policy for calls to unreliable upstream services.

Transient failures (timeouts, rate limiting, 5xx responses, dropped
connections) are detected from the error message, the same way the SDKs
we talk to surface them, and retried with exponential backoff.  Anything
else is re-raised immediately.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from .errors import RetryableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_MARKERS = (
    "timeout",
    "timed out",
    "rate limit",
    "429",
    "500",
    "502",
    "503",
    "504",
    "connection",
    "network",
)


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to retry and how long to wait between attempts.

    ``max_retries`` counts retries, so a call is attempted at most
    ``max_retries + 1`` times.  The delay before retry ``n`` (zero based)
    is ``base_delay * 2 ** n`` seconds.
    """

    max_retries: int = 3
    base_delay: float = 0.4

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * (2 ** attempt)


def is_retryable(exc: BaseException) -> bool:
    """Return True when ``exc`` looks like a transient upstream failure."""
    if isinstance(exc, RetryableError):
        return True
    if isinstance(exc, (asyncio.TimeoutError, ConnectionError)):
        return True
    message = str(exc).lower()
    return any(marker in message for marker in RETRYABLE_MARKERS)


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    label: str = "call",
) -> T:
    """Await ``fn()`` and retry transient failures according to ``policy``.

    Args:
        fn: Zero-argument coroutine factory.  It is invoked once per
            attempt so each attempt gets a fresh coroutine.
        policy: Retry policy; defaults to :class:`RetryPolicy`.
        label: Short name used in log messages.

    Returns:
        Whatever ``fn`` returns on the first successful attempt.

    Raises:
        The original exception when it is not retryable or when all
        attempts are exhausted.
    """
    policy = policy or RetryPolicy()
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as exc:  # noqa: BLE001
            if attempt >= policy.max_retries or not is_retryable(exc):
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.2fs",
                label,
                attempt + 1,
                policy.max_retries + 1,
                exc,
                delay,
            )
            await asyncio.sleep(delay)
            attempt += 1
