"""
Retry helper for idempotent GitHub calls.

Only blob creation is ever retried: blobs are content-addressed, so creating
the same blob twice yields the same sha and has no visible effect. Tree,
commit and ref steps are never retried.

Retries are off unless ``github.blob_retries`` is set. When on, the wait
before retry ``n`` is ``base_delay * multiplier ** n`` seconds, spread by up
to ``jitter_ratio`` in either direction.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from artefact_sync.core.exceptions import GitHubAPIError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Backoff policy for transient blob failures."""

    max_retries: int = 0
    base_delay: float = 1.0
    multiplier: float = 2.0
    jitter: bool = True
    jitter_ratio: float = 0.2

    def __post_init__(self) -> None:
        checks = [
            (self.max_retries >= 0, "max_retries must be non-negative"),
            (self.base_delay > 0, "base_delay must be positive"),
            (self.multiplier >= 1.0, "multiplier must be >= 1.0"),
            (0.0 <= self.jitter_ratio <= 1.0, "jitter_ratio must be between 0.0 and 1.0"),
        ]
        for ok, message in checks:
            if not ok:
                raise ValueError(message)

    def calculate_delay(self, attempt: int) -> float:
        """Seconds to wait before retry number ``attempt`` (0-indexed)."""
        delay = self.base_delay * self.multiplier**attempt
        if not self.jitter:
            return delay
        spread = delay * self.jitter_ratio
        return max(0.0, random.uniform(delay - spread, delay + spread))


def is_retryable_error(exception: BaseException) -> bool:
    """
    Determine if a GitHub failure is transient.

    Transport failures (no status), rate limiting and 5xx responses are
    transient. A 403 without a rate-limit marker is a permission problem and
    is permanent, like every other status.
    """
    if not isinstance(exception, GitHubAPIError):
        return False
    if exception.status is None:
        return True
    if exception.status in (403, 429):
        return exception.status == 429 or exception.rate_limited
    return 500 <= exception.status < 600


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    config: RetryConfig,
    *,
    description: str = "request",
) -> T:
    """
    Await ``func()``, retrying transient GitHub failures.

    Args:
        func: Zero-argument coroutine factory (called once per attempt)
        config: Retry configuration
        description: Label used in log messages

    Returns:
        The result of the first successful attempt

    Raises:
        GitHubAPIError: The last failure once retries are exhausted, or the
            first non-retryable failure
    """
    attempt = 0
    while True:
        try:
            return await func()
        except GitHubAPIError as e:
            if not is_retryable_error(e):
                logger.debug(
                    "%s: non-retryable error on attempt %d: %s", description, attempt + 1, e
                )
                raise
            if attempt >= config.max_retries:
                if config.max_retries:
                    logger.warning(
                        "%s: max retries (%d) exceeded: %s", description, config.max_retries, e
                    )
                raise

            delay = config.calculate_delay(attempt)
            logger.info(
                "%s: retry attempt %d/%d after %.2fs due to: %s",
                description,
                attempt + 1,
                config.max_retries,
                delay,
                e,
            )
            await asyncio.sleep(delay)
            attempt += 1


__all__ = ["RetryConfig", "call_with_retry", "is_retryable_error"]
