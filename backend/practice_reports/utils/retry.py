"""
Retry with exponential backoff for transient ledger-read failures.

The ledger database can be slow to accept connections after idling, so the
first attempt after a quiet period may fail while later ones succeed.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy.exc import InterfaceError, OperationalError


logger = logging.getLogger("practice_reports.retry")

T = TypeVar("T")

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    OperationalError,
    InterfaceError,
    ConnectionError,
    TimeoutError,
)


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 8.0
    exponential_base: float = 2.0
    jitter: bool = True
    retryable_exceptions: tuple[type[BaseException], ...] = TRANSIENT_ERRORS


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    delay = min(config.base_delay * (config.exponential_base**attempt), config.max_delay)
    if config.jitter:
        # +/- 25%
        spread = delay * 0.25
        delay += random.uniform(-spread, spread)
    return max(0.0, delay)


async def retry_async(
    func: Callable[[], Awaitable[T]],
    *,
    config: RetryConfig,
    operation: str,
) -> T:
    """
    Await ``func()`` until it succeeds or ``config.max_attempts`` is reached.

    Only ``config.retryable_exceptions`` are retried; anything else propagates
    on the first failure. The last transient error is re-raised once attempts
    are exhausted.
    """
    attempts = max(1, config.max_attempts)
    for attempt in range(attempts):
        try:
            return await func()
        except config.retryable_exceptions as exc:
            if attempt == attempts - 1:
                logger.error("%s failed after %d attempts: %s", operation, attempts, exc)
                raise
            delay = calculate_delay(attempt, config)
            logger.warning(
                "%s attempt %d/%d failed (%s); retrying in %.2fs",
                operation,
                attempt + 1,
                attempts,
                exc,
                delay,
            )
            await asyncio.sleep(delay)
    raise RuntimeError("unreachable")
