"""Retry helper for rate-limited calls with exponential backoff."""

import asyncio
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

import structlog

from ..exceptions import RateLimitExceededError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


async def retry_on_rate_limit(
    func: Callable[[], Awaitable[T]],
    rate_limit_errors: Tuple[Type[BaseException], ...],
    max_retries: int = 3,
    base_delay: float = 1.5,
    sleep: Optional[Sleep] = None,
) -> T:
    """Await ``func`` and retry only on rate-limit errors.

    ``max_retries`` is the total number of attempts. The first retry waits
    ``base_delay`` seconds and every further retry waits twice as long as the
    one before. Any exception outside ``rate_limit_errors`` propagates on the
    first occurrence.

    Raises:
        RateLimitExceededError: every attempt was rate limited
    """
    sleep = sleep or asyncio.sleep
    delay = base_delay

    for attempt in range(1, max_retries + 1):
        try:
            return await func()
        except rate_limit_errors as e:
            if attempt >= max_retries:
                logger.error("Rate limit retries exhausted", attempts=attempt, error=str(e))
                raise RateLimitExceededError(attempts=attempt, last_error=str(e)) from e

            logger.warning(
                "Rate limited, backing off",
                attempt=attempt,
                max_retries=max_retries,
                delay_seconds=delay,
            )
            await sleep(delay)
            delay *= 2

    # max_retries < 1
    raise RateLimitExceededError(attempts=0)
