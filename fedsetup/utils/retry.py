from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, TypeVar

from ..errors import APIError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def compute_backoff(attempt: int, base: float = 1.5, jitter: float = 0.5) -> float:
    """Compute exponential backoff with jitter."""
    delay = base ** attempt
    return delay + random.uniform(0, jitter)


async def schedule_retry(attempt: int) -> None:
    """Sleep for computed backoff delay before retrying."""
    delay = compute_backoff(attempt)
    await asyncio.sleep(delay)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    backoff: Optional[Callable[[int], Awaitable[None]]] = None,
) -> T:
    """Run ``operation`` retrying network-level failures.

    A typed :class:`APIError` is never retried and propagates on its first
    occurrence. Any other exception is retried up to ``max_attempts`` times in
    total, sleeping between attempts.
    """
    wait = backoff or schedule_retry
    attempt = 0
    while True:
        try:
            return await operation()
        except APIError:
            raise
        except Exception as exc:
            attempt += 1
            if attempt >= max_attempts:
                raise
            logger.warning(f"Attempt {attempt}/{max_attempts} failed: {exc!r}; retrying")
            await wait(attempt - 1)


def make_backoff(base: float = 1.5, jitter: float = 0.5) -> Callable[[int], Awaitable[None]]:
    """Return a sleep function using the given backoff parameters."""

    async def _sleep(attempt: int) -> None:
        await asyncio.sleep(compute_backoff(attempt, base, jitter))

    return _sleep
