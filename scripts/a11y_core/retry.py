"""Bounded, strictly sequential retries."""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from scripts.a11y_core.config import RetryPolicy

LOGGER = logging.getLogger("a11y-scan")

T = TypeVar("T")

RetryObserver = Callable[[int, BaseException], None]


class RetriesExhausted(Exception):
    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"Failed after {attempts} attempts. Last error: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    on_retry: Optional[RetryObserver] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation`` up to ``policy.attempts`` times.

    ``on_retry`` sees every failed attempt that will be retried. Cancellation
    is never retried: ``asyncio.CancelledError`` is not an ``Exception``.
    """
    attempts = policy.attempts
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            if attempt == attempts:
                raise RetriesExhausted(attempts, exc) from exc
            if on_retry is not None:
                on_retry(attempt, exc)
            delay = policy.delay_for(attempt)
            LOGGER.debug("Attempt %d/%d failed; retrying in %.2fs", attempt, attempts, delay)
            await sleep(delay)
    raise AssertionError("unreachable")
