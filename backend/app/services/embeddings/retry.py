from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")

BackoffFn = Callable[[int], float]
RetryPredicate = Callable[[BaseException], bool]
RetryHook = Callable[[int, BaseException, float], None]


def linear_backoff(base_delay_seconds: float) -> BackoffFn:
    """Delay of ``base * attempt`` seconds after the given failed attempt."""

    def _backoff(attempt: int) -> float:
        return max(0.0, base_delay_seconds) * attempt

    return _backoff


def exponential_backoff(base_delay_seconds: float, factor: float = 2.0) -> BackoffFn:
    def _backoff(attempt: int) -> float:
        return max(0.0, base_delay_seconds) * (factor ** (attempt - 1))

    return _backoff


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    max_attempts: int,
    backoff: BackoffFn,
    retry_if: Optional[RetryPredicate] = None,
    on_retry: Optional[RetryHook] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await ``fn()`` until it succeeds or ``max_attempts`` calls have failed.

    Attempts run strictly one after another. ``retry_if`` returning False stops
    immediately; in every failure case the last exception is re-raised.
    """
    attempts = max(1, int(max_attempts))
    attempt = 1
    while True:
        try:
            return await fn()
        except Exception as exc:
            if attempt >= attempts or (retry_if is not None and not retry_if(exc)):
                raise
            delay = backoff(attempt)
            if on_retry is not None:
                on_retry(attempt, exc, delay)
            if delay > 0:
                await sleep(delay)
            attempt += 1
