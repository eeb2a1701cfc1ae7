from __future__ import annotations

import pytest

from app.core.exceptions import DimensionMismatchError, TransientCapabilityError
from app.services.embeddings.retry import exponential_backoff, linear_backoff, with_retry
from conftest import RecordingSleep


def test_linear_backoff_grows_with_attempt_number() -> None:
    backoff = linear_backoff(1.0)
    assert [backoff(n) for n in (1, 2, 3)] == [1.0, 2.0, 3.0]


def test_exponential_backoff_doubles() -> None:
    backoff = exponential_backoff(0.5)
    assert [backoff(n) for n in (1, 2, 3)] == [0.5, 1.0, 2.0]


@pytest.mark.asyncio
async def test_with_retry_returns_after_transient_failures() -> None:
    sleep = RecordingSleep()
    calls = {"count": 0}

    async def flaky() -> str:
        calls["count"] += 1
        if calls["count"] < 3:
            raise TransientCapabilityError("try again")
        return "ok"

    result = await with_retry(flaky, max_attempts=3, backoff=linear_backoff(1.0), sleep=sleep)

    assert result == "ok"
    assert calls["count"] == 3
    assert sleep.calls == [1.0, 2.0]


@pytest.mark.asyncio
async def test_with_retry_reraises_last_error_when_attempts_run_out() -> None:
    sleep = RecordingSleep()
    calls = {"count": 0}

    async def always_fails() -> None:
        calls["count"] += 1
        raise TransientCapabilityError(f"failure {calls['count']}")

    with pytest.raises(TransientCapabilityError, match="failure 2"):
        await with_retry(always_fails, max_attempts=2, backoff=linear_backoff(0.1), sleep=sleep)

    assert calls["count"] == 2
    assert len(sleep.calls) == 1


@pytest.mark.asyncio
async def test_with_retry_stops_on_non_retryable_error() -> None:
    sleep = RecordingSleep()
    calls = {"count": 0}
    hooks = []

    async def wrong_shape() -> None:
        calls["count"] += 1
        raise DimensionMismatchError(4, 5)

    with pytest.raises(DimensionMismatchError):
        await with_retry(
            wrong_shape,
            max_attempts=5,
            backoff=linear_backoff(1.0),
            retry_if=lambda exc: not isinstance(exc, DimensionMismatchError),
            on_retry=lambda *args: hooks.append(args),
            sleep=sleep,
        )

    assert calls["count"] == 1
    assert hooks == []
    assert sleep.calls == []


@pytest.mark.asyncio
async def test_with_retry_reports_each_retry() -> None:
    hooks = []
    calls = {"count": 0}

    async def flaky() -> int:
        calls["count"] += 1
        if calls["count"] == 1:
            raise TransientCapabilityError("once")
        return 42

    result = await with_retry(
        flaky,
        max_attempts=3,
        backoff=linear_backoff(0.0),
        on_retry=lambda attempt, exc, delay: hooks.append((attempt, str(exc), delay)),
        sleep=RecordingSleep(),
    )

    assert result == 42
    assert hooks == [(1, "once", 0.0)]
