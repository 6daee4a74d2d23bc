from __future__ import annotations

import asyncio

import pytest

from shared.resilience.backoff import RetryPolicy, exponential_backoff
from shared.resilience.retry import retry_async

_NO_DELAY = RetryPolicy(max_attempts=3, base_delay_seconds=0.0, max_delay_seconds=0.0, jitter=0.0)


def test_exponential_backoff_without_jitter_when_random_is_zero(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr("random.uniform", lambda _a, _b: 0.0)

    first = exponential_backoff(1, base_seconds=0.1, cap_seconds=1.0, jitter=0.5)
    second = exponential_backoff(2, base_seconds=0.1, cap_seconds=1.0, jitter=0.5)

    assert first == 0.1
    assert second == 0.2


def test_retry_policy_caps_delay_and_rejects_invalid_values() -> None:
    policy = RetryPolicy(base_delay_seconds=1.0, multiplier=10.0, max_delay_seconds=5.0, jitter=0)

    assert policy.delay_for(1) == 1.0
    assert policy.delay_for(4) == 5.0
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
    with pytest.raises(ValueError):
        RetryPolicy(multiplier=0.5)


@pytest.mark.asyncio
async def test_retry_async_retries_until_success() -> None:
    attempts = 0
    retried: list[int] = []

    async def operation() -> str:
        await asyncio.sleep(0)
        nonlocal attempts
        attempts += 1
        if attempts < 3:
            raise ValueError("transient")
        return "ok"

    result = await retry_async(
        operation,
        should_retry=lambda exc: isinstance(exc, ValueError),
        policy=_NO_DELAY,
        on_retry=lambda attempt, _exc, _delay: retried.append(attempt),
    )

    assert result == "ok"
    assert attempts == 3
    assert retried == [1, 2]


@pytest.mark.asyncio
async def test_retry_async_stops_for_non_retryable_error() -> None:
    async def operation() -> str:
        await asyncio.sleep(0)
        raise RuntimeError("fatal")

    with pytest.raises(RuntimeError):
        await retry_async(operation, should_retry=lambda _exc: False, policy=_NO_DELAY)


@pytest.mark.asyncio
async def test_retry_async_reraises_after_exhausting_attempts() -> None:
    attempts = 0

    async def operation() -> str:
        nonlocal attempts
        attempts += 1
        raise ValueError("still failing")

    with pytest.raises(ValueError, match="still failing"):
        await retry_async(operation, should_retry=lambda _exc: True, policy=_NO_DELAY)
    assert attempts == 3
