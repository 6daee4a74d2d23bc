from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from shared.resilience.backoff import RetryPolicy

T = TypeVar("T")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    should_retry: Callable[[Exception], bool],
    policy: RetryPolicy | None = None,
    on_retry: Callable[[int, Exception, float], None] | None = None,
) -> T:
    resolved = policy or RetryPolicy(max_attempts=3, base_delay_seconds=0.05)
    last_error: Exception | None = None
    for attempt in range(1, resolved.max_attempts + 1):
        try:
            return await operation()
        except Exception as exc:  # noqa: BLE001
            if not should_retry(exc) or attempt == resolved.max_attempts:
                raise
            last_error = exc
            delay = resolved.delay_for(attempt)
            if on_retry is not None:
                on_retry(attempt, exc, delay)
            await asyncio.sleep(delay)
    if last_error:
        raise last_error
    raise RuntimeError("retry_async reached an invalid state")
