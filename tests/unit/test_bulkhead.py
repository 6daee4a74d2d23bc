from __future__ import annotations

import asyncio

import pytest

from shared.resilience.bulkhead import Bulkhead, BulkheadFullError


@pytest.mark.asyncio
async def test_bulkhead_serializes_calls_per_key_when_limit_is_one() -> None:
    bulkhead = Bulkhead(limit_per_key=1)
    active = 0
    max_active = 0

    async def guarded_call() -> None:
        nonlocal active, max_active
        async with bulkhead.limit("mail-provider"):
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.01)
            active -= 1

    await asyncio.gather(guarded_call(), guarded_call())
    assert max_active == 1


@pytest.mark.asyncio
async def test_bulkhead_allows_parallel_calls_for_different_keys() -> None:
    bulkhead = Bulkhead(limit_per_key=1)
    finished: list[str] = []

    async def guarded_call(key: str) -> None:
        async with bulkhead.limit(key):
            await asyncio.sleep(0.01)
            finished.append(key)

    await asyncio.gather(guarded_call("mail-provider"), guarded_call("payment-provider"))
    assert sorted(finished) == ["mail-provider", "payment-provider"]


@pytest.mark.asyncio
async def test_bulkhead_raises_when_acquire_times_out() -> None:
    bulkhead = Bulkhead(limit_per_key=1, acquire_timeout_seconds=0.01)
    release = asyncio.Event()

    async def hold() -> None:
        async with bulkhead.limit("mail-provider"):
            await release.wait()

    holder = asyncio.create_task(hold())
    await asyncio.sleep(0)
    try:
        with pytest.raises(BulkheadFullError):
            async with bulkhead.limit("mail-provider"):
                pass
    finally:
        release.set()
        await holder
