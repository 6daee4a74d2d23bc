from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class BulkheadFullError(RuntimeError):
    pass


class Bulkhead:
    def __init__(
        self, limit_per_key: int = 10, acquire_timeout_seconds: float | None = None
    ) -> None:
        self._limit_per_key = limit_per_key
        self._acquire_timeout_seconds = acquire_timeout_seconds
        self._locks: defaultdict[str, asyncio.Semaphore] = defaultdict(self._new_semaphore)

    def _new_semaphore(self) -> asyncio.Semaphore:
        return asyncio.Semaphore(self._limit_per_key)

    @asynccontextmanager
    async def limit(self, key: str) -> AsyncIterator[None]:
        semaphore = self._locks[key]
        if self._acquire_timeout_seconds is None:
            await semaphore.acquire()
        else:
            try:
                await asyncio.wait_for(semaphore.acquire(), self._acquire_timeout_seconds)
            except TimeoutError as exc:
                raise BulkheadFullError(f"Bulkhead saturated for {key}") from exc
        try:
            yield
        finally:
            semaphore.release()
