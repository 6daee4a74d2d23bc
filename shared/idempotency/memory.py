from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from shared.contracts.enums import IdempotencyOutcome, ReservationState
from shared.contracts.errors import ReservationInFlightError
from shared.idempotency.metrics import records_purged, reservations_taken_over
from shared.utils.time import utc_now


@dataclass
class _LedgerEntry:
    state: ReservationState
    reserved_at: datetime
    processed_at: datetime | None = None
    result_hash: str | None = None


class MemoryIdempotencyLedger:
    def __init__(
        self,
        *,
        retention_seconds: int = 30 * 24 * 3600,
        lease_seconds: int = 60,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._retention = timedelta(seconds=retention_seconds)
        self._lease = timedelta(seconds=lease_seconds)
        self._clock = clock
        self._entries: dict[tuple[str, UUID], _LedgerEntry] = {}
        self._lock = asyncio.Lock()

    async def check_and_reserve(self, consumer_group: str, event_id: UUID) -> IdempotencyOutcome:
        key = (consumer_group, event_id)
        async with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is None:
                self._entries[key] = _LedgerEntry(ReservationState.RESERVED, reserved_at=now)
                return IdempotencyOutcome.FRESH
            if entry.state is ReservationState.COMMITTED:
                return IdempotencyOutcome.ALREADY_PROCESSED
            if entry.reserved_at + self._lease <= now:
                entry.reserved_at = now
                reservations_taken_over.add(1, {"consumer_group": consumer_group})
                return IdempotencyOutcome.FRESH
            raise ReservationInFlightError(consumer_group, event_id)

    async def commit(
        self, consumer_group: str, event_id: UUID, result_hash: str | None = None
    ) -> None:
        async with self._lock:
            now = self._clock()
            entry = self._entries.setdefault(
                (consumer_group, event_id),
                _LedgerEntry(ReservationState.RESERVED, reserved_at=now),
            )
            entry.state = ReservationState.COMMITTED
            entry.processed_at = now
            entry.result_hash = result_hash

    async def release(self, consumer_group: str, event_id: UUID) -> None:
        async with self._lock:
            entry = self._entries.get((consumer_group, event_id))
            if entry is not None and entry.state is ReservationState.RESERVED:
                del self._entries[(consumer_group, event_id)]

    async def purge_expired(self) -> int:
        async with self._lock:
            cutoff = self._clock() - self._retention
            expired = [
                key
                for key, entry in self._entries.items()
                if entry.processed_at is not None and entry.processed_at < cutoff
            ]
            for key in expired:
                del self._entries[key]
        if expired:
            records_purged.add(len(expired))
        return len(expired)

    def is_committed(self, consumer_group: str, event_id: UUID) -> bool:
        entry = self._entries.get((consumer_group, event_id))
        return entry is not None and entry.state is ReservationState.COMMITTED
