from __future__ import annotations

from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.contracts import IdempotencyOutcome, ProcessedEventORM, ReservationState
from shared.contracts.errors import ReservationInFlightError
from shared.idempotency.metrics import records_purged, reservations_taken_over
from shared.utils.time import ensure_aware, utc_now


class ProcessedEventRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def reserve(
        self,
        consumer_group: str,
        event_id: UUID,
        *,
        lease_seconds: int = 60,
        now: datetime | None = None,
    ) -> IdempotencyOutcome:
        reserved_at = now or utc_now()
        try:
            async with self._session.begin_nested():
                self._session.add(
                    ProcessedEventORM(
                        consumer_group=consumer_group,
                        event_id=event_id,
                        state=ReservationState.RESERVED,
                        reserved_at=reserved_at,
                    )
                )
            return IdempotencyOutcome.FRESH
        except IntegrityError:
            return await self._resolve_existing(
                consumer_group, event_id, reserved_at, timedelta(seconds=lease_seconds)
            )

    async def _resolve_existing(
        self,
        consumer_group: str,
        event_id: UUID,
        now: datetime,
        lease: timedelta,
    ) -> IdempotencyOutcome:
        stmt = (
            select(ProcessedEventORM)
            .where(
                ProcessedEventORM.consumer_group == consumer_group,
                ProcessedEventORM.event_id == event_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        existing = result.scalar_one_or_none()
        if existing is None:
            raise ReservationInFlightError(consumer_group, event_id)
        if existing.state == ReservationState.COMMITTED:
            return IdempotencyOutcome.ALREADY_PROCESSED
        if ensure_aware(existing.reserved_at) + lease > now:
            raise ReservationInFlightError(consumer_group, event_id)

        takeover = (
            update(ProcessedEventORM)
            .where(
                ProcessedEventORM.consumer_group == consumer_group,
                ProcessedEventORM.event_id == event_id,
                ProcessedEventORM.state == ReservationState.RESERVED,
                ProcessedEventORM.reserved_at == existing.reserved_at,
            )
            .values(reserved_at=now)
        )
        taken = await self._session.execute(takeover)
        if not bool(getattr(taken, "rowcount", 0)):
            raise ReservationInFlightError(consumer_group, event_id)
        reservations_taken_over.add(1, {"consumer_group": consumer_group})
        return IdempotencyOutcome.FRESH

    async def mark_committed(
        self,
        consumer_group: str,
        event_id: UUID,
        *,
        result_hash: str | None = None,
        now: datetime | None = None,
    ) -> bool:
        stmt = (
            update(ProcessedEventORM)
            .where(
                ProcessedEventORM.consumer_group == consumer_group,
                ProcessedEventORM.event_id == event_id,
            )
            .values(
                state=ReservationState.COMMITTED,
                processed_at=now or utc_now(),
                result_hash=result_hash,
            )
        )
        result = await self._session.execute(stmt)
        return bool(getattr(result, "rowcount", 0))

    async def release(self, consumer_group: str, event_id: UUID) -> None:
        stmt = delete(ProcessedEventORM).where(
            ProcessedEventORM.consumer_group == consumer_group,
            ProcessedEventORM.event_id == event_id,
            ProcessedEventORM.state == ReservationState.RESERVED,
        )
        await self._session.execute(stmt)

    async def purge_before(self, cutoff: datetime) -> int:
        stmt = delete(ProcessedEventORM).where(
            ProcessedEventORM.state == ReservationState.COMMITTED,
            ProcessedEventORM.processed_at < cutoff,
        )
        result = await self._session.execute(stmt)
        return int(getattr(result, "rowcount", 0) or 0)


class SqlIdempotencyLedger:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        retention_seconds: int = 30 * 24 * 3600,
        lease_seconds: int = 60,
    ) -> None:
        self._session_factory = session_factory
        self._retention = timedelta(seconds=retention_seconds)
        self._lease_seconds = lease_seconds

    async def check_and_reserve(self, consumer_group: str, event_id: UUID) -> IdempotencyOutcome:
        async with self._session_factory() as session:
            outcome = await ProcessedEventRepository(session).reserve(
                consumer_group, event_id, lease_seconds=self._lease_seconds
            )
            await session.commit()
            return outcome

    async def commit(
        self, consumer_group: str, event_id: UUID, result_hash: str | None = None
    ) -> None:
        async with self._session_factory() as session:
            repository = ProcessedEventRepository(session)
            if not await repository.mark_committed(
                consumer_group, event_id, result_hash=result_hash
            ):
                session.add(
                    ProcessedEventORM(
                        consumer_group=consumer_group,
                        event_id=event_id,
                        state=ReservationState.COMMITTED,
                        reserved_at=utc_now(),
                        processed_at=utc_now(),
                        result_hash=result_hash,
                    )
                )
            await session.commit()

    async def release(self, consumer_group: str, event_id: UUID) -> None:
        async with self._session_factory() as session:
            await ProcessedEventRepository(session).release(consumer_group, event_id)
            await session.commit()

    async def purge_expired(self) -> int:
        async with self._session_factory() as session:
            purged = await ProcessedEventRepository(session).purge_before(
                utc_now() - self._retention
            )
            await session.commit()
        if purged:
            records_purged.add(purged)
        return purged
