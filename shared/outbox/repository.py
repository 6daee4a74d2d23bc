from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import exists, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from shared.contracts import EventEnvelope, OutboxEventORM, OutboxStatus, decode_envelope
from shared.utils.time import ensure_aware, utc_now

_MAX_ERROR_LENGTH = 512


class OutboxRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    def add_envelope(self, envelope: EventEnvelope) -> OutboxEventORM:
        event = OutboxEventORM(
            event_id=envelope.event_id,
            topic=envelope.topic,
            partition_key=envelope.partition_key,
            schema_version=envelope.schema_version,
            payload=envelope.payload.model_dump(mode="json", by_alias=True),
            trace_id=envelope.trace_id,
            produced_at=envelope.produced_at,
            status=OutboxStatus.PENDING,
            attempts=0,
            next_attempt_at=envelope.produced_at,
        )
        self._session.add(event)
        return event

    async def fetch_due(self, limit: int, now: datetime | None = None) -> list[OutboxEventORM]:
        # Only the oldest pending event of each partition key is eligible.
        cutoff = now or utc_now()
        older = aliased(OutboxEventORM)
        has_older_pending = exists().where(
            older.partition_key == OutboxEventORM.partition_key,
            older.status == OutboxStatus.PENDING,
            older.sequence < OutboxEventORM.sequence,
        )
        stmt = (
            select(OutboxEventORM)
            .where(
                OutboxEventORM.status == OutboxStatus.PENDING,
                OutboxEventORM.next_attempt_at <= cutoff,
                ~has_older_pending,
            )
            .order_by(OutboxEventORM.sequence)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def mark_sent(self, event_id: UUID) -> None:
        stmt = (
            update(OutboxEventORM)
            .where(OutboxEventORM.event_id == event_id)
            .values(status=OutboxStatus.SENT, last_error=None)
        )
        await self._session.execute(stmt)

    async def mark_failed(self, event_id: UUID, attempts: int, error: str) -> None:
        stmt = (
            update(OutboxEventORM)
            .where(OutboxEventORM.event_id == event_id)
            .values(
                status=OutboxStatus.FAILED,
                attempts=attempts,
                last_error=error[:_MAX_ERROR_LENGTH],
            )
        )
        await self._session.execute(stmt)

    async def reschedule(
        self, event_id: UUID, attempts: int, delay_seconds: float, error: str
    ) -> None:
        next_attempt_at = utc_now() + timedelta(seconds=delay_seconds)
        stmt = (
            update(OutboxEventORM)
            .where(OutboxEventORM.event_id == event_id)
            .values(
                attempts=attempts,
                next_attempt_at=next_attempt_at,
                last_error=error[:_MAX_ERROR_LENGTH],
            )
        )
        await self._session.execute(stmt)

    async def backlog_size(self) -> int:
        stmt = (
            select(func.count())
            .select_from(OutboxEventORM)
            .where(OutboxEventORM.status == OutboxStatus.PENDING)
        )
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    async def oldest_pending_lag_seconds(self) -> float:
        stmt = select(func.min(OutboxEventORM.created_at)).where(
            OutboxEventORM.status == OutboxStatus.PENDING
        )
        result = await self._session.execute(stmt)
        oldest = result.scalar_one_or_none()
        if not oldest:
            return 0.0
        return max(0.0, (utc_now() - ensure_aware(oldest)).total_seconds())


def row_document(event: OutboxEventORM) -> dict[str, Any]:
    return {
        "eventId": str(event.event_id),
        "topic": event.topic.value,
        "partitionKey": event.partition_key,
        "schemaVersion": event.schema_version,
        "producedAt": ensure_aware(event.produced_at).isoformat(),
        "traceId": event.trace_id,
        "payload": event.payload,
    }


def envelope_from_row(event: OutboxEventORM) -> EventEnvelope:
    return decode_envelope(row_document(event))
