from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.contracts import (
    ChoreographyError,
    DeadLetterORM,
    DeadLetterStatus,
    ErrorCategory,
    EventEnvelope,
    PayloadValidationError,
    decode_envelope,
)
from shared.logging import get_logger
from shared.messaging.contracts import EventPublisher
from shared.messaging.metrics import dead_lettered
from shared.utils.ids import new_uuid
from shared.utils.time import utc_now

logger = get_logger(__name__)
_MAX_ERROR_MESSAGE = 1024
_MAX_RAW_BODY = 64 * 1024


class DeadLetterNotFoundError(ChoreographyError):
    def __init__(self, dead_letter_id: UUID) -> None:
        super().__init__(
            ErrorCategory.NOT_FOUND, f"Dead letter {dead_letter_id} not found", http_status=404
        )


@dataclass(frozen=True)
class DeadLetter:
    topic: str
    consumer_group: str
    error_type: str
    error_message: str
    attempts: int
    event_id: UUID | None = None
    partition_key: str | None = None
    envelope: dict[str, Any] | None = None
    raw_body: str | None = None
    status: DeadLetterStatus = DeadLetterStatus.PENDING
    id: UUID = field(default_factory=new_uuid)
    created_at: datetime = field(default_factory=utc_now)


class DeadLetterStore(Protocol):
    async def add(self, dead_letter: DeadLetter) -> None: ...

    async def get(self, dead_letter_id: UUID) -> DeadLetter | None: ...

    async def list_pending(self, limit: int) -> list[DeadLetter]: ...

    async def mark_replayed(self, dead_letter_id: UUID) -> None: ...


class MemoryDeadLetterStore:
    def __init__(self) -> None:
        self._items: dict[UUID, DeadLetter] = {}
        self._lock = asyncio.Lock()

    async def add(self, dead_letter: DeadLetter) -> None:
        async with self._lock:
            self._items[dead_letter.id] = dead_letter

    async def get(self, dead_letter_id: UUID) -> DeadLetter | None:
        return self._items.get(dead_letter_id)

    async def list_pending(self, limit: int) -> list[DeadLetter]:
        pending = [item for item in self._items.values() if item.status == DeadLetterStatus.PENDING]
        return sorted(pending, key=lambda item: item.created_at)[:limit]

    async def mark_replayed(self, dead_letter_id: UUID) -> None:
        async with self._lock:
            current = self._items.get(dead_letter_id)
            if current is not None:
                self._items[dead_letter_id] = replace(current, status=DeadLetterStatus.REPLAYED)

    @property
    def items(self) -> list[DeadLetter]:
        return list(self._items.values())


class SqlDeadLetterStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def add(self, dead_letter: DeadLetter) -> None:
        async with self._session_factory() as session:
            session.add(
                DeadLetterORM(
                    id=dead_letter.id,
                    event_id=dead_letter.event_id,
                    topic=dead_letter.topic,
                    consumer_group=dead_letter.consumer_group,
                    partition_key=dead_letter.partition_key,
                    envelope=dead_letter.envelope,
                    raw_body=dead_letter.raw_body,
                    error_type=dead_letter.error_type,
                    error_message=dead_letter.error_message,
                    attempts=dead_letter.attempts,
                    status=dead_letter.status,
                    created_at=dead_letter.created_at,
                )
            )
            await session.commit()

    async def get(self, dead_letter_id: UUID) -> DeadLetter | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(DeadLetterORM).where(DeadLetterORM.id == dead_letter_id)
            )
            row = result.scalar_one_or_none()
            return _from_row(row) if row else None

    async def list_pending(self, limit: int) -> list[DeadLetter]:
        async with self._session_factory() as session:
            stmt = (
                select(DeadLetterORM)
                .where(DeadLetterORM.status == DeadLetterStatus.PENDING)
                .order_by(DeadLetterORM.created_at)
                .limit(limit)
            )
            result = await session.execute(stmt)
            return [_from_row(row) for row in result.scalars().all()]

    async def mark_replayed(self, dead_letter_id: UUID) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(DeadLetterORM)
                .where(DeadLetterORM.id == dead_letter_id)
                .values(status=DeadLetterStatus.REPLAYED, replayed_at=utc_now())
            )
            await session.commit()


def _from_row(row: DeadLetterORM) -> DeadLetter:
    return DeadLetter(
        id=row.id,
        event_id=row.event_id,
        topic=row.topic,
        consumer_group=row.consumer_group,
        partition_key=row.partition_key,
        envelope=row.envelope,
        raw_body=row.raw_body,
        error_type=row.error_type,
        error_message=row.error_message,
        attempts=row.attempts,
        status=row.status,
        created_at=row.created_at,
    )


class DeadLetterHandler:
    def __init__(self, store: DeadLetterStore) -> None:
        self._store = store

    async def handle(
        self,
        envelope: EventEnvelope,
        consumer_group: str,
        error: BaseException,
        attempts: int,
    ) -> DeadLetter:
        dead_letter = DeadLetter(
            event_id=envelope.event_id,
            topic=envelope.topic.value,
            consumer_group=consumer_group,
            partition_key=envelope.partition_key,
            envelope=envelope.to_wire(),
            error_type=type(error).__name__,
            error_message=str(error)[:_MAX_ERROR_MESSAGE],
            attempts=attempts,
        )
        await self._store.add(dead_letter)
        self._record(dead_letter)
        return dead_letter

    async def handle_undecodable(
        self,
        raw: bytes | str,
        topic: str,
        consumer_group: str,
        error: BaseException,
    ) -> DeadLetter:
        body = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
        dead_letter = DeadLetter(
            topic=topic,
            consumer_group=consumer_group,
            raw_body=body[:_MAX_RAW_BODY],
            error_type=type(error).__name__,
            error_message=str(error)[:_MAX_ERROR_MESSAGE],
            attempts=1,
        )
        await self._store.add(dead_letter)
        self._record(dead_letter)
        return dead_letter

    async def pending(self, limit: int = 100) -> list[DeadLetter]:
        return await self._store.list_pending(limit)

    async def replay(self, dead_letter_id: UUID, publisher: EventPublisher) -> UUID:
        dead_letter = await self._store.get(dead_letter_id)
        if dead_letter is None:
            raise DeadLetterNotFoundError(dead_letter_id)
        if dead_letter.envelope is None:
            raise PayloadValidationError("Undecodable dead letters cannot be replayed")

        envelope = decode_envelope(dead_letter.envelope)
        await publisher.publish_envelope(envelope)
        await self._store.mark_replayed(dead_letter_id)
        logger.info(
            "dead_letter_replayed",
            extra={
                "extra_fields": {
                    "dead_letter_id": str(dead_letter_id),
                    "event_id": str(envelope.event_id),
                    "topic": envelope.topic.value,
                }
            },
        )
        return envelope.event_id

    def _record(self, dead_letter: DeadLetter) -> None:
        dead_lettered.add(
            1, {"topic": dead_letter.topic, "consumer_group": dead_letter.consumer_group}
        )
        logger.error(
            "event_dead_lettered",
            extra={
                "extra_fields": {
                    "dead_letter_id": str(dead_letter.id),
                    "event_id": str(dead_letter.event_id) if dead_letter.event_id else None,
                    "topic": dead_letter.topic,
                    "consumer_group": dead_letter.consumer_group,
                    "attempts": dead_letter.attempts,
                    "error_type": dead_letter.error_type,
                }
            },
        )


def build_dead_letter_store(
    backend: str, session_factory: async_sessionmaker[AsyncSession] | None = None
) -> DeadLetterStore:
    normalized = backend.strip().lower()
    if normalized == "memory":
        return MemoryDeadLetterStore()
    if normalized == "sql":
        if session_factory is None:
            raise ValueError("A session factory is required when DEAD_LETTER_BACKEND=sql")
        return SqlDeadLetterStore(session_factory)
    raise ValueError(f"Unsupported dead-letter backend: {backend}")
