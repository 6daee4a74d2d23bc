from __future__ import annotations

import asyncio
import json

from opentelemetry import trace
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.constants import OUTBOX_RELAY_GROUP
from shared.contracts import (
    ChoreographyError,
    EventEnvelope,
    OutboxEventORM,
    PayloadValidationError,
)
from shared.logging import get_logger
from shared.messaging.contracts import EventPublisher
from shared.messaging.dead_letter import DeadLetterHandler
from shared.messaging.settings import MessagingSettings
from shared.observability import EVENT_ID, PARTITION_KEY, TOPIC
from shared.outbox.metrics import outbox_backlog, outbox_failed, outbox_lag_seconds, outbox_relayed
from shared.outbox.repository import OutboxRepository, envelope_from_row, row_document
from shared.resilience.backoff import exponential_backoff

logger = get_logger(__name__)


class OutboxRelayWorker:
    """Moves committed outbox rows onto the event bus.

    Rows are published strictly in insertion order per partition key: a key's
    next row is only picked up once the previous one is sent or given up. A row
    that is given up goes to the dead-letter store, where it can be replayed with
    its original event id; later rows of the same key are relayed meanwhile.
    """

    def __init__(
        self,
        settings: MessagingSettings,
        session_factory: async_sessionmaker[AsyncSession],
        publisher: EventPublisher,
        dead_letters: DeadLetterHandler,
    ) -> None:
        self._settings = settings
        self._session_factory = session_factory
        self._publisher = publisher
        self._dead_letters = dead_letters
        self._tracer = trace.get_tracer(__name__)

    async def run_forever(self) -> None:
        while True:
            try:
                relayed = await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                logger.exception(
                    "outbox_iteration_failed",
                    extra={"extra_fields": {"error_type": type(exc).__name__}},
                )
                relayed = 0
            if not relayed:
                await asyncio.sleep(self._settings.outbox_poll_interval_seconds)

    async def run_once(self) -> int:
        async with self._session_factory() as session:
            outbox_repo = OutboxRepository(session)
            outbox_backlog.record(await outbox_repo.backlog_size())
            outbox_lag_seconds.record(await outbox_repo.oldest_pending_lag_seconds())
            events = await outbox_repo.fetch_due(self._settings.outbox_batch_size)
            relayed = 0
            blocked_keys: set[str] = set()
            for event in events:
                if event.partition_key in blocked_keys:
                    continue
                if await self._relay_event(outbox_repo, event):
                    relayed += 1
                else:
                    blocked_keys.add(event.partition_key)
            await session.commit()
            return relayed

    async def _relay_event(self, outbox_repo: OutboxRepository, event: OutboxEventORM) -> bool:
        with self._tracer.start_as_current_span(
            f"relay {event.topic.value}",
            kind=trace.SpanKind.PRODUCER,
            attributes={
                EVENT_ID: str(event.event_id),
                TOPIC: event.topic.value,
                PARTITION_KEY: event.partition_key,
            },
        ):
            attempts = event.attempts + 1
            envelope: EventEnvelope | None = None
            try:
                envelope = envelope_from_row(event)
                await self._publisher.publish_envelope(envelope)
            except PayloadValidationError as exc:
                await self._give_up(outbox_repo, event, envelope, attempts, exc)
                return False
            except Exception as exc:  # noqa: BLE001
                await self._handle_publish_error(outbox_repo, event, envelope, attempts, exc)
                return False
            await outbox_repo.mark_sent(event.event_id)
            outbox_relayed.add(1, {"topic": event.topic.value})
            return True

    async def _handle_publish_error(
        self,
        outbox_repo: OutboxRepository,
        event: OutboxEventORM,
        envelope: EventEnvelope | None,
        attempts: int,
        error: Exception,
    ) -> None:
        if attempts >= self._settings.outbox_max_attempts:
            await self._give_up(outbox_repo, event, envelope, attempts, error)
            return
        delay = exponential_backoff(attempts, base_seconds=0.5, cap_seconds=30.0)
        logger.warning(
            "outbox_publish_rescheduled",
            extra={
                "extra_fields": {
                    "event_id": str(event.event_id),
                    "topic": event.topic.value,
                    "attempt": attempts,
                    "delay_seconds": round(delay, 3),
                    "error_type": type(error).__name__,
                }
            },
        )
        await outbox_repo.reschedule(
            event.event_id, attempts=attempts, delay_seconds=delay, error=_describe(error)
        )

    async def _give_up(
        self,
        outbox_repo: OutboxRepository,
        event: OutboxEventORM,
        envelope: EventEnvelope | None,
        attempts: int,
        error: Exception,
    ) -> None:
        logger.error(
            "outbox_event_failed",
            extra={
                "extra_fields": {
                    "event_id": str(event.event_id),
                    "topic": event.topic.value,
                    "partition_key": event.partition_key,
                    "attempt": attempts,
                    "error_type": type(error).__name__,
                }
            },
        )
        outbox_failed.add(1, {"topic": event.topic.value})
        if envelope is None:
            raw = json.dumps(row_document(event), default=str)
            await self._dead_letters.handle_undecodable(
                raw, event.topic.value, OUTBOX_RELAY_GROUP, error
            )
        else:
            await self._dead_letters.handle(envelope, OUTBOX_RELAY_GROUP, error, attempts)
        await outbox_repo.mark_failed(event.event_id, attempts, _describe(error))


def _describe(error: Exception) -> str:
    if isinstance(error, ChoreographyError):
        return f"{error.category.value}: {error.message}"
    return f"{type(error).__name__}: {error}"
