from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol
from uuid import UUID

from shared.contracts import EventEnvelope, EventPayload, Topic

EnvelopeHandler = Callable[[EventEnvelope], Awaitable[None]]


class EventPublisher(Protocol):
    async def publish(
        self,
        topic: Topic,
        partition_key: str,
        payload: EventPayload,
        *,
        event_id: UUID | None = None,
    ) -> UUID: ...

    async def publish_envelope(self, envelope: EventEnvelope) -> UUID: ...


class EventBus(EventPublisher, Protocol):
    async def subscribe(
        self, topic: Topic, consumer_group: str, handler: EnvelopeHandler
    ) -> None: ...

    async def close(self) -> None: ...
