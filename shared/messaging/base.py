from __future__ import annotations

from uuid import UUID

from shared.contracts import (
    EventEnvelope,
    EventPayload,
    PayloadValidationError,
    PublishError,
    Topic,
)
from shared.contracts.events import topic_of
from shared.logging import get_logger
from shared.messaging.delivery import DeliveryPolicy
from shared.messaging.metrics import events_published, publish_failures
from shared.observability import current_trace_id
from shared.resilience.backoff import RetryPolicy
from shared.resilience.retry import retry_async

logger = get_logger(__name__)


class EventBusBase:
    def __init__(self, *, publish_policy: RetryPolicy, delivery: DeliveryPolicy) -> None:
        self._publish_policy = publish_policy
        self._delivery = delivery

    @property
    def delivery(self) -> DeliveryPolicy:
        return self._delivery

    async def publish(
        self,
        topic: Topic,
        partition_key: str,
        payload: EventPayload,
        *,
        event_id: UUID | None = None,
    ) -> UUID:
        if topic_of(payload) is not topic:
            raise PayloadValidationError(
                f"{type(payload).__name__} cannot be published to {topic.value}"
            )
        envelope = EventEnvelope.build(
            payload, partition_key, event_id=event_id, trace_id=current_trace_id()
        )
        return await self.publish_envelope(envelope)

    async def publish_envelope(self, envelope: EventEnvelope) -> UUID:
        attributes = {"topic": envelope.topic.value}

        def _log_retry(attempt: int, exc: Exception, delay: float) -> None:
            logger.warning(
                "publish_retrying",
                extra={
                    "extra_fields": {
                        "event_id": str(envelope.event_id),
                        "topic": envelope.topic.value,
                        "attempt": attempt,
                        "delay_seconds": round(delay, 3),
                        "error_type": type(exc).__name__,
                    }
                },
            )

        try:
            await retry_async(
                lambda: self._send(envelope),
                should_retry=lambda exc: not isinstance(exc, PayloadValidationError),
                policy=self._publish_policy,
                on_retry=_log_retry,
            )
        except PayloadValidationError:
            raise
        except PublishError:
            publish_failures.add(1, attributes)
            raise
        except Exception as exc:
            publish_failures.add(1, attributes)
            raise PublishError(
                f"Publishing {envelope.topic.value} {envelope.event_id} failed: {exc}"
            ) from exc
        events_published.add(1, attributes)
        return envelope.event_id

    async def _send(self, envelope: EventEnvelope) -> None:
        raise NotImplementedError
