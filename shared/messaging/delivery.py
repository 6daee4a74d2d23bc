from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from enum import Enum

from opentelemetry import trace

from shared.contracts import ChoreographyError, EventEnvelope, HandlerTimeoutError, decode_envelope
from shared.contracts.errors import is_retryable
from shared.logging import bind_envelope_context, get_logger
from shared.messaging.contracts import EnvelopeHandler
from shared.messaging.dead_letter import DeadLetterHandler
from shared.messaging.metrics import delivery_latency, handler_failures
from shared.observability import CONSUMER_GROUP, EVENT_ID, PARTITION_KEY, TOPIC
from shared.observability.propagation import context_from_message_headers
from shared.resilience.backoff import RetryPolicy

logger = get_logger(__name__)

MessageHeaders = Sequence[tuple[str, bytes]]


class DeliveryOutcome(str, Enum):
    HANDLED = "handled"
    DEAD_LETTERED = "dead_lettered"


class DeliveryPolicy:
    """Runs a handler for one envelope until it succeeds or is dead-lettered.

    Retryable failures are retried with exponential backoff up to the policy's
    attempt budget. Terminal failures and exhausted envelopes go to the
    dead-letter handler unchanged. Either outcome means the caller may
    acknowledge the message; an exception escaping ``deliver`` means it must not.
    """

    def __init__(
        self,
        retry_policy: RetryPolicy,
        dead_letters: DeadLetterHandler,
        *,
        handler_timeout_seconds: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._retry_policy = retry_policy
        self._dead_letters = dead_letters
        self._handler_timeout_seconds = handler_timeout_seconds
        self._sleep = sleep
        self._tracer = trace.get_tracer(__name__)

    @property
    def dead_letters(self) -> DeadLetterHandler:
        return self._dead_letters

    async def deliver_raw(
        self,
        raw: bytes,
        topic: str,
        consumer_group: str,
        handler: EnvelopeHandler,
        headers: MessageHeaders | None = None,
    ) -> DeliveryOutcome:
        try:
            envelope = decode_envelope(raw)
        except ChoreographyError as exc:
            handler_failures.add(1, {"topic": topic, "consumer_group": consumer_group})
            await self._dead_letters.handle_undecodable(raw, topic, consumer_group, exc)
            return DeliveryOutcome.DEAD_LETTERED
        return await self.deliver(envelope, consumer_group, handler, headers)

    async def deliver(
        self,
        envelope: EventEnvelope,
        consumer_group: str,
        handler: EnvelopeHandler,
        headers: MessageHeaders | None = None,
    ) -> DeliveryOutcome:
        started = time.perf_counter()
        attributes = {"topic": envelope.topic.value, "consumer_group": consumer_group}
        with (
            bind_envelope_context(
                event_id=str(envelope.event_id),
                topic=envelope.topic.value,
                partition_key=envelope.partition_key,
                consumer_group=consumer_group,
                trace_id=envelope.trace_id,
            ),
            self._tracer.start_as_current_span(
                f"consume {envelope.topic.value}",
                context=context_from_message_headers(headers),
                kind=trace.SpanKind.CONSUMER,
                attributes={
                    EVENT_ID: str(envelope.event_id),
                    TOPIC: envelope.topic.value,
                    PARTITION_KEY: envelope.partition_key,
                    CONSUMER_GROUP: consumer_group,
                },
            ),
        ):
            try:
                return await self._run_with_retries(envelope, consumer_group, handler, attributes)
            finally:
                delivery_latency.record((time.perf_counter() - started) * 1000, attributes)

    async def _run_with_retries(
        self,
        envelope: EventEnvelope,
        consumer_group: str,
        handler: EnvelopeHandler,
        attributes: dict[str, str],
    ) -> DeliveryOutcome:
        max_attempts = self._retry_policy.max_attempts
        for attempt in range(1, max_attempts + 1):
            try:
                await self._invoke(handler, envelope)
                return DeliveryOutcome.HANDLED
            except Exception as exc:  # noqa: BLE001
                handler_failures.add(1, attributes)
                if not is_retryable(exc) or attempt == max_attempts:
                    await self._dead_letters.handle(envelope, consumer_group, exc, attempt)
                    return DeliveryOutcome.DEAD_LETTERED
                delay = self._retry_policy.delay_for(attempt)
                logger.warning(
                    "handler_failed_retrying",
                    extra={
                        "extra_fields": {
                            "attempt": attempt,
                            "max_attempts": max_attempts,
                            "delay_seconds": round(delay, 3),
                            "error_type": type(exc).__name__,
                        }
                    },
                )
                await self._sleep(delay)
        raise RuntimeError("delivery loop reached an invalid state")

    async def _invoke(self, handler: EnvelopeHandler, envelope: EventEnvelope) -> None:
        try:
            await asyncio.wait_for(handler(envelope), timeout=self._handler_timeout_seconds)
        except TimeoutError as exc:
            raise HandlerTimeoutError(self._handler_timeout_seconds) from exc
