from __future__ import annotations

import asyncio
import importlib
from typing import Any

from shared.contracts import EventEnvelope, Topic, encode_envelope
from shared.logging import get_logger
from shared.messaging.base import EventBusBase
from shared.messaging.contracts import EnvelopeHandler
from shared.messaging.delivery import DeliveryPolicy
from shared.observability.propagation import message_headers
from shared.resilience.backoff import RetryPolicy

logger = get_logger(__name__)


class KafkaEventBus(EventBusBase):
    def __init__(
        self,
        bootstrap_servers: str,
        *,
        client_id: str,
        publish_policy: RetryPolicy,
        delivery: DeliveryPolicy,
        topic_prefix: str = "",
        fetch_max_records: int = 100,
        fetch_timeout_ms: int = 500,
        redelivery_delay_seconds: float = 0.5,
        shutdown_grace_seconds: float = 10.0,
        fetch_retry_policy: RetryPolicy | None = None,
    ) -> None:
        super().__init__(publish_policy=publish_policy, delivery=delivery)
        self._bootstrap_servers = bootstrap_servers
        self._client_id = client_id
        self._topic_prefix = topic_prefix
        self._fetch_max_records = fetch_max_records
        self._fetch_timeout_ms = fetch_timeout_ms
        self._redelivery_delay_seconds = redelivery_delay_seconds
        self._shutdown_grace_seconds = shutdown_grace_seconds
        self._fetch_retry_policy = fetch_retry_policy or RetryPolicy()
        self._producer: Any | None = None
        self._consumers: list[Any] = []
        self._tasks: list[asyncio.Task[None]] = []
        self._closing = False

    async def _send(self, envelope: EventEnvelope) -> None:
        producer = await self._get_producer()
        headers = message_headers()
        headers.append(("event_id", str(envelope.event_id).encode("utf-8")))
        await producer.send_and_wait(
            self.topic_name(envelope.topic),
            value=encode_envelope(envelope),
            key=envelope.partition_key.encode("utf-8"),
            headers=headers,
        )

    async def subscribe(self, topic: Topic, consumer_group: str, handler: EnvelopeHandler) -> None:
        consumer = self._build_consumer(topic, consumer_group)
        await consumer.start()
        self._consumers.append(consumer)
        self._tasks.append(
            asyncio.create_task(
                self._consume(consumer, topic, consumer_group, handler),
                name=f"consume:{topic.value}:{consumer_group}",
            )
        )

    async def close(self) -> None:
        self._closing = True
        if self._tasks:
            _, pending = await asyncio.wait(self._tasks, timeout=self._shutdown_grace_seconds)
            for task in pending:
                task.cancel()
            await asyncio.gather(*self._tasks, return_exceptions=True)
            self._tasks.clear()
        for consumer in self._consumers:
            await consumer.stop()
        self._consumers.clear()
        if self._producer is not None:
            await self._producer.stop()
            self._producer = None

    def topic_name(self, topic: Topic) -> str:
        return f"{self._topic_prefix}{topic.value}"

    async def _get_producer(self) -> Any:
        if self._producer is not None:
            return self._producer
        self._producer = self._build_producer()
        await self._producer.start()
        return self._producer

    def _aiokafka(self) -> Any:
        try:
            return importlib.import_module("aiokafka")
        except ModuleNotFoundError as exc:  # pragma: no cover
            raise RuntimeError(
                "aiokafka is required for EVENT_BUS_BACKEND=kafka. "
                "Install the project dependencies."
            ) from exc

    def _build_producer(self) -> Any:
        producer_cls = self._aiokafka().AIOKafkaProducer
        return producer_cls(
            bootstrap_servers=self._bootstrap_servers,
            client_id=self._client_id,
            enable_idempotence=True,
            acks="all",
        )

    def _build_consumer(self, topic: Topic, consumer_group: str) -> Any:
        consumer_cls = self._aiokafka().AIOKafkaConsumer
        return consumer_cls(
            self.topic_name(topic),
            bootstrap_servers=self._bootstrap_servers,
            client_id=self._client_id,
            group_id=consumer_group,
            enable_auto_commit=False,
            auto_offset_reset="earliest",
        )

    async def _consume(
        self, consumer: Any, topic: Topic, consumer_group: str, handler: EnvelopeHandler
    ) -> None:
        # One drain task per partition; a busy partition stays paused until its
        # batch settles so the others keep fetching.
        draining: dict[Any, asyncio.Task[None]] = {}
        fetch_failures = 0
        try:
            while not self._closing:
                self._resume_settled(consumer, draining, topic, consumer_group)
                try:
                    batches = await consumer.getmany(
                        timeout_ms=self._fetch_timeout_ms, max_records=self._fetch_max_records
                    )
                except asyncio.CancelledError:
                    raise
                except Exception as exc:  # noqa: BLE001
                    fetch_failures += 1
                    await self._back_off_fetch(topic, consumer_group, fetch_failures, exc)
                    continue
                fetch_failures = 0
                for partition, records in batches.items():
                    if not records:
                        continue
                    consumer.pause(partition)
                    draining[partition] = asyncio.create_task(
                        self._drain_partition(
                            consumer, partition, records, topic, consumer_group, handler
                        )
                    )
        except asyncio.CancelledError:
            for task in draining.values():
                task.cancel()
            raise
        finally:
            if draining:
                await asyncio.gather(*draining.values(), return_exceptions=True)

    def _resume_settled(
        self,
        consumer: Any,
        draining: dict[Any, asyncio.Task[None]],
        topic: Topic,
        consumer_group: str,
    ) -> None:
        for partition, task in list(draining.items()):
            if not task.done():
                continue
            del draining[partition]
            consumer.resume(partition)
            if not task.cancelled() and task.exception() is not None:
                logger.error(
                    "partition_drain_failed",
                    extra={
                        "extra_fields": {
                            "topic": topic.value,
                            "consumer_group": consumer_group,
                            "partition": getattr(partition, "partition", None),
                            "error_type": type(task.exception()).__name__,
                        }
                    },
                )

    async def _back_off_fetch(
        self, topic: Topic, consumer_group: str, failures: int, exc: Exception
    ) -> None:
        delay = self._fetch_retry_policy.delay_for(
            min(failures, self._fetch_retry_policy.max_attempts)
        )
        logger.warning(
            "consumer_fetch_failed",
            extra={
                "extra_fields": {
                    "topic": topic.value,
                    "consumer_group": consumer_group,
                    "failures": failures,
                    "retry_in_seconds": round(delay, 3),
                    "error_type": type(exc).__name__,
                }
            },
        )
        await asyncio.sleep(delay)

    async def _drain_partition(
        self,
        consumer: Any,
        partition: Any,
        records: list[Any],
        topic: Topic,
        consumer_group: str,
        handler: EnvelopeHandler,
    ) -> None:
        for record in records:
            if self._closing:
                return
            try:
                await self._delivery.deliver_raw(
                    record.value, topic.value, consumer_group, handler, record.headers
                )
            except Exception as exc:  # noqa: BLE001
                logger.exception(
                    "delivery_not_acknowledged",
                    extra={
                        "extra_fields": {
                            "topic": topic.value,
                            "consumer_group": consumer_group,
                            "partition": getattr(partition, "partition", None),
                            "offset": record.offset,
                            "error_type": type(exc).__name__,
                        }
                    },
                )
                consumer.seek(partition, record.offset)
                await asyncio.sleep(self._redelivery_delay_seconds)
                return
            await consumer.commit({partition: record.offset + 1})
