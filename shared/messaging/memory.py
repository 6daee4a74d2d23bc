from __future__ import annotations

import asyncio
import zlib
from dataclasses import dataclass, field

from shared.contracts import EventEnvelope, Topic, decode_envelope, encode_envelope
from shared.logging import get_logger
from shared.messaging.base import EventBusBase
from shared.messaging.contracts import EnvelopeHandler
from shared.messaging.delivery import DeliveryPolicy
from shared.observability.propagation import message_headers
from shared.resilience.backoff import RetryPolicy

logger = get_logger(__name__)


@dataclass(frozen=True)
class _Record:
    value: bytes
    headers: list[tuple[str, bytes]]


@dataclass
class _TopicLog:
    partitions: list[list[_Record]]
    condition: asyncio.Condition = field(default_factory=asyncio.Condition)


class InMemoryEventBus(EventBusBase):
    """In-process partitioned log with per-group offsets.

    Each (topic, consumer group, partition) is drained by one task, so envelopes
    sharing a partition key are handled serially and in publish order while
    different partitions progress independently. An offset only advances after
    the delivery policy reports the envelope handled or dead-lettered.
    """

    def __init__(
        self,
        *,
        partitions: int = 8,
        publish_policy: RetryPolicy,
        delivery: DeliveryPolicy,
        redelivery_delay_seconds: float = 0.05,
        shutdown_grace_seconds: float = 5.0,
    ) -> None:
        super().__init__(publish_policy=publish_policy, delivery=delivery)
        self._partitions = partitions
        self._redelivery_delay_seconds = redelivery_delay_seconds
        self._shutdown_grace_seconds = shutdown_grace_seconds
        self._topics: dict[Topic, _TopicLog] = {}
        self._offsets: dict[tuple[Topic, str, int], int] = {}
        self._subscriptions: set[tuple[Topic, str]] = set()
        self._tasks: list[asyncio.Task[None]] = []
        self._closing = False

    def partition_for(self, partition_key: str) -> int:
        return zlib.crc32(partition_key.encode("utf-8")) % self._partitions

    async def _send(self, envelope: EventEnvelope) -> None:
        if self._closing:
            raise RuntimeError("Event bus is closed")
        log = self._log(envelope.topic)
        record = _Record(value=encode_envelope(envelope), headers=message_headers())
        async with log.condition:
            log.partitions[self.partition_for(envelope.partition_key)].append(record)
            log.condition.notify_all()

    async def subscribe(self, topic: Topic, consumer_group: str, handler: EnvelopeHandler) -> None:
        subscription = (topic, consumer_group)
        if subscription in self._subscriptions:
            raise ValueError(f"{consumer_group} is already subscribed to {topic.value}")
        self._subscriptions.add(subscription)
        for partition in range(self._partitions):
            self._tasks.append(
                asyncio.create_task(
                    self._consume(topic, consumer_group, partition, handler),
                    name=f"consume:{topic.value}:{consumer_group}:{partition}",
                )
            )

    async def close(self) -> None:
        self._closing = True
        for log in self._topics.values():
            async with log.condition:
                log.condition.notify_all()
        if not self._tasks:
            return
        _, pending = await asyncio.wait(self._tasks, timeout=self._shutdown_grace_seconds)
        for task in pending:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    async def join(self, timeout: float = 5.0) -> None:
        async def _wait_drained() -> None:
            while not self._is_drained():
                await asyncio.sleep(0.005)

        await asyncio.wait_for(_wait_drained(), timeout)

    def published(self, topic: Topic) -> list[EventEnvelope]:
        log = self._topics.get(topic)
        if log is None:
            return []
        return [
            decode_envelope(record.value) for partition in log.partitions for record in partition
        ]

    async def _consume(
        self, topic: Topic, consumer_group: str, partition: int, handler: EnvelopeHandler
    ) -> None:
        log = self._log(topic)
        key = (topic, consumer_group, partition)
        while not self._closing:
            offset = self._offsets.get(key, 0)
            records = log.partitions[partition]
            if offset >= len(records):
                async with log.condition:
                    await log.condition.wait_for(
                        lambda: self._closing
                        or len(log.partitions[partition]) > self._offsets.get(key, 0)
                    )
                continue

            record = records[offset]
            try:
                await self._delivery.deliver_raw(
                    record.value, topic.value, consumer_group, handler, record.headers
                )
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                logger.exception(
                    "delivery_not_acknowledged",
                    extra={
                        "extra_fields": {
                            "topic": topic.value,
                            "consumer_group": consumer_group,
                            "partition": partition,
                            "offset": offset,
                            "error_type": type(exc).__name__,
                        }
                    },
                )
                await asyncio.sleep(self._redelivery_delay_seconds)
                continue
            self._offsets[key] = offset + 1

    def _log(self, topic: Topic) -> _TopicLog:
        log = self._topics.get(topic)
        if log is None:
            log = _TopicLog(partitions=[[] for _ in range(self._partitions)])
            self._topics[topic] = log
        return log

    def _is_drained(self) -> bool:
        for topic, consumer_group in self._subscriptions:
            log = self._topics.get(topic)
            if log is None:
                continue
            for partition in range(self._partitions):
                if self._offsets.get((topic, consumer_group, partition), 0) < len(
                    log.partitions[partition]
                ):
                    return False
        return True
