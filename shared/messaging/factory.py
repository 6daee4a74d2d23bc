from __future__ import annotations

from shared.messaging.base import EventBusBase
from shared.messaging.dead_letter import DeadLetterHandler
from shared.messaging.delivery import DeliveryPolicy
from shared.messaging.memory import InMemoryEventBus
from shared.messaging.settings import MessagingSettings


def build_delivery_policy(
    settings: MessagingSettings, dead_letters: DeadLetterHandler
) -> DeliveryPolicy:
    return DeliveryPolicy(
        settings.delivery_retry_policy,
        dead_letters,
        handler_timeout_seconds=settings.handler_timeout_seconds,
    )


def build_event_bus(settings: MessagingSettings, dead_letters: DeadLetterHandler) -> EventBusBase:
    backend = settings.event_bus_backend.strip().lower()
    delivery = build_delivery_policy(settings, dead_letters)
    if backend == "memory":
        return InMemoryEventBus(
            partitions=settings.event_bus_partitions,
            publish_policy=settings.publish_retry_policy,
            delivery=delivery,
            shutdown_grace_seconds=settings.event_bus_shutdown_grace_seconds,
        )
    if backend == "kafka":
        if not settings.event_bus_kafka_bootstrap_servers:
            raise ValueError(
                "EVENT_BUS_KAFKA_BOOTSTRAP_SERVERS must be set when EVENT_BUS_BACKEND=kafka"
            )
        from shared.messaging.kafka import KafkaEventBus

        return KafkaEventBus(
            settings.event_bus_kafka_bootstrap_servers,
            client_id=settings.service_name,
            publish_policy=settings.publish_retry_policy,
            delivery=delivery,
            topic_prefix=settings.event_bus_topic_prefix,
            fetch_max_records=settings.event_bus_fetch_max_records,
            shutdown_grace_seconds=settings.event_bus_shutdown_grace_seconds,
            fetch_retry_policy=settings.delivery_retry_policy,
        )
    raise ValueError(f"Unsupported event bus backend: {settings.event_bus_backend}")
