from __future__ import annotations

import asyncio

from shared.messaging import (
    DeadLetterHandler,
    DeliveryPolicy,
    InMemoryEventBus,
    MemoryDeadLetterStore,
)
from shared.resilience import RetryPolicy


async def no_sleep(_: float) -> None:
    await asyncio.sleep(0)


def fast_retry_policy(max_attempts: int = 3) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=max_attempts, base_delay_seconds=0.0, max_delay_seconds=0.0, jitter=0.0
    )


def build_delivery_policy(
    store: MemoryDeadLetterStore | None = None,
    *,
    max_attempts: int = 3,
    handler_timeout_seconds: float = 2.0,
) -> DeliveryPolicy:
    return DeliveryPolicy(
        fast_retry_policy(max_attempts),
        DeadLetterHandler(store or MemoryDeadLetterStore()),
        handler_timeout_seconds=handler_timeout_seconds,
        sleep=no_sleep,
    )


def build_memory_bus(
    *, max_attempts: int = 3, partitions: int = 4, handler_timeout_seconds: float = 2.0
) -> tuple[InMemoryEventBus, MemoryDeadLetterStore]:
    store = MemoryDeadLetterStore()
    bus = InMemoryEventBus(
        partitions=partitions,
        publish_policy=fast_retry_policy(2),
        delivery=build_delivery_policy(
            store, max_attempts=max_attempts, handler_timeout_seconds=handler_timeout_seconds
        ),
        redelivery_delay_seconds=0.0,
        shutdown_grace_seconds=1.0,
    )
    return bus, store
