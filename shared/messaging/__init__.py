from shared.messaging.base import EventBusBase
from shared.messaging.contracts import EnvelopeHandler, EventBus, EventPublisher
from shared.messaging.dead_letter import (
    DeadLetter,
    DeadLetterHandler,
    DeadLetterNotFoundError,
    DeadLetterStore,
    MemoryDeadLetterStore,
    SqlDeadLetterStore,
    build_dead_letter_store,
)
from shared.messaging.delivery import DeliveryOutcome, DeliveryPolicy
from shared.messaging.factory import build_delivery_policy, build_event_bus
from shared.messaging.memory import InMemoryEventBus
from shared.messaging.settings import MessagingSettings

__all__ = [
    "DeadLetter",
    "DeadLetterHandler",
    "DeadLetterNotFoundError",
    "DeadLetterStore",
    "DeliveryOutcome",
    "DeliveryPolicy",
    "EnvelopeHandler",
    "EventBus",
    "EventBusBase",
    "EventPublisher",
    "InMemoryEventBus",
    "MemoryDeadLetterStore",
    "MessagingSettings",
    "SqlDeadLetterStore",
    "build_dead_letter_store",
    "build_delivery_policy",
    "build_event_bus",
]
