from __future__ import annotations

TRACE_ID = "trace.id"
EVENT_ID = "messaging.message.id"
TOPIC = "messaging.destination.name"
CONSUMER_GROUP = "messaging.consumer.group.name"
PARTITION_KEY = "messaging.kafka.message.key"
ORDER_ID = "order.id"
SESSION_ID = "checkout.session.id"
STATUS = "status"
