from __future__ import annotations

TRACE_ID = "trace_id"
IDEMPOTENCY_KEY = "idempotency_key"
EVENT_ID = "event_id"
TOPIC = "topic"
PARTITION_KEY = "partition_key"
CONSUMER_GROUP = "consumer_group"
ORDER_ID = "order_id"
SESSION_ID = "session_id"
USER_ID = "user_id"
STATUS = "status"
VERSION = "version"
ATTEMPT = "attempt"
DELIVERY_ID = "delivery_id"
