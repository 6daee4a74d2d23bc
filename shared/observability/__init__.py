from shared.observability.attributes import (
    CONSUMER_GROUP,
    EVENT_ID,
    ORDER_ID,
    PARTITION_KEY,
    SESSION_ID,
    STATUS,
    TOPIC,
    TRACE_ID,
)
from shared.observability.otel import configure_otel
from shared.observability.propagation import (
    context_from_message_headers,
    current_trace_id,
    extract_context_from_headers,
    inject_headers,
    message_headers,
)

__all__ = [
    "CONSUMER_GROUP",
    "EVENT_ID",
    "ORDER_ID",
    "PARTITION_KEY",
    "SESSION_ID",
    "STATUS",
    "TOPIC",
    "TRACE_ID",
    "configure_otel",
    "context_from_message_headers",
    "current_trace_id",
    "extract_context_from_headers",
    "inject_headers",
    "message_headers",
]
