from shared.logging.fields import (
    ATTEMPT,
    CONSUMER_GROUP,
    DELIVERY_ID,
    EVENT_ID,
    IDEMPOTENCY_KEY,
    ORDER_ID,
    PARTITION_KEY,
    SESSION_ID,
    STATUS,
    TOPIC,
    TRACE_ID,
    USER_ID,
    VERSION,
)
from shared.logging.logger import (
    bind_envelope_context,
    clear_correlation_context,
    configure_logging,
    get_correlation_context,
    get_logger,
    set_correlation_context,
    update_correlation_context,
)
from shared.logging.middleware import CorrelationMiddleware

__all__ = [
    "ATTEMPT",
    "CONSUMER_GROUP",
    "CorrelationMiddleware",
    "DELIVERY_ID",
    "EVENT_ID",
    "IDEMPOTENCY_KEY",
    "ORDER_ID",
    "PARTITION_KEY",
    "SESSION_ID",
    "STATUS",
    "TOPIC",
    "TRACE_ID",
    "USER_ID",
    "VERSION",
    "bind_envelope_context",
    "clear_correlation_context",
    "configure_logging",
    "get_correlation_context",
    "get_logger",
    "set_correlation_context",
    "update_correlation_context",
]
