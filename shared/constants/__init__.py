from shared.constants.consumer_groups import (
    EMAIL_GROUP,
    NOTIFICATION_PROJECTION_GROUP,
    ORDER_SERVICE_GROUP,
    OUTBOX_RELAY_GROUP,
    PAYMENT_WEBHOOK_GROUP,
)
from shared.constants.redis_keys import (
    COMMITTED_PREFIX,
    RESERVED_MARKER,
    committed_value,
    ledger_key,
)

__all__ = [
    "COMMITTED_PREFIX",
    "EMAIL_GROUP",
    "NOTIFICATION_PROJECTION_GROUP",
    "ORDER_SERVICE_GROUP",
    "OUTBOX_RELAY_GROUP",
    "PAYMENT_WEBHOOK_GROUP",
    "RESERVED_MARKER",
    "committed_value",
    "ledger_key",
]
