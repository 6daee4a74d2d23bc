from shared.utils.http_security import (
    SECURITY_HEADERS,
    TRACE_ID_HEADER,
    apply_security_headers,
)
from shared.utils.ids import (
    deterministic_event_id,
    deterministic_order_id,
    new_uuid,
)
from shared.utils.time import ensure_aware, utc_now
from shared.utils.validation import ensure_positive_amount, ensure_supported_currency

__all__ = [
    "SECURITY_HEADERS",
    "TRACE_ID_HEADER",
    "apply_security_headers",
    "deterministic_event_id",
    "deterministic_order_id",
    "ensure_aware",
    "ensure_positive_amount",
    "ensure_supported_currency",
    "new_uuid",
    "utc_now",
]
