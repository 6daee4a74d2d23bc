from __future__ import annotations

from enum import Enum


class Topic(str, Enum):
    USER_CREATED = "user.created"
    ORDER_CREATED = "order.created"
    ORDER_UPDATED = "order.updated"
    PAYMENT_SUCCESSFUL = "payment.successful"
    PAYMENT_FAILED = "payment.failed"


class OrderStatus(str, Enum):
    CREATED = "CREATED"
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    PAID = "PAID"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    FULFILLED = "FULFILLED"
    CANCELLED = "CANCELLED"


class SessionStatus(str, Enum):
    PENDING = "PENDING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"


class OutboxStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class ReservationState(str, Enum):
    RESERVED = "RESERVED"
    COMMITTED = "COMMITTED"


class IdempotencyOutcome(str, Enum):
    FRESH = "fresh"
    ALREADY_PROCESSED = "already_processed"


class DeadLetterStatus(str, Enum):
    PENDING = "PENDING"
    REPLAYED = "REPLAYED"


class WebhookEventType(str, Enum):
    SUCCEEDED = "payment.succeeded"
    FAILED = "payment.failed"


class ErrorCategory(str, Enum):
    VALIDATION_ERROR = "validation_error"
    SCHEMA_VERSION = "schema_version"
    INVALID_AMOUNT = "invalid_amount"
    SIGNATURE_INVALID = "signature_invalid"
    INVALID_TRANSITION = "invalid_transition"
    DUPLICATE_SESSION = "duplicate_session"
    CONCURRENCY_CONFLICT = "concurrency_conflict"
    NOT_FOUND = "not_found"
    PUBLISH_FAILED = "publish_failed"
    LEDGER_UNAVAILABLE = "ledger_unavailable"
    RESERVATION_IN_FLIGHT = "reservation_in_flight"
    HANDLER_TIMEOUT = "handler_timeout"
    PROVIDER_TIMEOUT = "provider_timeout"
    PROVIDER_5XX = "provider_5xx"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    RECIPIENT_UNAVAILABLE = "recipient_unavailable"
    MAIL_TRANSPORT = "mail_transport"
    TEMPLATE_RENDER = "template_render"
