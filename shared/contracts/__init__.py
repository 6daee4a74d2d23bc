from shared.contracts.dto import (
    CheckoutResponse,
    CheckoutSessionResponse,
    CreateOrderRequest,
    CreateSessionRequest,
    LineItemRequest,
    LineItemResponse,
    OrderResponse,
    ProviderCheckoutRequest,
    ProviderCheckoutResponse,
    UserContact,
)
from shared.contracts.enums import (
    DeadLetterStatus,
    ErrorCategory,
    IdempotencyOutcome,
    OrderStatus,
    OutboxStatus,
    ReservationState,
    SessionStatus,
    Topic,
    WebhookEventType,
)
from shared.contracts.envelope import EventEnvelope, decode_envelope, encode_envelope
from shared.contracts.errors import (
    ChoreographyError,
    ConcurrencyConflictError,
    HandlerTimeoutError,
    LedgerUnavailableError,
    PayloadValidationError,
    PublishError,
    ReservationInFlightError,
    SchemaVersionError,
    is_retryable,
)
from shared.contracts.events import (
    CURRENT_SCHEMA_VERSION,
    EventPayload,
    LineItemSnapshot,
    OrderCreatedV1,
    OrderUpdatedV1,
    PaymentFailedV1,
    PaymentSuccessfulV1,
    UserCreatedV1,
    payload_model_for,
)
from shared.contracts.persistence import (
    Base,
    CheckoutSessionORM,
    DeadLetterORM,
    OrderLineItemORM,
    OrderORM,
    OrderViewORM,
    OutboxEventORM,
    ProcessedEventORM,
    UserContactORM,
)

__all__ = [
    "CURRENT_SCHEMA_VERSION",
    "Base",
    "CheckoutResponse",
    "CheckoutSessionORM",
    "CheckoutSessionResponse",
    "ChoreographyError",
    "ConcurrencyConflictError",
    "CreateOrderRequest",
    "CreateSessionRequest",
    "DeadLetterORM",
    "DeadLetterStatus",
    "ErrorCategory",
    "EventEnvelope",
    "EventPayload",
    "HandlerTimeoutError",
    "IdempotencyOutcome",
    "LedgerUnavailableError",
    "LineItemRequest",
    "LineItemResponse",
    "LineItemSnapshot",
    "OrderCreatedV1",
    "OrderLineItemORM",
    "OrderORM",
    "OrderResponse",
    "OrderStatus",
    "OrderUpdatedV1",
    "OrderViewORM",
    "OutboxEventORM",
    "OutboxStatus",
    "PayloadValidationError",
    "PaymentFailedV1",
    "PaymentSuccessfulV1",
    "ProcessedEventORM",
    "ProviderCheckoutRequest",
    "ProviderCheckoutResponse",
    "PublishError",
    "ReservationInFlightError",
    "ReservationState",
    "SchemaVersionError",
    "SessionStatus",
    "Topic",
    "UserContact",
    "UserContactORM",
    "UserCreatedV1",
    "WebhookEventType",
    "decode_envelope",
    "encode_envelope",
    "is_retryable",
    "payload_model_for",
]
