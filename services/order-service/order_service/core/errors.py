from __future__ import annotations

from uuid import UUID

from shared.contracts import ChoreographyError, ErrorCategory, OrderStatus


class OrderNotFoundError(ChoreographyError):
    def __init__(self, order_id: UUID) -> None:
        super().__init__(ErrorCategory.NOT_FOUND, f"Order {order_id} not found", http_status=404)


class InvalidTransitionError(ChoreographyError):
    def __init__(self, order_id: UUID, current: OrderStatus, target: OrderStatus) -> None:
        self.current = current
        self.target = target
        super().__init__(
            ErrorCategory.INVALID_TRANSITION,
            f"Order {order_id} cannot move from {current.value} to {target.value}",
            http_status=409,
        )


class ValidationAppError(ChoreographyError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCategory.VALIDATION_ERROR, message, http_status=422)


class PaymentServiceUnavailableError(ChoreographyError):
    def __init__(self, message: str = "Payment service unavailable") -> None:
        super().__init__(
            ErrorCategory.UPSTREAM_UNAVAILABLE, message, http_status=503, retryable=True
        )


class PaymentServiceRejectedError(ChoreographyError):
    """Relays a terminal error returned by the payment service."""

    def __init__(self, category: ErrorCategory, message: str, http_status: int) -> None:
        super().__init__(category, message, http_status=http_status)
