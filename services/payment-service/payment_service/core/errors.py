from __future__ import annotations

from uuid import UUID

from shared.contracts import ChoreographyError, ErrorCategory


class ValidationAppError(ChoreographyError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCategory.VALIDATION_ERROR, message, http_status=422)


class InvalidAmountError(ChoreographyError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCategory.INVALID_AMOUNT, message, http_status=422)


class DuplicateSessionError(ChoreographyError):
    def __init__(self, order_id: UUID) -> None:
        super().__init__(
            ErrorCategory.DUPLICATE_SESSION,
            f"Order {order_id} already has a pending checkout session",
            http_status=409,
        )


class SessionNotFoundError(ChoreographyError):
    def __init__(self, session_id: UUID) -> None:
        super().__init__(
            ErrorCategory.NOT_FOUND, f"Checkout session {session_id} not found", http_status=404
        )


class SignatureInvalidError(ChoreographyError):
    def __init__(self, message: str = "Invalid webhook signature") -> None:
        super().__init__(ErrorCategory.SIGNATURE_INVALID, message, http_status=401)


class ProviderTimeoutError(ChoreographyError):
    def __init__(self, message: str = "Provider timeout") -> None:
        super().__init__(ErrorCategory.PROVIDER_TIMEOUT, message, http_status=504, retryable=True)


class Provider5xxError(ChoreographyError):
    def __init__(self, message: str = "Provider 5xx") -> None:
        super().__init__(ErrorCategory.PROVIDER_5XX, message, http_status=502, retryable=True)


class ProviderUnavailableError(ChoreographyError):
    def __init__(self, message: str = "Payment provider unavailable") -> None:
        super().__init__(
            ErrorCategory.UPSTREAM_UNAVAILABLE, message, http_status=503, retryable=True
        )
