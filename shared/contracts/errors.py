from __future__ import annotations

from dataclasses import dataclass

from shared.contracts.enums import ErrorCategory


@dataclass(eq=False)
class ChoreographyError(Exception):
    category: ErrorCategory
    message: str
    http_status: int = 400
    retryable: bool = False

    def __str__(self) -> str:
        return self.message


class PayloadValidationError(ChoreographyError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCategory.VALIDATION_ERROR, message, http_status=422)


class SchemaVersionError(ChoreographyError):
    def __init__(self, topic: str, schema_version: int) -> None:
        super().__init__(
            ErrorCategory.SCHEMA_VERSION,
            f"Unsupported schema version {schema_version} for topic {topic}",
            http_status=422,
        )


class PublishError(ChoreographyError):
    def __init__(self, message: str = "Broker unavailable") -> None:
        super().__init__(ErrorCategory.PUBLISH_FAILED, message, http_status=503, retryable=True)


class ConcurrencyConflictError(ChoreographyError):
    def __init__(self, message: str = "Concurrent update conflict") -> None:
        super().__init__(
            ErrorCategory.CONCURRENCY_CONFLICT, message, http_status=409, retryable=True
        )


class ReservationInFlightError(ChoreographyError):
    def __init__(self, consumer_group: str, event_id: object) -> None:
        super().__init__(
            ErrorCategory.RESERVATION_IN_FLIGHT,
            f"Event {event_id} is being processed by another {consumer_group} worker",
            http_status=409,
            retryable=True,
        )


class LedgerUnavailableError(ChoreographyError):
    def __init__(self, message: str = "Idempotency ledger unavailable") -> None:
        super().__init__(
            ErrorCategory.LEDGER_UNAVAILABLE, message, http_status=503, retryable=True
        )


class HandlerTimeoutError(ChoreographyError):
    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            ErrorCategory.HANDLER_TIMEOUT,
            f"Handler exceeded {timeout_seconds}s deadline",
            http_status=504,
            retryable=True,
        )


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, ChoreographyError):
        return exc.retryable
    return True
