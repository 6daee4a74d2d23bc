from shared.resilience.backoff import RetryPolicy, exponential_backoff
from shared.resilience.bulkhead import Bulkhead, BulkheadFullError
from shared.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerOpenError,
)
from shared.resilience.retry import retry_async

__all__ = [
    "Bulkhead",
    "BulkheadFullError",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerOpenError",
    "RetryPolicy",
    "exponential_backoff",
    "retry_async",
]
