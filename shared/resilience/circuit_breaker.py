from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from shared.logging import get_logger
from shared.utils.time import utc_now

logger = get_logger(__name__)


class CircuitBreakerOpenError(RuntimeError):
    pass


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    failure_threshold: int = 5
    recovery_timeout_seconds: int = 15


class CircuitBreaker:
    """Guards one outbound dependency such as the payment or mail provider.

    After ``failure_threshold`` consecutive failures calls are refused until
    ``recovery_timeout_seconds`` pass; then a single probe decides whether the
    circuit closes again or re-opens.
    """

    def __init__(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.name = name
        self._config = config or CircuitBreakerConfig()
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at: datetime | None = None

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._recovery_elapsed():
            self._move_to(CircuitState.HALF_OPEN)
        return self._state.value

    def allow_call(self) -> None:
        if self._state != CircuitState.OPEN:
            return
        if not self._recovery_elapsed():
            raise CircuitBreakerOpenError(f"Circuit {self.name} is open")
        self._move_to(CircuitState.HALF_OPEN)

    def on_success(self) -> None:
        self._failures = 0
        self._opened_at = None
        if self._state != CircuitState.CLOSED:
            self._move_to(CircuitState.CLOSED)

    def on_failure(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            self._open()
            return
        self._failures += 1
        if self._failures >= self._config.failure_threshold:
            self._open()

    def _open(self) -> None:
        self._opened_at = self._clock()
        self._move_to(CircuitState.OPEN)

    def _move_to(self, state: CircuitState) -> None:
        previous, self._state = self._state, state
        logger.info(
            "circuit_state_changed",
            extra={
                "extra_fields": {
                    "circuit": self.name,
                    "from": previous.value,
                    "to": state.value,
                    "failures": self._failures,
                }
            },
        )

    def _recovery_elapsed(self) -> bool:
        if self._opened_at is None:
            return False
        recovery = timedelta(seconds=self._config.recovery_timeout_seconds)
        return self._clock() >= self._opened_at + recovery
