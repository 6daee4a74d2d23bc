from __future__ import annotations

from datetime import timedelta

import pytest

from shared.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerOpenError,
)
from shared.utils.time import utc_now


class FakeClock:
    def __init__(self) -> None:
        self.now = utc_now()

    def __call__(self):  # noqa: ANN204
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def _breaker(clock: FakeClock, threshold: int = 2) -> CircuitBreaker:
    return CircuitBreaker(
        "mail-provider",
        CircuitBreakerConfig(failure_threshold=threshold, recovery_timeout_seconds=30),
        clock=clock,
    )


def test_circuit_breaker_opens_after_consecutive_failures() -> None:
    breaker = _breaker(FakeClock())

    breaker.on_failure()
    assert breaker.state == "closed"
    breaker.on_failure()

    assert breaker.state == "open"
    with pytest.raises(CircuitBreakerOpenError, match="Circuit mail-provider is open"):
        breaker.allow_call()


def test_success_resets_the_failure_count() -> None:
    breaker = _breaker(FakeClock())

    breaker.on_failure()
    breaker.on_success()
    breaker.on_failure()

    assert breaker.state == "closed"


def test_circuit_breaker_half_opens_after_recovery_and_closes_on_success() -> None:
    clock = FakeClock()
    breaker = _breaker(clock, threshold=1)
    breaker.on_failure()

    clock.advance(29)
    assert breaker.state == "open"
    clock.advance(1)
    breaker.allow_call()

    assert breaker.state == "half_open"
    breaker.on_success()
    assert breaker.state == "closed"


def test_circuit_breaker_reopens_when_half_open_probe_fails() -> None:
    clock = FakeClock()
    breaker = _breaker(clock, threshold=1)
    breaker.on_failure()
    clock.advance(30)
    breaker.allow_call()

    breaker.on_failure()

    assert breaker.state == "open"
    with pytest.raises(CircuitBreakerOpenError):
        breaker.allow_call()
