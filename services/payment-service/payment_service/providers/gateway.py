from __future__ import annotations

import time

from payment_service.core.errors import ProviderUnavailableError
from payment_service.core.metrics import provider_errors, provider_latency
from payment_service.providers.adapter import CheckoutProvider
from shared.contracts import ProviderCheckoutRequest, ProviderCheckoutResponse
from shared.resilience import CircuitBreaker, CircuitBreakerOpenError


class CheckoutGateway:
    def __init__(self, provider: CheckoutProvider, breaker: CircuitBreaker) -> None:
        self._provider = provider
        self._breaker = breaker

    async def create_checkout(self, payload: ProviderCheckoutRequest) -> ProviderCheckoutResponse:
        try:
            self._breaker.allow_call()
        except CircuitBreakerOpenError as exc:
            provider_errors.add(1, {"error": "circuit_open"})
            raise ProviderUnavailableError(str(exc)) from exc

        start = time.perf_counter()
        try:
            response = await self._provider.create_checkout(payload)
        except Exception as exc:  # noqa: BLE001
            self._breaker.on_failure()
            provider_errors.add(1, {"error": type(exc).__name__})
            raise
        self._breaker.on_success()
        provider_latency.record((time.perf_counter() - start) * 1000)
        return response

    async def close(self) -> None:
        await self._provider.close()
