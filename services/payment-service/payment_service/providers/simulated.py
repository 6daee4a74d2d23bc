from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass

from payment_service.core.errors import Provider5xxError, ProviderTimeoutError
from shared.contracts import ProviderCheckoutRequest, ProviderCheckoutResponse


@dataclass(frozen=True)
class SimulationConfig:
    seed: int = 7
    base_latency_ms: int = 0
    fault_5xx_rate: float = 0.0
    timeout_rate: float = 0.0
    checkout_base_url: str = "https://checkout.local/pay"


class SimulatedCheckoutProvider:
    """In-process provider for local runs; outcomes are seeded per session."""

    def __init__(self, config: SimulationConfig | None = None) -> None:
        self._config = config or SimulationConfig()

    async def create_checkout(self, payload: ProviderCheckoutRequest) -> ProviderCheckoutResponse:
        rng = random.Random(f"{self._config.seed}:{payload.session_id}")
        if self._config.base_latency_ms:
            await asyncio.sleep(self._config.base_latency_ms / 1000)
        if rng.random() < self._config.timeout_rate:
            raise ProviderTimeoutError("Simulated provider timeout")
        if rng.random() < self._config.fault_5xx_rate:
            raise Provider5xxError("Simulated provider 5xx")
        reference = f"sim_{payload.session_id.hex}"
        return ProviderCheckoutResponse(
            provider_reference=reference,
            checkout_url=f"{self._config.checkout_base_url}/{reference}",
        )

    async def close(self) -> None:
        return None
