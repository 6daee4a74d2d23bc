from __future__ import annotations

import httpx

from payment_service.core.config import Settings
from payment_service.providers.adapter import CheckoutProvider, ProviderClientAdapter
from payment_service.providers.simulated import SimulatedCheckoutProvider


class ProviderClientFactory:
    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def create(self) -> CheckoutProvider:
        backend = self._settings.provider_backend.strip().lower()
        if backend == "simulated":
            return SimulatedCheckoutProvider()
        if backend == "http":
            headers: dict[str, str] = {}
            if self._settings.provider_api_key:
                headers["Authorization"] = f"Bearer {self._settings.provider_api_key}"
            client = httpx.AsyncClient(
                base_url=self._settings.provider_base_url,
                timeout=self._settings.provider_timeout_seconds,
                headers=headers,
            )
            return ProviderClientAdapter(client)
        raise ValueError(f"Unsupported provider backend: {self._settings.provider_backend}")
