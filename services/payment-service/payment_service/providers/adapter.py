from __future__ import annotations

from typing import Protocol

import httpx
from pydantic import ValidationError

from payment_service.core.errors import (
    Provider5xxError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from shared.contracts import ProviderCheckoutRequest, ProviderCheckoutResponse
from shared.observability import inject_headers

_CHECKOUT_PATH = "/v1/checkout/sessions"


class CheckoutProvider(Protocol):
    async def create_checkout(
        self, payload: ProviderCheckoutRequest
    ) -> ProviderCheckoutResponse: ...

    async def close(self) -> None: ...


class ProviderClientAdapter:
    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self._http_client = http_client

    async def create_checkout(self, payload: ProviderCheckoutRequest) -> ProviderCheckoutResponse:
        headers = inject_headers(
            {"Content-Type": "application/json", "Idempotency-Key": str(payload.session_id)}
        )
        try:
            response = await self._http_client.post(
                _CHECKOUT_PATH, json=payload.model_dump(mode="json"), headers=headers
            )
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError() from exc
        except httpx.TransportError as exc:
            raise ProviderUnavailableError(f"Provider unreachable: {exc}") from exc

        if response.status_code >= 500:
            raise Provider5xxError(f"Provider returned {response.status_code}")
        response.raise_for_status()
        try:
            return ProviderCheckoutResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise Provider5xxError("Provider returned an unreadable checkout response") from exc

    async def close(self) -> None:
        await self._http_client.aclose()
