from __future__ import annotations

from typing import Any
from uuid import UUID

import httpx

from order_service.core.errors import PaymentServiceRejectedError, PaymentServiceUnavailableError
from shared.contracts import CheckoutSessionResponse, CreateSessionRequest, ErrorCategory
from shared.observability import inject_headers

_SESSIONS_PATH = "/checkout/sessions"


class PaymentsClient:
    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self._http_client = http_client

    async def create_session(
        self, order_id: UUID, amount: int, currency: str, order_version: int
    ) -> CheckoutSessionResponse:
        request = CreateSessionRequest(
            order_id=order_id, amount=amount, currency=currency, order_version=order_version
        )
        headers = inject_headers({"Content-Type": "application/json"})
        try:
            response = await self._http_client.post(
                _SESSIONS_PATH, json=request.model_dump(mode="json"), headers=headers
            )
        except httpx.TimeoutException as exc:
            raise PaymentServiceUnavailableError("Payment service timed out") from exc
        except httpx.TransportError as exc:
            raise PaymentServiceUnavailableError(f"Payment service unreachable: {exc}") from exc

        if response.status_code >= 500:
            raise PaymentServiceUnavailableError(
                f"Payment service returned {response.status_code}"
            )
        if response.status_code >= 400:
            raise _rejection_from(response)
        return CheckoutSessionResponse.model_validate(response.json())

    async def close(self) -> None:
        await self._http_client.aclose()


class PaymentsClientFactory:
    def __init__(self, base_url: str, timeout_seconds: float) -> None:
        self._base_url = base_url
        self._timeout_seconds = timeout_seconds

    def create(self) -> PaymentsClient:
        client = httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout_seconds)
        return PaymentsClient(client)


def _rejection_from(response: httpx.Response) -> PaymentServiceRejectedError:
    error: dict[str, Any] = {}
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        error = body["error"]
    try:
        category = ErrorCategory(error.get("category", ""))
    except ValueError:
        category = ErrorCategory.VALIDATION_ERROR
    message = str(error.get("message") or f"Payment service returned {response.status_code}")
    return PaymentServiceRejectedError(category, message, response.status_code)
