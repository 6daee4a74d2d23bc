from __future__ import annotations

import time

import httpx

from notification_service.core.errors import MailTransportError
from notification_service.core.metrics import email_failures, mail_latency
from notification_service.transport.contracts import MailMessage
from shared.observability import inject_headers
from shared.resilience import Bulkhead, BulkheadFullError, CircuitBreaker, CircuitBreakerOpenError

_MESSAGES_PATH = "/v1/messages"
_BULKHEAD_KEY = "mail-provider"


class HttpMailTransport:
    """Sends mail through a provider HTTP API.

    The provider de-duplicates on the ``Idempotency-Key`` header, so a redelivered
    event that already reached the provider does not produce a second email.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        breaker: CircuitBreaker,
        bulkhead: Bulkhead,
        sender: str,
    ) -> None:
        self._http_client = http_client
        self._breaker = breaker
        self._bulkhead = bulkhead
        self._sender = sender

    async def send(self, message: MailMessage) -> str:
        try:
            self._breaker.allow_call()
        except CircuitBreakerOpenError as exc:
            email_failures.add(1, {"error": "circuit_open"})
            raise MailTransportError(str(exc)) from exc

        try:
            async with self._bulkhead.limit(_BULKHEAD_KEY):
                start = time.perf_counter()
                message_id = await self._post(message)
        except BulkheadFullError as exc:
            email_failures.add(1, {"error": "bulkhead_full"})
            raise MailTransportError(str(exc)) from exc
        except MailTransportError as exc:
            if exc.retryable:
                self._breaker.on_failure()
            email_failures.add(1, {"error": type(exc.__cause__ or exc).__name__})
            raise
        self._breaker.on_success()
        mail_latency.record((time.perf_counter() - start) * 1000)
        return message_id

    async def _post(self, message: MailMessage) -> str:
        headers = inject_headers(
            {"Content-Type": "application/json", "Idempotency-Key": message.idempotency_key}
        )
        body = {
            "from": self._sender,
            "to": message.to,
            "subject": message.subject,
            "text": message.body,
        }
        try:
            response = await self._http_client.post(_MESSAGES_PATH, json=body, headers=headers)
        except httpx.TimeoutException as exc:
            raise MailTransportError("Mail provider timed out") from exc
        except httpx.TransportError as exc:
            raise MailTransportError(f"Mail provider unreachable: {exc}") from exc

        if response.status_code >= 500 or response.status_code == 429:
            raise MailTransportError(f"Mail provider returned {response.status_code}")
        if response.status_code >= 400:
            raise MailTransportError(
                f"Mail provider rejected message with {response.status_code}", retryable=False
            )
        try:
            document = response.json()
        except ValueError:
            document = {}
        return str(document.get("id") or message.idempotency_key)

    async def close(self) -> None:
        await self._http_client.aclose()
