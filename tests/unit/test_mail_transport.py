from __future__ import annotations

import json

import httpx
import pytest
from notification_service.core.config import Settings
from notification_service.core.errors import MailTransportError
from notification_service.transport.contracts import MailMessage
from notification_service.transport.factory import MailTransportFactory
from notification_service.transport.http import HttpMailTransport
from notification_service.transport.logging_transport import LoggingMailTransport

from shared.resilience import Bulkhead, CircuitBreaker, CircuitBreakerConfig


def _message(key: str = "evt-1") -> MailMessage:
    return MailMessage(to="ada@example.com", subject="Hi", body="Hello", idempotency_key=key)


def _transport(
    handler,  # noqa: ANN001
    *,
    breaker: CircuitBreaker | None = None,
    bulkhead: Bulkhead | None = None,
) -> HttpMailTransport:
    return HttpMailTransport(
        httpx.AsyncClient(base_url="https://mail.test", transport=httpx.MockTransport(handler)),
        breaker or CircuitBreaker("mail-provider"),
        bulkhead or Bulkhead(limit_per_key=2),
        sender="orders@example.com",
    )


@pytest.mark.asyncio
async def test_http_transport_posts_message_with_idempotency_key() -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["key"] = request.headers["Idempotency-Key"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(202, json={"id": "msg_1"})

    transport = _transport(handler)
    message_id = await transport.send(_message())
    await transport.close()

    assert message_id == "msg_1"
    assert captured["path"] == "/v1/messages"
    assert captured["key"] == "evt-1"
    assert captured["body"] == {
        "from": "orders@example.com",
        "to": "ada@example.com",
        "subject": "Hi",
        "text": "Hello",
    }


@pytest.mark.asyncio
async def test_http_transport_falls_back_to_idempotency_key_as_message_id() -> None:
    transport = _transport(lambda _request: httpx.Response(202, text=""))

    assert await transport.send(_message("evt-9")) == "evt-9"


@pytest.mark.asyncio
@pytest.mark.parametrize(("status", "retryable"), [(500, True), (429, True), (422, False)])
async def test_http_transport_classifies_provider_errors(status: int, retryable: bool) -> None:
    transport = _transport(lambda _request: httpx.Response(status))

    with pytest.raises(MailTransportError) as exc_info:
        await transport.send(_message())

    assert exc_info.value.retryable is retryable


@pytest.mark.asyncio
async def test_http_transport_wraps_network_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("slow", request=request)

    with pytest.raises(MailTransportError, match="timed out"):
        await _transport(handler).send(_message())


@pytest.mark.asyncio
async def test_breaker_opens_on_retryable_failures_only() -> None:
    breaker = CircuitBreaker(
        "mail-provider", CircuitBreakerConfig(failure_threshold=2, recovery_timeout_seconds=60)
    )
    rejected = _transport(lambda _request: httpx.Response(400), breaker=breaker)
    for _ in range(3):
        with pytest.raises(MailTransportError):
            await rejected.send(_message())
    assert breaker.state == "closed"

    failing = _transport(lambda _request: httpx.Response(503), breaker=breaker)
    for _ in range(2):
        with pytest.raises(MailTransportError):
            await failing.send(_message())
    with pytest.raises(MailTransportError, match="Circuit mail-provider is open"):
        await failing.send(_message())
    assert breaker.state == "open"


@pytest.mark.asyncio
async def test_logging_transport_deduplicates_on_idempotency_key() -> None:
    transport = LoggingMailTransport()

    first = await transport.send(_message("evt-1"))
    again = await transport.send(_message("evt-1"))
    other = await transport.send(_message("evt-2"))

    assert first == again == "log-1"
    assert other == "log-2"
    assert [message.idempotency_key for message in transport.sent] == ["evt-1", "evt-2"]


def test_transport_factory_selects_backend() -> None:
    logging_transport = MailTransportFactory(Settings(mail_backend="logging")).create()
    http_transport = MailTransportFactory(
        Settings(mail_backend="http", mail_api_key="key_1")
    ).create()

    assert isinstance(logging_transport, LoggingMailTransport)
    assert isinstance(http_transport, HttpMailTransport)
    assert http_transport._http_client.headers["Authorization"] == "Bearer key_1"  # noqa: SLF001
    with pytest.raises(ValueError, match="Unsupported mail backend"):
        MailTransportFactory(Settings(mail_backend="pigeon")).create()
