from __future__ import annotations

from collections.abc import Iterator
from typing import Any
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from payment_service.api import dependencies
from payment_service.api.routes_sessions import router as sessions_router
from payment_service.api.routes_webhooks import router as webhooks_router
from payment_service.core.errors import (
    DuplicateSessionError,
    SessionNotFoundError,
    SignatureInvalidError,
)
from payment_service.webhooks.models import WebhookAck

from tests.helpers import (
    assert_error_payload,
    build_test_app,
    make_session_response,
    override_dependencies,
)


class FakeUseCase:
    def __init__(self, result: Any = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple[Any, ...]] = []

    async def execute(self, *args: Any) -> Any:
        self.calls.append(args)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def use_cases() -> dict[str, FakeUseCase]:
    return {
        "create": FakeUseCase(make_session_response()),
        "get": FakeUseCase(make_session_response()),
        "webhook": FakeUseCase(WebhookAck(delivery_id="evt_1", outcome="SUCCEEDED")),
    }


@pytest.fixture
def client(use_cases: dict[str, FakeUseCase]) -> Iterator[TestClient]:
    app = build_test_app(sessions_router, webhooks_router)
    with override_dependencies(
        app,
        {
            dependencies.get_create_session_use_case: lambda: use_cases["create"],
            dependencies.get_get_session_use_case: lambda: use_cases["get"],
            dependencies.get_handle_webhook_use_case: lambda: use_cases["webhook"],
        },
    ):
        with TestClient(app) as test_client:
            yield test_client


def test_create_session_returns_201(client: TestClient, use_cases: dict[str, FakeUseCase]) -> None:
    order_id = uuid4()

    response = client.post(
        "/checkout/sessions",
        json={"order_id": str(order_id), "amount": 4200, "currency": "USD", "order_version": 1},
    )

    assert response.status_code == 201
    assert response.json()["status"] == "PENDING"
    [(request,)] = use_cases["create"].calls
    assert request.order_id == order_id
    assert request.order_version == 1


def test_create_session_maps_duplicate_to_409(
    client: TestClient, use_cases: dict[str, FakeUseCase]
) -> None:
    order_id = uuid4()
    use_cases["create"].error = DuplicateSessionError(order_id)

    response = client.post(
        "/checkout/sessions", json={"order_id": str(order_id), "amount": 4200, "currency": "USD"}
    )

    assert_error_payload(
        response, expected_status=409, expected_category="duplicate_session", retryable=False
    )


def test_get_session_maps_not_found(client: TestClient, use_cases: dict[str, FakeUseCase]) -> None:
    session_id = uuid4()
    use_cases["get"].error = SessionNotFoundError(session_id)

    response = client.get(f"/checkout/sessions/{session_id}")

    assert_error_payload(response, expected_status=404, expected_category="not_found")


def test_webhook_route_passes_raw_body_and_signature(
    client: TestClient, use_cases: dict[str, FakeUseCase]
) -> None:
    body = b'{"id":"evt_1", "type":"payment.succeeded"}'

    response = client.post(
        "/webhooks/provider",
        content=body,
        headers={"Provider-Signature": "t=1,v1=abc", "Content-Type": "application/json"},
    )

    assert response.status_code == 200
    assert response.json() == {"delivery_id": "evt_1", "outcome": "SUCCEEDED"}
    assert use_cases["webhook"].calls == [(body, "t=1,v1=abc")]


def test_webhook_route_maps_invalid_signature_to_401(
    client: TestClient, use_cases: dict[str, FakeUseCase]
) -> None:
    use_cases["webhook"].error = SignatureInvalidError()

    response = client.post("/webhooks/provider", content=b"{}")

    assert_error_payload(
        response, expected_status=401, expected_category="signature_invalid", retryable=False
    )
    assert use_cases["webhook"].calls == [(b"{}", None)]
