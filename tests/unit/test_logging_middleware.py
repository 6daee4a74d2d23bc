from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from shared.logging import CorrelationMiddleware, get_correlation_context


def _build_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(CorrelationMiddleware)

    @app.get("/echo")
    def echo_context() -> dict[str, str]:
        return get_correlation_context()

    @app.get("/boom")
    def raise_error() -> None:
        raise RuntimeError("forced")

    return app


def test_correlation_middleware_enriches_context_from_headers() -> None:
    headers = {
        "Idempotency-Key": "idem-1",
        "Provider-Delivery-Id": "evt_1",
        "X-Trace-Id": "trace-from-caller",
    }

    with TestClient(_build_app()) as client:
        response = client.get("/echo", headers=headers)

    payload = response.json()
    assert response.status_code == 200
    assert payload["idempotency_key"] == "idem-1"
    assert payload["delivery_id"] == "evt_1"
    assert "trace_id" in payload
    assert get_correlation_context() == {}


def test_correlation_middleware_clears_context_even_when_handler_fails() -> None:
    with TestClient(_build_app(), raise_server_exceptions=False) as client:
        response = client.get("/boom")

    assert response.status_code == 500
    assert get_correlation_context() == {}
