from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from opentelemetry import trace
from starlette.responses import Response

from payment_service.api.routes_sessions import router as sessions_router
from payment_service.api.routes_webhooks import router as webhooks_router
from payment_service.core.config import Settings, get_settings
from payment_service.core.metrics import error_counter, latency_histogram, request_counter
from payment_service.db.session import build_engine, build_session_factory, init_db
from payment_service.providers.factory import ProviderClientFactory
from payment_service.providers.gateway import CheckoutGateway
from payment_service.use_cases.expire_sessions import ExpireSessionsUseCase
from payment_service.workers.session_expiry import SessionExpiryWorker
from shared.idempotency import LedgerJanitor
from shared.idempotency.sql import SqlIdempotencyLedger
from shared.logging import CorrelationMiddleware, configure_logging
from shared.messaging import DeadLetterHandler, build_dead_letter_store, build_event_bus
from shared.observability import configure_otel, current_trace_id
from shared.outbox import OutboxRelayWorker
from shared.resilience import CircuitBreaker, CircuitBreakerConfig
from shared.utils.http_errors import register_error_handlers
from shared.utils.http_security import apply_security_headers


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_logging(settings.log_level, service_name=settings.service_name)
    configure_otel(settings.service_name, environment=settings.app_env)

    engine = build_engine(settings.postgres_dsn)
    session_factory = build_session_factory(engine)
    if settings.app_env == "local":
        await init_db(engine)

    dead_letters = DeadLetterHandler(
        build_dead_letter_store(settings.dead_letter_backend, session_factory)
    )
    event_bus = build_event_bus(settings, dead_letters)
    gateway = CheckoutGateway(ProviderClientFactory(settings).create(), _build_breaker(settings))

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.event_bus = event_bus
    app.state.checkout_gateway = gateway

    background: list[asyncio.Task[None]] = []
    if settings.run_outbox_relay:
        relay = OutboxRelayWorker(settings, session_factory, event_bus, dead_letters)
        background.append(asyncio.create_task(relay.run_forever(), name="outbox-relay"))
    if settings.run_session_expiry:
        expiry = SessionExpiryWorker(
            ExpireSessionsUseCase(session_factory, settings.session_expiry_batch_size),
            interval_seconds=settings.session_expiry_interval_seconds,
        )
        background.append(asyncio.create_task(expiry.run_forever(), name="session-expiry"))
    if settings.run_ledger_janitor:
        janitor = LedgerJanitor(
            SqlIdempotencyLedger(
                session_factory,
                retention_seconds=settings.ledger_retention_seconds,
                lease_seconds=settings.ledger_lease_seconds,
            ),
            interval_seconds=settings.ledger_purge_interval_seconds,
        )
        background.append(asyncio.create_task(janitor.run_forever(), name="ledger-janitor"))

    yield

    for task in background:
        task.cancel()
    await asyncio.gather(*background, return_exceptions=True)
    await event_bus.close()
    await gateway.close()
    await engine.dispose()


def _build_breaker(settings: Settings) -> CircuitBreaker:
    return CircuitBreaker(
        "payment-provider",
        CircuitBreakerConfig(
            failure_threshold=settings.provider_breaker_failure_threshold,
            recovery_timeout_seconds=settings.provider_breaker_recovery_seconds,
        ),
    )


app = FastAPI(title="payment-service", version="0.1.0", lifespan=lifespan)
app.add_middleware(CorrelationMiddleware)
register_error_handlers(app)
app.include_router(sessions_router)
app.include_router(webhooks_router)


@app.middleware("http")
async def telemetry_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    tracer = trace.get_tracer("payment-service")
    start = time.perf_counter()
    request_counter.add(1, {"path": request.url.path, "method": request.method})

    with tracer.start_as_current_span(f"{request.method} {request.url.path}"):
        response = await call_next(request)

    duration_ms = (time.perf_counter() - start) * 1000
    latency_histogram.record(duration_ms, {"path": request.url.path, "method": request.method})
    if response.status_code >= 400:
        error_counter.add(
            1,
            {
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
            },
        )

    apply_security_headers(response, trace_id=current_trace_id())
    return response


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
