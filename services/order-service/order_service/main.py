from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from opentelemetry import trace
from starlette.responses import Response

from order_service.api.routes_orders import router as orders_router
from order_service.clients.payments_client import PaymentsClientFactory
from order_service.core.config import get_settings
from order_service.core.metrics import error_counter, latency_histogram, request_counter
from order_service.db.session import build_engine, build_session_factory, init_db
from order_service.use_cases.apply_payment_event import ApplyPaymentEventUseCase
from shared.constants import ORDER_SERVICE_GROUP
from shared.contracts import Topic
from shared.idempotency import LedgerJanitor
from shared.idempotency.sql import SqlIdempotencyLedger
from shared.logging import CorrelationMiddleware, configure_logging
from shared.messaging import DeadLetterHandler, build_dead_letter_store, build_event_bus
from shared.messaging.routes import router as dead_letters_router
from shared.observability import configure_otel, current_trace_id
from shared.outbox import OutboxRelayWorker
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
    payments_client = PaymentsClientFactory(
        base_url=settings.payment_service_base_url,
        timeout_seconds=settings.payment_service_timeout_seconds,
    ).create()

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.event_bus = event_bus
    app.state.dead_letters = dead_letters
    app.state.payments_client = payments_client

    payment_events = ApplyPaymentEventUseCase(session_factory, settings)
    await event_bus.subscribe(Topic.PAYMENT_SUCCESSFUL, ORDER_SERVICE_GROUP, payment_events)
    await event_bus.subscribe(Topic.PAYMENT_FAILED, ORDER_SERVICE_GROUP, payment_events)

    background: list[asyncio.Task[None]] = []
    if settings.run_outbox_relay:
        relay = OutboxRelayWorker(settings, session_factory, event_bus, dead_letters)
        background.append(asyncio.create_task(relay.run_forever(), name="outbox-relay"))
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
    await payments_client.close()
    await engine.dispose()


app = FastAPI(title="order-service", version="0.1.0", lifespan=lifespan)
app.add_middleware(CorrelationMiddleware)
register_error_handlers(app)
app.include_router(orders_router)
app.include_router(dead_letters_router)


@app.middleware("http")
async def telemetry_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    tracer = trace.get_tracer("order-service")
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
