from __future__ import annotations

import asyncio
import signal

from redis.asyncio import from_url as redis_from_url

from notification_service.core.config import Settings, get_settings
from notification_service.db.session import build_engine, build_session_factory, init_db
from notification_service.directory.resolver import RecipientResolver
from notification_service.directory.user_directory import build_user_directory
from notification_service.templates import EMAIL_TOPICS
from notification_service.transport.factory import MailTransportFactory
from notification_service.use_cases.dispatch_notification import DispatchNotificationUseCase
from notification_service.use_cases.project_events import ProjectEventsUseCase
from shared.constants import EMAIL_GROUP, NOTIFICATION_PROJECTION_GROUP
from shared.contracts import Topic
from shared.idempotency import LedgerJanitor, build_idempotency_ledger
from shared.logging import configure_logging, get_logger
from shared.messaging import DeadLetterHandler, build_dead_letter_store, build_event_bus
from shared.observability import configure_otel

logger = get_logger(__name__)

PROJECTED_TOPICS = (Topic.USER_CREATED, Topic.ORDER_CREATED, Topic.ORDER_UPDATED)


async def run(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    configure_logging(settings.log_level, service_name=settings.service_name)
    configure_otel(settings.service_name, environment=settings.app_env)

    engine = build_engine(settings.postgres_dsn)
    session_factory = build_session_factory(engine)
    if settings.app_env == "local":
        await init_db(engine)

    redis_client = None
    if settings.ledger_backend.strip().lower() == "redis":
        redis_client = redis_from_url(settings.redis_url, decode_responses=True)
    ledger = build_idempotency_ledger(
        settings, session_factory=session_factory, redis_client=redis_client
    )
    dead_letters = DeadLetterHandler(
        build_dead_letter_store(settings.dead_letter_backend, session_factory)
    )
    event_bus = build_event_bus(settings, dead_letters)
    transport = MailTransportFactory(settings).create()
    directory = build_user_directory(
        settings.user_directory_base_url, settings.user_directory_timeout_seconds
    )

    dispatcher = DispatchNotificationUseCase(
        ledger, RecipientResolver(session_factory, directory), transport, settings
    )
    projector = ProjectEventsUseCase(session_factory)
    for topic in PROJECTED_TOPICS:
        await event_bus.subscribe(topic, NOTIFICATION_PROJECTION_GROUP, projector)
    for topic in EMAIL_TOPICS:
        await event_bus.subscribe(topic, EMAIL_GROUP, dispatcher)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, stop.set)

    janitor_task: asyncio.Task[None] | None = None
    if settings.run_ledger_janitor:
        janitor = LedgerJanitor(ledger, interval_seconds=settings.ledger_purge_interval_seconds)
        janitor_task = asyncio.create_task(janitor.run_forever(), name="ledger-janitor")

    logger.info(
        "notification_worker_started",
        extra={
            "extra_fields": {
                "event_bus_backend": settings.event_bus_backend,
                "ledger_backend": settings.ledger_backend,
                "mail_backend": settings.mail_backend,
            }
        },
    )
    try:
        await stop.wait()
    finally:
        if janitor_task is not None:
            janitor_task.cancel()
            await asyncio.gather(janitor_task, return_exceptions=True)
        await event_bus.close()
        await transport.close()
        if directory is not None:
            await directory.close()
        if redis_client is not None:
            await redis_client.aclose()
        await engine.dispose()


def main() -> None:
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("notification_worker_stopped")


if __name__ == "__main__":
    main()
