from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notification_service.core.metrics import projection_updates, stale_projection_updates
from notification_service.repositories.projection_repository import ProjectionRepository
from shared.contracts import (
    EventEnvelope,
    OrderCreatedV1,
    OrderUpdatedV1,
    UserContact,
    UserCreatedV1,
)
from shared.logging import get_logger, update_correlation_context
from shared.logging.fields import ORDER_ID, USER_ID

logger = get_logger(__name__)


class ProjectEventsUseCase:
    """Keeps the notification read models current.

    Every write is an upsert or a version-guarded update, so replaying an
    envelope leaves the projection unchanged and no ledger is needed.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def __call__(self, envelope: EventEnvelope) -> None:
        await self.execute(envelope)

    async def execute(self, envelope: EventEnvelope) -> str:
        payload = envelope.payload
        async with self._session_factory() as session:
            repository = self._build_repository(session)
            if isinstance(payload, UserCreatedV1):
                update_correlation_context({USER_ID: payload.user_id})
                await repository.upsert_contact(
                    UserContact(
                        user_id=payload.user_id,
                        email=payload.email,
                        display_name=payload.display_name,
                    )
                )
                result = "contact_upserted"
            elif isinstance(payload, OrderCreatedV1):
                update_correlation_context({ORDER_ID: str(payload.order_id)})
                await repository.record_order_created(payload)
                result = "order_projected"
            elif isinstance(payload, OrderUpdatedV1):
                update_correlation_context({ORDER_ID: str(payload.order_id)})
                applied = await repository.record_order_updated(payload)
                result = "order_updated" if applied else "stale"
            else:
                raise TypeError(f"Unexpected payload for {envelope.topic.value}")
            await session.commit()

        if result == "stale":
            stale_projection_updates.add(1)
            logger.info(
                "stale_order_update_ignored",
                extra={
                    "extra_fields": {
                        "event_id": str(envelope.event_id),
                        "version": getattr(payload, "version", None),
                    }
                },
            )
        else:
            projection_updates.add(1, {"topic": envelope.topic.value})
        return result

    def _build_repository(self, session: AsyncSession) -> ProjectionRepository:
        return ProjectionRepository(session)
