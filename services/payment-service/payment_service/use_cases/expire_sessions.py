from __future__ import annotations

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payment_service.core.metrics import sessions_expired
from payment_service.repositories.session_repository import CheckoutSessionRepository
from shared.logging import get_logger
from shared.utils.time import utc_now

logger = get_logger(__name__)


class ExpireSessionsUseCase:
    """Moves overdue Pending sessions to Expired. No event is emitted."""

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession], batch_size: int = 500
    ) -> None:
        self._session_factory = session_factory
        self._batch_size = batch_size

    async def execute(self, now: datetime | None = None) -> int:
        cutoff = now or utc_now()
        async with self._session_factory() as session:
            expired = await CheckoutSessionRepository(session).expire_overdue(
                cutoff, self._batch_size
            )
            await session.commit()

        for checkout_session in expired:
            logger.info(
                "checkout_session_expired",
                extra={
                    "extra_fields": {
                        "session_id": str(checkout_session.session_id),
                        "order_id": str(checkout_session.order_id),
                    }
                },
            )
        if expired:
            sessions_expired.add(len(expired))
        return len(expired)
