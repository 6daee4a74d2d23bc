from __future__ import annotations

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payment_service.core.errors import SessionNotFoundError
from payment_service.repositories.session_repository import CheckoutSessionRepository
from payment_service.use_cases.responses import to_session_response
from shared.contracts import CheckoutSessionResponse


class GetSessionUseCase:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def execute(self, session_id: UUID) -> CheckoutSessionResponse:
        async with self._session_factory() as session:
            checkout_session = await CheckoutSessionRepository(session).get_by_id(session_id)
            if not checkout_session:
                raise SessionNotFoundError(session_id)
            return to_session_response(checkout_session)
