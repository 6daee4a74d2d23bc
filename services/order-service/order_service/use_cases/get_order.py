from __future__ import annotations

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from order_service.core.errors import OrderNotFoundError
from order_service.repositories.order_repository import OrderRepository
from order_service.use_cases.responses import to_order_response
from shared.contracts import OrderResponse


class GetOrderUseCase:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def execute(self, order_id: UUID) -> OrderResponse:
        async with self._session_factory() as session:
            order = await OrderRepository(session).get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(order_id)
            return to_order_response(order)
