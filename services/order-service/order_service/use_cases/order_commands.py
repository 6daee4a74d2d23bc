from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from order_service.core.errors import OrderNotFoundError
from order_service.domain.lifecycle import OrderTrigger, target_of
from order_service.repositories.order_repository import OrderRepository
from order_service.use_cases.responses import to_order_response
from order_service.use_cases.transitions import OrderTransitioner
from shared.contracts import OrderResponse
from shared.logging import update_correlation_context
from shared.logging.fields import ORDER_ID
from shared.outbox import OutboxRepository


@dataclass(frozen=True)
class RepositoryBundle:
    order: OrderRepository
    outbox: OutboxRepository


class _OrderCommandUseCase:
    trigger: OrderTrigger

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def execute(self, order_id: UUID, *, reason: str | None = None) -> OrderResponse:
        update_correlation_context({ORDER_ID: str(order_id)})
        async with self._session_factory() as session:
            repositories = self._build_repositories(session)
            order = await repositories.order.get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(order_id)
            if order.status == target_of(self.trigger):
                return to_order_response(order)
            transitioner = OrderTransitioner(repositories.order, repositories.outbox)
            await transitioner.apply(order, self.trigger, reason=reason)
            await session.commit()
            return to_order_response(order)

    def _build_repositories(self, session: AsyncSession) -> RepositoryBundle:
        return RepositoryBundle(order=OrderRepository(session), outbox=OutboxRepository(session))


class CancelOrderUseCase(_OrderCommandUseCase):
    trigger = OrderTrigger.CANCEL


class FulfillOrderUseCase(_OrderCommandUseCase):
    trigger = OrderTrigger.FULFILL
