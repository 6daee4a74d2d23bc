from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from order_service.clients.payments_client import PaymentsClient
from order_service.core.errors import OrderNotFoundError
from order_service.domain.lifecycle import OrderTrigger
from order_service.repositories.order_repository import OrderRepository
from order_service.use_cases.responses import to_order_response
from order_service.use_cases.transitions import OrderTransitioner
from shared.contracts import CheckoutResponse, CheckoutSessionResponse, OrderORM, OrderStatus
from shared.logging import get_logger, update_correlation_context
from shared.logging.fields import ORDER_ID, SESSION_ID
from shared.outbox import OutboxRepository

logger = get_logger(__name__)


@dataclass(frozen=True)
class RepositoryBundle:
    order: OrderRepository
    outbox: OutboxRepository


class StartCheckoutUseCase:
    """Moves an order to AwaitingPayment and opens a checkout session for it.

    The transition commits before the payment service is called, so a failed
    session request leaves the order AwaitingPayment and the command can be
    retried; the session is always requested for the order's current version.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        payments_client: PaymentsClient,
    ) -> None:
        self._session_factory = session_factory
        self._payments_client = payments_client

    async def execute(self, order_id: UUID) -> CheckoutResponse:
        update_correlation_context({ORDER_ID: str(order_id)})
        async with self._session_factory() as session:
            repositories = self._build_repositories(session)
            order = await repositories.order.get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(order_id)
            if order.status != OrderStatus.AWAITING_PAYMENT:
                transitioner = OrderTransitioner(repositories.order, repositories.outbox)
                await transitioner.apply(order, OrderTrigger.START_CHECKOUT)
                await session.commit()

        checkout_session = await self._request_session(order)
        update_correlation_context({SESSION_ID: str(checkout_session.session_id)})
        logger.info(
            "checkout_started",
            extra={
                "extra_fields": {
                    "order_id": str(order.order_id),
                    "session_id": str(checkout_session.session_id),
                    "version": order.version,
                }
            },
        )
        return CheckoutResponse(order=to_order_response(order), session=checkout_session)

    def _build_repositories(self, session: AsyncSession) -> RepositoryBundle:
        return RepositoryBundle(order=OrderRepository(session), outbox=OutboxRepository(session))

    async def _request_session(self, order: OrderORM) -> CheckoutSessionResponse:
        return await self._payments_client.create_session(
            order.order_id,
            amount=order.total_amount,
            currency=order.currency,
            order_version=order.version,
        )
