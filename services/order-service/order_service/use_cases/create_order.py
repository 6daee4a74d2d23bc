from __future__ import annotations

from dataclasses import dataclass

from opentelemetry import trace
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from order_service.core.config import Settings
from order_service.core.errors import ValidationAppError
from order_service.core.metrics import order_create_replays, orders_created
from order_service.repositories.order_repository import (
    LineItemData,
    OrderCreateData,
    OrderRepository,
)
from order_service.use_cases.responses import to_order_response
from shared.contracts import (
    ConcurrencyConflictError,
    CreateOrderRequest,
    EventEnvelope,
    LineItemSnapshot,
    OrderCreatedV1,
    OrderORM,
    OrderResponse,
    OrderStatus,
)
from shared.logging import get_logger, update_correlation_context
from shared.logging.fields import ORDER_ID, USER_ID
from shared.observability import current_trace_id
from shared.outbox import OutboxRepository
from shared.utils.ids import deterministic_event_id, deterministic_order_id
from shared.utils.validation import ensure_supported_currency

logger = get_logger(__name__)


@dataclass(frozen=True)
class RepositoryBundle:
    order: OrderRepository
    outbox: OutboxRepository


class CreateOrderUseCase:
    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession], settings: Settings
    ) -> None:
        self._session_factory = session_factory
        self._settings = settings
        self._tracer = trace.get_tracer(__name__)

    async def execute(self, request: CreateOrderRequest, dedup_token: str) -> OrderResponse:
        order_data = self._build_order_data(request, dedup_token)
        update_correlation_context(
            {USER_ID: order_data.user_id, ORDER_ID: str(order_data.order_id)}
        )

        async with self._session_factory() as session:
            repositories = self._build_repositories(session)
            existing = await repositories.order.get_by_dedup_token(
                order_data.user_id, order_data.dedup_token
            )
            if existing:
                return self._replayed(existing)

            with self._tracer.start_as_current_span("persist_order"):
                order = repositories.order.create_order(order_data)
                repositories.outbox.add_envelope(self._order_created_envelope(order_data))
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    return await self._resolve_race(session, order_data)

        orders_created.add(1, {"currency": order_data.currency})
        logger.info(
            "order_created",
            extra={
                "extra_fields": {
                    "order_id": str(order.order_id),
                    "total_amount": order_data.total_amount,
                    "currency": order_data.currency,
                    "line_items": len(order_data.line_items),
                }
            },
        )
        return to_order_response(order)

    def _build_repositories(self, session: AsyncSession) -> RepositoryBundle:
        return RepositoryBundle(order=OrderRepository(session), outbox=OutboxRepository(session))

    def _build_order_data(self, request: CreateOrderRequest, dedup_token: str) -> OrderCreateData:
        with self._tracer.start_as_current_span("validate"):
            token = dedup_token.strip()
            if not token:
                raise ValidationAppError("Missing required header: Idempotency-Key")
            if len(request.line_items) > self._settings.max_line_items:
                raise ValidationAppError(
                    f"Orders accept at most {self._settings.max_line_items} line items"
                )
            try:
                currency = ensure_supported_currency(
                    request.currency, self._settings.supported_currencies
                )
            except ValueError as exc:
                raise ValidationAppError(str(exc)) from exc
            return OrderCreateData(
                order_id=deterministic_order_id(request.user_id, token),
                user_id=request.user_id,
                dedup_token=token,
                currency=currency,
                line_items=tuple(
                    LineItemData(
                        product_id=item.product_id,
                        quantity=item.quantity,
                        unit_price=item.unit_price,
                    )
                    for item in request.line_items
                ),
            )

    def _order_created_envelope(self, order_data: OrderCreateData) -> EventEnvelope:
        payload = OrderCreatedV1(
            order_id=order_data.order_id,
            user_id=order_data.user_id,
            line_items=tuple(
                LineItemSnapshot(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                )
                for item in order_data.line_items
            ),
            total_amount=order_data.total_amount,
            currency=order_data.currency,
            status=OrderStatus.CREATED,
            version=0,
        )
        return EventEnvelope.build(
            payload,
            str(order_data.order_id),
            event_id=deterministic_event_id("order.created", order_data.order_id),
            trace_id=current_trace_id(),
        )

    async def _resolve_race(
        self, session: AsyncSession, order_data: OrderCreateData
    ) -> OrderResponse:
        # A concurrent request with the same dedup token committed first.
        existing = await self._build_repositories(session).order.get_by_dedup_token(
            order_data.user_id, order_data.dedup_token
        )
        if not existing:
            raise ConcurrencyConflictError("Order creation raced with a conflicting write")
        return self._replayed(existing)

    def _replayed(self, order: OrderORM) -> OrderResponse:
        order_create_replays.add(1)
        logger.info(
            "order_create_replayed",
            extra={"extra_fields": {"order_id": str(order.order_id), "status": order.status.value}},
        )
        return to_order_response(order)
