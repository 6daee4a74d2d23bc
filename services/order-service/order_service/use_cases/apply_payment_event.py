from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from order_service.core.config import Settings
from order_service.core.metrics import stale_payment_events
from order_service.domain.lifecycle import OrderTrigger, can_apply
from order_service.repositories.order_repository import OrderRepository
from order_service.use_cases.transitions import OrderTransitioner
from shared.constants import ORDER_SERVICE_GROUP
from shared.contracts import (
    EventEnvelope,
    IdempotencyOutcome,
    OrderORM,
    PaymentFailedV1,
    PaymentSuccessfulV1,
)
from shared.idempotency.contracts import hash_result
from shared.idempotency.metrics import duplicates_dropped
from shared.idempotency.sql import ProcessedEventRepository
from shared.logging import get_logger, update_correlation_context
from shared.logging.fields import ORDER_ID, SESSION_ID
from shared.outbox import OutboxRepository

logger = get_logger(__name__)

PaymentPayload = PaymentSuccessfulV1 | PaymentFailedV1


@dataclass(frozen=True)
class RepositoryBundle:
    order: OrderRepository
    outbox: OutboxRepository
    ledger: ProcessedEventRepository


class ApplyPaymentEventUseCase:
    """Consumes ``payment.successful`` / ``payment.failed`` for the order service.

    The ledger reservation, the version-guarded transition and the outbox row
    share one transaction, so a redelivered event either finds the committed
    ledger record or replays the whole unit.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
        consumer_group: str = ORDER_SERVICE_GROUP,
    ) -> None:
        self._session_factory = session_factory
        self._settings = settings
        self._consumer_group = consumer_group

    async def __call__(self, envelope: EventEnvelope) -> None:
        await self.execute(envelope)

    async def execute(self, envelope: EventEnvelope) -> str:
        payload = envelope.payload
        if not isinstance(payload, PaymentSuccessfulV1 | PaymentFailedV1):
            raise TypeError(f"Unexpected payload for {envelope.topic.value}")
        update_correlation_context(
            {ORDER_ID: str(payload.order_id), SESSION_ID: str(payload.session_id)}
        )

        async with self._session_factory() as session:
            repositories = self._build_repositories(session)
            outcome = await repositories.ledger.reserve(
                self._consumer_group,
                envelope.event_id,
                lease_seconds=self._settings.ledger_lease_seconds,
            )
            if outcome is IdempotencyOutcome.ALREADY_PROCESSED:
                duplicates_dropped.add(1, {"consumer_group": self._consumer_group})
                logger.info(
                    "duplicate_event_dropped",
                    extra={
                        "extra_fields": {
                            "consumer_group": self._consumer_group,
                            "event_id": str(envelope.event_id),
                        }
                    },
                )
                return "duplicate"

            order = await repositories.order.get_by_id(payload.order_id)
            trigger = self._trigger_for(payload)
            stale_reason = self._stale_reason(order, payload, trigger)
            if stale_reason or order is None:
                result = "stale"
                self._log_stale(envelope, payload, stale_reason or "order_missing")
            else:
                transitioner = OrderTransitioner(repositories.order, repositories.outbox)
                await transitioner.apply(order, trigger, reason=self._reason_for(payload))
                result = order.status.value

            await repositories.ledger.mark_committed(
                self._consumer_group,
                envelope.event_id,
                result_hash=hash_result({"result": result}),
            )
            await session.commit()
            return result

    def _build_repositories(self, session: AsyncSession) -> RepositoryBundle:
        return RepositoryBundle(
            order=OrderRepository(session),
            outbox=OutboxRepository(session),
            ledger=ProcessedEventRepository(session),
        )

    def _trigger_for(self, payload: PaymentPayload) -> OrderTrigger:
        if isinstance(payload, PaymentSuccessfulV1):
            return OrderTrigger.PAYMENT_SUCCEEDED
        return OrderTrigger.PAYMENT_FAILED

    def _reason_for(self, payload: PaymentPayload) -> str | None:
        if isinstance(payload, PaymentFailedV1):
            return payload.reason
        return None

    def _stale_reason(
        self, order: OrderORM | None, payload: PaymentPayload, trigger: OrderTrigger
    ) -> str | None:
        if order is None:
            return "order_missing"
        if not can_apply(trigger, order.status):
            return f"status_{order.status.value.lower()}"
        if order.version != payload.order_version:
            return "version_mismatch"
        if order.total_amount != payload.amount or order.currency != payload.currency:
            return "amount_mismatch"
        return None

    def _log_stale(self, envelope: EventEnvelope, payload: PaymentPayload, reason: str) -> None:
        stale_payment_events.add(1, {"topic": envelope.topic.value, "reason": reason})
        logger.warning(
            "stale_payment_event_dropped",
            extra={
                "extra_fields": {
                    "event_id": str(envelope.event_id),
                    "order_id": str(payload.order_id),
                    "session_id": str(payload.session_id),
                    "order_version": payload.order_version,
                    "reason": reason,
                }
            },
        )
