from __future__ import annotations

from opentelemetry import trace

from order_service.core.errors import InvalidTransitionError
from order_service.core.metrics import order_transitions
from order_service.domain.lifecycle import OrderTrigger, next_status, target_of
from order_service.repositories.order_repository import OrderRepository
from shared.contracts import (
    ConcurrencyConflictError,
    EventEnvelope,
    OrderORM,
    OrderUpdatedV1,
)
from shared.logging import get_logger, update_correlation_context
from shared.logging.fields import ORDER_ID, STATUS, VERSION
from shared.observability import current_trace_id
from shared.outbox import OutboxRepository
from shared.utils.ids import deterministic_event_id

logger = get_logger(__name__)


class OrderTransitioner:
    """Applies one lifecycle trigger and stages the matching ``order.updated`` event.

    The caller owns the transaction: the version bump and the outbox row commit
    together or not at all.
    """

    def __init__(self, orders: OrderRepository, outbox: OutboxRepository) -> None:
        self._orders = orders
        self._outbox = outbox
        self._tracer = trace.get_tracer(__name__)

    async def apply(
        self, order: OrderORM, trigger: OrderTrigger, *, reason: str | None = None
    ) -> OrderORM:
        current = order.status
        target = next_status(trigger, current)
        if target is None:
            raise InvalidTransitionError(order.order_id, current, target_of(trigger))

        with self._tracer.start_as_current_span("order_transition"):
            expected_version = order.version
            applied = await self._orders.transition(
                order.order_id,
                expected_version=expected_version,
                expected_status=current,
                new_status=target,
            )
            if not applied:
                raise ConcurrencyConflictError(
                    f"Order {order.order_id} changed while applying {trigger.value}"
                )
            order.status = target
            order.version = expected_version + 1

            self._outbox.add_envelope(
                EventEnvelope.build(
                    OrderUpdatedV1(
                        order_id=order.order_id,
                        status=target,
                        previous_status=current,
                        version=order.version,
                        reason=reason,
                    ),
                    str(order.order_id),
                    event_id=deterministic_event_id("order.updated", order.order_id, order.version),
                    trace_id=current_trace_id(),
                )
            )

        order_transitions.add(1, {"from": current.value, "to": target.value})
        update_correlation_context(
            {ORDER_ID: str(order.order_id), STATUS: target.value, VERSION: str(order.version)}
        )
        logger.info(
            "order_transitioned",
            extra={
                "extra_fields": {
                    "order_id": str(order.order_id),
                    "trigger": trigger.value,
                    "previous_status": current.value,
                    "status": target.value,
                    "version": order.version,
                }
            },
        )
        return order
