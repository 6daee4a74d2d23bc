from __future__ import annotations

from enum import Enum

from shared.contracts import OrderStatus


class OrderTrigger(str, Enum):
    START_CHECKOUT = "start_checkout"
    PAYMENT_SUCCEEDED = "payment_succeeded"
    PAYMENT_FAILED = "payment_failed"
    FULFILL = "fulfill"
    CANCEL = "cancel"


_TRANSITIONS: dict[OrderTrigger, tuple[frozenset[OrderStatus], OrderStatus]] = {
    OrderTrigger.START_CHECKOUT: (
        frozenset({OrderStatus.CREATED, OrderStatus.PAYMENT_FAILED}),
        OrderStatus.AWAITING_PAYMENT,
    ),
    OrderTrigger.PAYMENT_SUCCEEDED: (
        frozenset({OrderStatus.AWAITING_PAYMENT}),
        OrderStatus.PAID,
    ),
    OrderTrigger.PAYMENT_FAILED: (
        frozenset({OrderStatus.AWAITING_PAYMENT}),
        OrderStatus.PAYMENT_FAILED,
    ),
    OrderTrigger.FULFILL: (frozenset({OrderStatus.PAID}), OrderStatus.FULFILLED),
    OrderTrigger.CANCEL: (
        frozenset({OrderStatus.CREATED, OrderStatus.AWAITING_PAYMENT, OrderStatus.PAYMENT_FAILED}),
        OrderStatus.CANCELLED,
    ),
}

TERMINAL_STATUSES = frozenset({OrderStatus.FULFILLED, OrderStatus.CANCELLED})


def target_of(trigger: OrderTrigger) -> OrderStatus:
    return _TRANSITIONS[trigger][1]


def allowed_sources(trigger: OrderTrigger) -> frozenset[OrderStatus]:
    return _TRANSITIONS[trigger][0]


def can_apply(trigger: OrderTrigger, current: OrderStatus) -> bool:
    return current in allowed_sources(trigger)


def next_status(trigger: OrderTrigger, current: OrderStatus) -> OrderStatus | None:
    if not can_apply(trigger, current):
        return None
    return target_of(trigger)
