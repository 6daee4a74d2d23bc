from __future__ import annotations

import pytest
from order_service.domain.lifecycle import (
    TERMINAL_STATUSES,
    OrderTrigger,
    can_apply,
    next_status,
)

from shared.contracts import OrderStatus


@pytest.mark.parametrize(
    ("trigger", "current", "expected"),
    [
        (OrderTrigger.START_CHECKOUT, OrderStatus.CREATED, OrderStatus.AWAITING_PAYMENT),
        (OrderTrigger.START_CHECKOUT, OrderStatus.PAYMENT_FAILED, OrderStatus.AWAITING_PAYMENT),
        (OrderTrigger.PAYMENT_SUCCEEDED, OrderStatus.AWAITING_PAYMENT, OrderStatus.PAID),
        (OrderTrigger.PAYMENT_FAILED, OrderStatus.AWAITING_PAYMENT, OrderStatus.PAYMENT_FAILED),
        (OrderTrigger.FULFILL, OrderStatus.PAID, OrderStatus.FULFILLED),
        (OrderTrigger.CANCEL, OrderStatus.CREATED, OrderStatus.CANCELLED),
        (OrderTrigger.CANCEL, OrderStatus.AWAITING_PAYMENT, OrderStatus.CANCELLED),
        (OrderTrigger.CANCEL, OrderStatus.PAYMENT_FAILED, OrderStatus.CANCELLED),
    ],
)
def test_allowed_transitions(
    trigger: OrderTrigger, current: OrderStatus, expected: OrderStatus
) -> None:
    assert next_status(trigger, current) is expected


@pytest.mark.parametrize(
    ("trigger", "current"),
    [
        (OrderTrigger.PAYMENT_SUCCEEDED, OrderStatus.CREATED),
        (OrderTrigger.PAYMENT_SUCCEEDED, OrderStatus.PAID),
        (OrderTrigger.PAYMENT_FAILED, OrderStatus.PAID),
        (OrderTrigger.START_CHECKOUT, OrderStatus.PAID),
        (OrderTrigger.FULFILL, OrderStatus.AWAITING_PAYMENT),
        (OrderTrigger.CANCEL, OrderStatus.PAID),
        (OrderTrigger.CANCEL, OrderStatus.FULFILLED),
    ],
)
def test_disallowed_transitions(trigger: OrderTrigger, current: OrderStatus) -> None:
    assert next_status(trigger, current) is None
    assert can_apply(trigger, current) is False


def test_terminal_statuses_accept_no_trigger() -> None:
    for status in TERMINAL_STATUSES:
        assert all(next_status(trigger, status) is None for trigger in OrderTrigger)
