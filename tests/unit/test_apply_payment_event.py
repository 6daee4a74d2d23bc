from __future__ import annotations

from uuid import uuid4

import pytest
from order_service.core.config import Settings
from order_service.use_cases import apply_payment_event

from shared.constants import ORDER_SERVICE_GROUP
from shared.contracts import (
    OrderORM,
    OrderStatus,
    PaymentFailedV1,
    PaymentSuccessfulV1,
    UserCreatedV1,
)
from tests.helpers import (
    FakeOrderRepository,
    FakeOutboxRepository,
    FakeProcessedEventRepository,
    FakeSession,
    FakeSessionFactory,
    make_envelope,
    make_order,
)


class Harness:
    def __init__(self, monkeypatch: pytest.MonkeyPatch, *orders: OrderORM) -> None:
        self.orders = FakeOrderRepository(*orders)
        self.outbox = FakeOutboxRepository()
        self.ledger = FakeProcessedEventRepository()
        self.session = FakeSession()
        monkeypatch.setattr(apply_payment_event, "OrderRepository", lambda _s: self.orders)
        monkeypatch.setattr(apply_payment_event, "OutboxRepository", lambda _s: self.outbox)
        monkeypatch.setattr(
            apply_payment_event, "ProcessedEventRepository", lambda _s: self.ledger
        )
        self.use_case = apply_payment_event.ApplyPaymentEventUseCase(
            FakeSessionFactory(self.session), Settings()
        )


def _succeeded(order: OrderORM, **overrides: object) -> PaymentSuccessfulV1:
    values: dict[str, object] = {
        "order_id": order.order_id,
        "session_id": uuid4(),
        "amount": order.total_amount,
        "currency": order.currency,
        "order_version": order.version,
        "provider_reference": "sim_ref",
    }
    values.update(overrides)
    return PaymentSuccessfulV1(**values)


@pytest.mark.asyncio
async def test_payment_successful_marks_order_paid_and_emits_order_updated(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    order = make_order(status=OrderStatus.AWAITING_PAYMENT, version=1)
    harness = Harness(monkeypatch, order)
    envelope = make_envelope(_succeeded(order))

    result = await harness.use_case.execute(envelope)

    assert result == "PAID"
    assert order.status is OrderStatus.PAID
    assert order.version == 2
    [updated] = harness.outbox.envelopes
    assert updated.payload.status is OrderStatus.PAID
    assert updated.payload.version == 2
    assert (ORDER_SERVICE_GROUP, envelope.event_id) in harness.ledger.committed
    assert harness.session.commits == 1


@pytest.mark.asyncio
async def test_redelivered_payment_event_advances_version_exactly_once(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    order = make_order(status=OrderStatus.AWAITING_PAYMENT, version=1)
    harness = Harness(monkeypatch, order)
    envelope = make_envelope(_succeeded(order))

    results = [await harness.use_case.execute(envelope) for _ in range(5)]

    assert results == ["PAID", "duplicate", "duplicate", "duplicate", "duplicate"]
    assert order.version == 2
    assert len(harness.orders.transitions) == 1
    assert len(harness.outbox.envelopes) == 1


@pytest.mark.asyncio
async def test_payment_failed_records_reason(monkeypatch: pytest.MonkeyPatch) -> None:
    order = make_order(status=OrderStatus.AWAITING_PAYMENT, version=1)
    harness = Harness(monkeypatch, order)
    payload = PaymentFailedV1(
        order_id=order.order_id,
        session_id=uuid4(),
        amount=4200,
        currency="USD",
        order_version=1,
        reason="card_declined",
    )

    await harness.use_case(make_envelope(payload))

    assert order.status is OrderStatus.PAYMENT_FAILED
    assert harness.outbox.envelopes[0].payload.reason == "card_declined"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("order_kwargs", "overrides"),
    [
        ({"status": OrderStatus.AWAITING_PAYMENT, "version": 3}, {"order_version": 1}),
        ({"status": OrderStatus.CANCELLED, "version": 2}, {"order_version": 2}),
        ({"status": OrderStatus.PAID, "version": 2}, {"order_version": 2}),
        ({"status": OrderStatus.AWAITING_PAYMENT, "version": 1}, {"amount": 999}),
        ({"status": OrderStatus.AWAITING_PAYMENT, "version": 1}, {"currency": "EUR"}),
    ],
)
async def test_stale_or_mismatched_payment_events_are_dropped_without_error(
    monkeypatch: pytest.MonkeyPatch, order_kwargs: dict, overrides: dict
) -> None:
    order = make_order(**order_kwargs)
    status, version = order.status, order.version
    harness = Harness(monkeypatch, order)
    envelope = make_envelope(_succeeded(order, **overrides))

    result = await harness.use_case.execute(envelope)

    assert result == "stale"
    assert (order.status, order.version) == (status, version)
    assert harness.outbox.envelopes == []
    assert (ORDER_SERVICE_GROUP, envelope.event_id) in harness.ledger.committed


@pytest.mark.asyncio
async def test_payment_for_unknown_order_is_stale(monkeypatch: pytest.MonkeyPatch) -> None:
    harness = Harness(monkeypatch)
    ghost = make_order(status=OrderStatus.AWAITING_PAYMENT, version=1)

    assert await harness.use_case.execute(make_envelope(_succeeded(ghost))) == "stale"


@pytest.mark.asyncio
async def test_unexpected_payload_type_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    harness = Harness(monkeypatch)

    with pytest.raises(TypeError):
        await harness.use_case.execute(
            make_envelope(UserCreatedV1(user_id="u-1", email="u@example.com"), "u-1")
        )
    assert harness.ledger.reserved == []
