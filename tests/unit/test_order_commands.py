from __future__ import annotations

from uuid import uuid4

import pytest
from order_service.core.errors import (
    InvalidTransitionError,
    OrderNotFoundError,
    PaymentServiceUnavailableError,
)
from order_service.use_cases import get_order, order_commands, start_checkout

from shared.contracts import ConcurrencyConflictError, OrderStatus, OrderUpdatedV1, Topic
from shared.utils.ids import deterministic_event_id
from tests.helpers import (
    FakeOrderRepository,
    FakeOutboxRepository,
    FakePaymentsClient,
    FakeSession,
    FakeSessionFactory,
    make_order,
    make_session_response,
)


def _patch_repositories(
    monkeypatch: pytest.MonkeyPatch,
    module: object,
    orders: FakeOrderRepository,
    outbox: FakeOutboxRepository,
) -> None:
    monkeypatch.setattr(module, "OrderRepository", lambda _session: orders)
    monkeypatch.setattr(module, "OutboxRepository", lambda _session: outbox)


@pytest.mark.asyncio
async def test_start_checkout_moves_order_to_awaiting_payment_and_requests_session(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    order = make_order()
    orders, outbox, session = FakeOrderRepository(order), FakeOutboxRepository(), FakeSession()
    _patch_repositories(monkeypatch, start_checkout, orders, outbox)
    client = FakePaymentsClient(response=make_session_response(order_id=order.order_id))
    use_case = start_checkout.StartCheckoutUseCase(FakeSessionFactory(session), client)

    response = await use_case.execute(order.order_id)

    assert response.order.status is OrderStatus.AWAITING_PAYMENT
    assert response.order.version == 1
    assert response.session.order_id == order.order_id
    assert client.calls == [
        {"order_id": order.order_id, "amount": 4200, "currency": "USD", "order_version": 1}
    ]
    assert session.commits == 1
    [envelope] = outbox.envelopes
    assert envelope.topic is Topic.ORDER_UPDATED
    assert isinstance(envelope.payload, OrderUpdatedV1)
    assert envelope.payload.previous_status is OrderStatus.CREATED
    assert envelope.payload.status is OrderStatus.AWAITING_PAYMENT
    assert envelope.payload.version == 1
    assert envelope.event_id == deterministic_event_id("order.updated", order.order_id, 1)


@pytest.mark.asyncio
async def test_start_checkout_retry_keeps_transition_and_only_requests_a_new_session(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    order = make_order(status=OrderStatus.AWAITING_PAYMENT, version=1)
    orders, outbox, session = FakeOrderRepository(order), FakeOutboxRepository(), FakeSession()
    _patch_repositories(monkeypatch, start_checkout, orders, outbox)
    client = FakePaymentsClient(response=make_session_response(order_id=order.order_id))
    use_case = start_checkout.StartCheckoutUseCase(FakeSessionFactory(session), client)

    await use_case.execute(order.order_id)

    assert outbox.envelopes == []
    assert session.commits == 0
    assert client.calls[0]["order_version"] == 1


@pytest.mark.asyncio
async def test_start_checkout_after_payment_failure_reopens_the_order(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    order = make_order(status=OrderStatus.PAYMENT_FAILED, version=2)
    orders, outbox = FakeOrderRepository(order), FakeOutboxRepository()
    _patch_repositories(monkeypatch, start_checkout, orders, outbox)
    client = FakePaymentsClient(response=make_session_response(order_id=order.order_id))
    use_case = start_checkout.StartCheckoutUseCase(FakeSessionFactory(FakeSession()), client)

    response = await use_case.execute(order.order_id)

    assert response.order.status is OrderStatus.AWAITING_PAYMENT
    assert response.order.version == 3
    assert client.calls[0]["order_version"] == 3


@pytest.mark.asyncio
async def test_start_checkout_keeps_the_transition_when_payment_service_is_down(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    order = make_order()
    orders, outbox, session = FakeOrderRepository(order), FakeOutboxRepository(), FakeSession()
    _patch_repositories(monkeypatch, start_checkout, orders, outbox)
    client = FakePaymentsClient(error=PaymentServiceUnavailableError())
    use_case = start_checkout.StartCheckoutUseCase(FakeSessionFactory(session), client)

    with pytest.raises(PaymentServiceUnavailableError):
        await use_case.execute(order.order_id)

    assert order.status is OrderStatus.AWAITING_PAYMENT
    assert session.commits == 1
    assert len(outbox.envelopes) == 1


@pytest.mark.asyncio
async def test_start_checkout_rejects_paid_orders(monkeypatch: pytest.MonkeyPatch) -> None:
    order = make_order(status=OrderStatus.PAID, version=2)
    orders, outbox = FakeOrderRepository(order), FakeOutboxRepository()
    _patch_repositories(monkeypatch, start_checkout, orders, outbox)
    client = FakePaymentsClient(response=make_session_response())
    use_case = start_checkout.StartCheckoutUseCase(FakeSessionFactory(FakeSession()), client)

    with pytest.raises(InvalidTransitionError) as exc_info:
        await use_case.execute(order.order_id)

    assert exc_info.value.http_status == 409
    assert client.calls == []
    assert outbox.envelopes == []


@pytest.mark.asyncio
async def test_start_checkout_unknown_order(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_repositories(monkeypatch, start_checkout, FakeOrderRepository(), FakeOutboxRepository())
    use_case = start_checkout.StartCheckoutUseCase(
        FakeSessionFactory(FakeSession()), FakePaymentsClient(response=make_session_response())
    )

    with pytest.raises(OrderNotFoundError):
        await use_case.execute(uuid4())


@pytest.mark.asyncio
async def test_concurrent_writer_surfaces_as_retryable_conflict(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    order = make_order()
    orders, outbox, session = FakeOrderRepository(order), FakeOutboxRepository(), FakeSession()
    orders.conflict_on_transition = True
    _patch_repositories(monkeypatch, order_commands, orders, outbox)

    with pytest.raises(ConcurrencyConflictError):
        await order_commands.CancelOrderUseCase(FakeSessionFactory(session)).execute(
            order.order_id
        )

    assert order.status is OrderStatus.CREATED
    assert order.version == 0
    assert outbox.envelopes == []
    assert session.commits == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status", [OrderStatus.CREATED, OrderStatus.AWAITING_PAYMENT, OrderStatus.PAYMENT_FAILED]
)
async def test_cancel_non_terminal_unpaid_orders(
    monkeypatch: pytest.MonkeyPatch, status: OrderStatus
) -> None:
    order = make_order(status=status, version=1)
    orders, outbox = FakeOrderRepository(order), FakeOutboxRepository()
    _patch_repositories(monkeypatch, order_commands, orders, outbox)

    response = await order_commands.CancelOrderUseCase(
        FakeSessionFactory(FakeSession())
    ).execute(order.order_id, reason="customer_request")

    assert response.status is OrderStatus.CANCELLED
    assert response.version == 2
    assert outbox.envelopes[0].payload.reason == "customer_request"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [OrderStatus.PAID, OrderStatus.FULFILLED])
async def test_cancel_is_refused_once_paid(
    monkeypatch: pytest.MonkeyPatch, status: OrderStatus
) -> None:
    order = make_order(status=status, version=2)
    orders, outbox = FakeOrderRepository(order), FakeOutboxRepository()
    _patch_repositories(monkeypatch, order_commands, orders, outbox)

    with pytest.raises(InvalidTransitionError):
        await order_commands.CancelOrderUseCase(FakeSessionFactory(FakeSession())).execute(
            order.order_id
        )
    assert order.status is status


@pytest.mark.asyncio
async def test_repeated_command_for_reached_status_is_a_no_op(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    order = make_order(status=OrderStatus.FULFILLED, version=3)
    orders, outbox, session = FakeOrderRepository(order), FakeOutboxRepository(), FakeSession()
    _patch_repositories(monkeypatch, order_commands, orders, outbox)

    response = await order_commands.FulfillOrderUseCase(FakeSessionFactory(session)).execute(
        order.order_id
    )

    assert response.version == 3
    assert outbox.envelopes == []
    assert session.commits == 0


@pytest.mark.asyncio
async def test_fulfill_paid_order(monkeypatch: pytest.MonkeyPatch) -> None:
    order = make_order(status=OrderStatus.PAID, version=2)
    orders, outbox = FakeOrderRepository(order), FakeOutboxRepository()
    _patch_repositories(monkeypatch, order_commands, orders, outbox)

    response = await order_commands.FulfillOrderUseCase(
        FakeSessionFactory(FakeSession())
    ).execute(order.order_id)

    assert response.status is OrderStatus.FULFILLED
    assert orders.transitions == [(order.order_id, OrderStatus.PAID, OrderStatus.FULFILLED)]


@pytest.mark.asyncio
async def test_get_order_returns_response_or_not_found(monkeypatch: pytest.MonkeyPatch) -> None:
    order = make_order()
    monkeypatch.setattr(get_order, "OrderRepository", lambda _s: FakeOrderRepository(order))
    use_case = get_order.GetOrderUseCase(FakeSessionFactory(FakeSession()))

    response = await use_case.execute(order.order_id)

    assert response.order_id == order.order_id
    assert [item.product_id for item in response.line_items] == ["sku-1", "sku-2"]
    with pytest.raises(OrderNotFoundError):
        await use_case.execute(uuid4())
