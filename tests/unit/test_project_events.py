from __future__ import annotations

from uuid import UUID, uuid4

import pytest
from notification_service.use_cases import project_events

from shared.contracts import (
    EventEnvelope,
    LineItemSnapshot,
    OrderCreatedV1,
    OrderStatus,
    OrderUpdatedV1,
    PaymentFailedV1,
    UserCreatedV1,
)
from tests.helpers import FakeProjectionRepository, FakeSession, FakeSessionFactory, make_envelope


def _use_case(
    monkeypatch: pytest.MonkeyPatch,
    projections: FakeProjectionRepository,
    session: FakeSession | None = None,
) -> project_events.ProjectEventsUseCase:
    monkeypatch.setattr(project_events, "ProjectionRepository", lambda _session: projections)
    return project_events.ProjectEventsUseCase(FakeSessionFactory(session or FakeSession()))


def _order_created(order_id: UUID) -> EventEnvelope:
    return make_envelope(
        OrderCreatedV1(
            order_id=order_id,
            user_id="user-1",
            line_items=(LineItemSnapshot(product_id="sku-1", quantity=1, unit_price=4200),),
            total_amount=4200,
            currency="USD",
            status=OrderStatus.CREATED,
            version=0,
        )
    )


def _order_updated(order_id: UUID, status: OrderStatus, version: int) -> EventEnvelope:
    return make_envelope(
        OrderUpdatedV1(
            order_id=order_id,
            status=status,
            previous_status=OrderStatus.CREATED,
            version=version,
        )
    )


@pytest.mark.asyncio
async def test_user_created_upserts_contact(monkeypatch: pytest.MonkeyPatch) -> None:
    projections, session = FakeProjectionRepository(), FakeSession()
    use_case = _use_case(monkeypatch, projections, session)
    envelope = make_envelope(
        UserCreatedV1(user_id="user-1", email="ada@example.com", display_name="Ada"), "user-1"
    )

    assert await use_case.execute(envelope) == "contact_upserted"
    assert await use_case.execute(envelope) == "contact_upserted"

    assert projections.contacts["user-1"].email == "ada@example.com"
    assert len(projections.contacts) == 1
    assert session.commits == 2


@pytest.mark.asyncio
async def test_order_events_build_a_versioned_order_view(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    projections = FakeProjectionRepository()
    use_case = _use_case(monkeypatch, projections)
    order_id = uuid4()

    assert await use_case.execute(_order_created(order_id)) == "order_projected"
    assert await use_case.execute(
        _order_updated(order_id, OrderStatus.AWAITING_PAYMENT, 1)
    ) == "order_updated"

    view = projections.order_views[order_id]
    assert view.user_id == "user-1"
    assert view.status == OrderStatus.AWAITING_PAYMENT
    assert view.version == 1


@pytest.mark.asyncio
async def test_out_of_order_updates_never_regress_the_view(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    projections = FakeProjectionRepository()
    use_case = _use_case(monkeypatch, projections)
    order_id = uuid4()
    await use_case.execute(_order_created(order_id))

    await use_case.execute(_order_updated(order_id, OrderStatus.PAID, 2))
    stale = await use_case.execute(_order_updated(order_id, OrderStatus.AWAITING_PAYMENT, 1))

    assert stale == "stale"
    assert projections.order_views[order_id].status == OrderStatus.PAID
    assert projections.order_views[order_id].version == 2


@pytest.mark.asyncio
async def test_update_for_unprojected_order_is_stale(monkeypatch: pytest.MonkeyPatch) -> None:
    use_case = _use_case(monkeypatch, FakeProjectionRepository())

    assert await use_case.execute(_order_updated(uuid4(), OrderStatus.PAID, 2)) == "stale"


@pytest.mark.asyncio
async def test_unexpected_payload_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    use_case = _use_case(monkeypatch, FakeProjectionRepository())
    envelope = make_envelope(
        PaymentFailedV1(
            order_id=uuid4(),
            session_id=uuid4(),
            amount=4200,
            currency="USD",
            order_version=1,
            reason="declined",
        )
    )

    with pytest.raises(TypeError, match="payment.failed"):
        await use_case.execute(envelope)
