from __future__ import annotations

from uuid import uuid4

import pytest
from notification_service.core.config import Settings
from notification_service.core.errors import MailTransportError, RecipientUnavailableError
from notification_service.directory import resolver
from notification_service.transport.contracts import MailMessage
from notification_service.transport.logging_transport import LoggingMailTransport
from notification_service.use_cases.dispatch_notification import DispatchNotificationUseCase

from shared.constants import EMAIL_GROUP
from shared.contracts import (
    EventEnvelope,
    LineItemSnapshot,
    OrderCreatedV1,
    OrderStatus,
    PaymentSuccessfulV1,
    UserContact,
    UserCreatedV1,
)
from shared.idempotency import MemoryIdempotencyLedger
from tests.helpers import FakeProjectionRepository, FakeSession, FakeSessionFactory, make_envelope


class FailingTransport(LoggingMailTransport):
    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures

    async def send(self, message: MailMessage) -> str:
        if self.failures > 0:
            self.failures -= 1
            raise MailTransportError("Mail provider returned 503")
        return await super().send(message)


class Harness:
    def __init__(
        self,
        monkeypatch: pytest.MonkeyPatch,
        transport: LoggingMailTransport | None = None,
    ) -> None:
        self.projections = FakeProjectionRepository()
        self.ledger = MemoryIdempotencyLedger()
        self.transport = transport or LoggingMailTransport()
        monkeypatch.setattr(resolver, "ProjectionRepository", lambda _session: self.projections)
        self.use_case = DispatchNotificationUseCase(
            self.ledger,
            resolver.RecipientResolver(FakeSessionFactory(FakeSession())),
            self.transport,
            Settings(storefront_name="Example Store"),
        )

    async def add_user(self, user_id: str = "user-1") -> None:
        await self.projections.upsert_contact(
            UserContact(user_id=user_id, email=f"{user_id}@example.com", display_name="Ada")
        )


def _order_created(user_id: str = "user-1") -> EventEnvelope:
    return make_envelope(
        OrderCreatedV1(
            order_id=uuid4(),
            user_id=user_id,
            line_items=(LineItemSnapshot(product_id="sku-1", quantity=2, unit_price=2100),),
            total_amount=4200,
            currency="USD",
            status=OrderStatus.CREATED,
            version=0,
        )
    )


@pytest.mark.asyncio
async def test_user_created_sends_welcome_to_payload_address(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    harness = Harness(monkeypatch)
    envelope = make_envelope(
        UserCreatedV1(user_id="user-9", email="new@example.com", display_name="Grace Hopper"),
        "user-9",
    )

    assert await harness.use_case.execute(envelope) is True

    [message] = harness.transport.sent
    assert message.to == "new@example.com"
    assert message.subject == "Welcome to Example Store, Grace!"
    assert message.idempotency_key == str(envelope.event_id)
    assert harness.ledger.is_committed(EMAIL_GROUP, envelope.event_id)


@pytest.mark.asyncio
async def test_order_created_sends_confirmation_to_projected_contact(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    harness = Harness(monkeypatch)
    await harness.add_user()
    envelope = _order_created()

    await harness.use_case(envelope)

    [message] = harness.transport.sent
    assert message.to == "user-1@example.com"
    assert "Total: 42.00 USD" in message.body


@pytest.mark.asyncio
async def test_redelivered_envelope_does_not_resend(monkeypatch: pytest.MonkeyPatch) -> None:
    harness = Harness(monkeypatch)
    await harness.add_user()
    envelope = _order_created()

    first = await harness.use_case.execute(envelope)
    second = await harness.use_case.execute(envelope)

    assert (first, second) == (True, False)
    assert len(harness.transport.sent) == 1


@pytest.mark.asyncio
async def test_transport_failure_releases_reservation_for_retry(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    harness = Harness(monkeypatch, FailingTransport(failures=1))
    await harness.add_user()
    envelope = _order_created()

    with pytest.raises(MailTransportError):
        await harness.use_case.execute(envelope)
    assert not harness.ledger.is_committed(EMAIL_GROUP, envelope.event_id)

    assert await harness.use_case.execute(envelope) is True
    assert len(harness.transport.sent) == 1


@pytest.mark.asyncio
async def test_payment_receipt_waits_for_order_projection(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    harness = Harness(monkeypatch)
    await harness.add_user()
    order = _order_created()
    payment = make_envelope(
        PaymentSuccessfulV1(
            order_id=order.payload.order_id,
            session_id=uuid4(),
            amount=4200,
            currency="USD",
            order_version=1,
            provider_reference="sim_ref",
        )
    )

    with pytest.raises(RecipientUnavailableError):
        await harness.use_case.execute(payment)

    await harness.projections.record_order_created(order.payload)
    assert await harness.use_case.execute(payment) is True
    [message] = harness.transport.sent
    assert message.subject == f"Payment received for order {order.payload.order_id}"
    assert "Payment reference: sim_ref" in message.body
