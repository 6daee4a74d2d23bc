from __future__ import annotations

import pytest
from payment_service.core.config import Settings
from payment_service.core.errors import SignatureInvalidError
from payment_service.use_cases import handle_webhook

from shared.constants import PAYMENT_WEBHOOK_GROUP
from shared.contracts import (
    PayloadValidationError,
    PaymentFailedV1,
    PaymentSuccessfulV1,
    SessionStatus,
    Topic,
)
from shared.utils.ids import deterministic_event_id
from tests.helpers import (
    FakeCheckoutSessionRepository,
    FakeOutboxRepository,
    FakeProcessedEventRepository,
    FakeSession,
    FakeSessionFactory,
    make_checkout_session,
    make_webhook_body,
    sign_webhook,
)

SECRET = "whsec_test"


class Harness:
    def __init__(self, monkeypatch: pytest.MonkeyPatch, *sessions) -> None:  # noqa: ANN001
        self.sessions = FakeCheckoutSessionRepository(*sessions)
        self.outbox = FakeOutboxRepository()
        self.ledger = FakeProcessedEventRepository()
        self.session = FakeSession()
        monkeypatch.setattr(handle_webhook, "CheckoutSessionRepository", lambda _: self.sessions)
        monkeypatch.setattr(handle_webhook, "OutboxRepository", lambda _: self.outbox)
        monkeypatch.setattr(handle_webhook, "ProcessedEventRepository", lambda _: self.ledger)
        self.use_case = handle_webhook.HandleWebhookUseCase(
            FakeSessionFactory(self.session), Settings(webhook_secret=SECRET)
        )

    async def deliver(self, body: bytes, header: str | None = None):  # noqa: ANN201
        return await self.use_case.execute(body, header or sign_webhook(SECRET, body))


@pytest.mark.asyncio
async def test_successful_webhook_settles_session_and_stages_payment_successful(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    checkout_session = make_checkout_session(order_version=1, amount=4200)
    harness = Harness(monkeypatch, checkout_session)

    ack = await harness.deliver(
        make_webhook_body(checkout_session.session_id, provider_reference="sim_abc")
    )

    assert ack.delivery_id == "evt_1"
    assert ack.outcome == "SUCCEEDED"
    assert checkout_session.status == SessionStatus.SUCCEEDED
    assert checkout_session.provider_reference == "sim_abc"
    assert harness.session.commits == 1

    [envelope] = harness.outbox.envelopes
    assert envelope.topic is Topic.PAYMENT_SUCCESSFUL
    assert envelope.partition_key == str(checkout_session.order_id)
    assert envelope.event_id == deterministic_event_id(
        "payment.successful", checkout_session.session_id
    )
    assert isinstance(envelope.payload, PaymentSuccessfulV1)
    assert envelope.payload.amount == 4200
    assert envelope.payload.order_version == 1
    assert envelope.payload.provider_reference == "sim_abc"


@pytest.mark.asyncio
async def test_failed_webhook_stages_payment_failed_with_reason(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    checkout_session = make_checkout_session()
    harness = Harness(monkeypatch, checkout_session)

    ack = await harness.deliver(
        make_webhook_body(
            checkout_session.session_id,
            event_type="payment.failed",
            failure_reason="card_declined",
        )
    )

    assert ack.outcome == "FAILED"
    assert checkout_session.status == SessionStatus.FAILED
    assert checkout_session.failure_reason == "card_declined"
    [envelope] = harness.outbox.envelopes
    assert envelope.topic is Topic.PAYMENT_FAILED
    assert isinstance(envelope.payload, PaymentFailedV1)
    assert envelope.payload.reason == "card_declined"


@pytest.mark.asyncio
async def test_failed_webhook_without_reason_defaults_to_declined(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    checkout_session = make_checkout_session()
    harness = Harness(monkeypatch, checkout_session)

    await harness.deliver(
        make_webhook_body(checkout_session.session_id, event_type="payment.failed")
    )

    [envelope] = harness.outbox.envelopes
    assert envelope.payload.reason == "declined"


@pytest.mark.asyncio
async def test_invalid_signature_rejects_without_reading_or_writing(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    checkout_session = make_checkout_session()
    harness = Harness(monkeypatch, checkout_session)
    body = make_webhook_body(checkout_session.session_id)
    forged = sign_webhook("whsec_attacker", body)

    with pytest.raises(SignatureInvalidError):
        await harness.deliver(body, forged)

    assert checkout_session.status == SessionStatus.PENDING
    assert harness.outbox.envelopes == []
    assert harness.ledger.reserved == []
    assert harness.session.commits == 0


@pytest.mark.asyncio
async def test_missing_signature_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    harness = Harness(monkeypatch)
    body = make_webhook_body(make_checkout_session().session_id)

    with pytest.raises(SignatureInvalidError, match="Missing"):
        await harness.use_case.execute(body, None)


@pytest.mark.asyncio
async def test_malformed_body_with_valid_signature_is_a_validation_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    harness = Harness(monkeypatch)

    with pytest.raises(PayloadValidationError, match="Malformed provider webhook"):
        await harness.deliver(b'{"id": "evt_1", "type": "payment.refunded"}')

    assert harness.ledger.reserved == []


@pytest.mark.asyncio
async def test_redelivered_webhook_emits_exactly_one_event(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    checkout_session = make_checkout_session()
    harness = Harness(monkeypatch, checkout_session)
    body = make_webhook_body(checkout_session.session_id, delivery_id="evt_dup")

    first = await harness.deliver(body)
    second = await harness.deliver(body)

    assert first.outcome == "SUCCEEDED"
    assert second.outcome == "duplicate"
    assert len(harness.outbox.envelopes) == 1
    delivery_id = deterministic_event_id("provider-delivery", "evt_dup")
    assert (PAYMENT_WEBHOOK_GROUP, delivery_id) in harness.ledger.committed


@pytest.mark.asyncio
async def test_late_webhook_for_settled_session_is_ignored(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    checkout_session = make_checkout_session(status=SessionStatus.EXPIRED)
    harness = Harness(monkeypatch, checkout_session)

    ack = await harness.deliver(make_webhook_body(checkout_session.session_id))

    assert ack.outcome == "ignored"
    assert checkout_session.status == SessionStatus.EXPIRED
    assert harness.outbox.envelopes == []
    assert harness.session.commits == 1


@pytest.mark.asyncio
async def test_webhook_for_unknown_session_is_acknowledged(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    harness = Harness(monkeypatch)

    ack = await harness.deliver(make_webhook_body(make_checkout_session().session_id))

    assert ack.outcome == "unknown_session"
    assert harness.outbox.envelopes == []


@pytest.mark.asyncio
async def test_second_distinct_delivery_for_same_session_is_ignored(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    checkout_session = make_checkout_session()
    harness = Harness(monkeypatch, checkout_session)

    await harness.deliver(make_webhook_body(checkout_session.session_id, delivery_id="evt_a"))
    ack = await harness.deliver(
        make_webhook_body(
            checkout_session.session_id, event_type="payment.failed", delivery_id="evt_b"
        )
    )

    assert ack.outcome == "ignored"
    assert checkout_session.status == SessionStatus.SUCCEEDED
    assert [envelope.topic for envelope in harness.outbox.envelopes] == [
        Topic.PAYMENT_SUCCESSFUL
    ]


@pytest.mark.asyncio
async def test_webhook_for_overdue_pending_session_expires_it_without_an_event(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    checkout_session = make_checkout_session(expires_in_seconds=-60)
    harness = Harness(monkeypatch, checkout_session)

    ack = await harness.deliver(make_webhook_body(checkout_session.session_id))

    assert ack.outcome == "expired"
    assert checkout_session.status == SessionStatus.EXPIRED
    assert checkout_session.failure_reason == "expired"
    assert harness.outbox.envelopes == []
    assert harness.session.commits == 1
    delivery_id = deterministic_event_id("provider-delivery", "evt_1")
    assert (PAYMENT_WEBHOOK_GROUP, delivery_id) in harness.ledger.committed
