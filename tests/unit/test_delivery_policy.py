from __future__ import annotations

from uuid import uuid4

import pytest

from shared.contracts import (
    EventEnvelope,
    PaymentSuccessfulV1,
    ReservationInFlightError,
    encode_envelope,
)
from shared.messaging import DeliveryOutcome, MemoryDeadLetterStore
from tests.helpers import build_delivery_policy, make_envelope


def _envelope() -> EventEnvelope:
    return make_envelope(
        PaymentSuccessfulV1(
            order_id=uuid4(), session_id=uuid4(), amount=4200, currency="USD", order_version=1
        )
    )


@pytest.mark.asyncio
async def test_undecodable_message_is_dead_lettered_with_its_raw_body() -> None:
    store = MemoryDeadLetterStore()
    policy = build_delivery_policy(store)
    calls: list[EventEnvelope] = []

    async def handler(envelope: EventEnvelope) -> None:
        calls.append(envelope)

    raw = b'{"eventId": "nope"}'
    outcome = await policy.deliver_raw(raw, "payment.successful", "order", handler)

    assert outcome is DeliveryOutcome.DEAD_LETTERED
    assert calls == []
    [dead_letter] = store.items
    assert dead_letter.raw_body == '{"eventId": "nope"}'
    assert dead_letter.envelope is None
    assert dead_letter.topic == "payment.successful"
    assert dead_letter.error_type == "PayloadValidationError"


@pytest.mark.asyncio
async def test_deliver_raw_hands_the_decoded_envelope_to_the_handler() -> None:
    policy = build_delivery_policy()
    envelope = _envelope()
    received: list[EventEnvelope] = []

    async def handler(delivered: EventEnvelope) -> None:
        received.append(delivered)

    outcome = await policy.deliver_raw(
        encode_envelope(envelope), envelope.topic.value, "order", handler, headers=[]
    )

    assert outcome is DeliveryOutcome.HANDLED
    assert received[0].event_id == envelope.event_id


@pytest.mark.asyncio
async def test_reservation_in_flight_is_retried_like_any_transient_failure() -> None:
    store = MemoryDeadLetterStore()
    policy = build_delivery_policy(store, max_attempts=3)
    envelope = _envelope()
    attempts = 0

    async def handler(_: EventEnvelope) -> None:
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise ReservationInFlightError("order", envelope.event_id)

    outcome = await policy.deliver(envelope, "order", handler)

    assert outcome is DeliveryOutcome.HANDLED
    assert attempts == 2
    assert store.items == []


@pytest.mark.asyncio
async def test_dead_letter_store_failure_propagates_so_the_message_is_not_acknowledged() -> None:
    class BrokenStore(MemoryDeadLetterStore):
        async def add(self, dead_letter) -> None:  # noqa: ANN001
            raise ConnectionError("dead-letter table unavailable")

    policy = build_delivery_policy(BrokenStore(), max_attempts=1)

    async def handler(_: EventEnvelope) -> None:
        raise ConnectionError("handler failed")

    with pytest.raises(ConnectionError, match="dead-letter table unavailable"):
        await policy.deliver(_envelope(), "order", handler)
