from __future__ import annotations

from typing import Any

from opentelemetry import trace

from notification_service.core.config import Settings
from notification_service.core.metrics import emails_sent
from notification_service.directory.resolver import RecipientResolver
from notification_service.templates import get_template
from notification_service.transport.contracts import MailMessage, MailTransport
from shared.constants import EMAIL_GROUP
from shared.contracts import (
    EventEnvelope,
    OrderCreatedV1,
    PaymentSuccessfulV1,
    UserContact,
    UserCreatedV1,
)
from shared.idempotency import IdempotencyLedger, process_once
from shared.logging import get_logger

logger = get_logger(__name__)


class DispatchNotificationUseCase:
    """Sends at most one email per envelope for the ``email`` consumer group.

    Resolution, rendering and sending run inside ``process_once``; any failure
    releases the reservation and surfaces to the bus retry policy.
    """

    def __init__(
        self,
        ledger: IdempotencyLedger,
        resolver: RecipientResolver,
        transport: MailTransport,
        settings: Settings,
        consumer_group: str = EMAIL_GROUP,
    ) -> None:
        self._ledger = ledger
        self._resolver = resolver
        self._transport = transport
        self._settings = settings
        self._consumer_group = consumer_group
        self._tracer = trace.get_tracer(__name__)

    async def __call__(self, envelope: EventEnvelope) -> None:
        await self.execute(envelope)

    async def execute(self, envelope: EventEnvelope) -> bool:
        template = get_template(envelope.topic)

        async def send_email() -> dict[str, str]:
            with self._tracer.start_as_current_span("dispatch_email"):
                recipient = await self._recipient_for(envelope)
                rendered = template.render(self._context_for(envelope, recipient))
                message_id = await self._transport.send(
                    MailMessage(
                        to=recipient.email,
                        subject=rendered["subject"],
                        body=rendered["body"],
                        idempotency_key=str(envelope.event_id),
                    )
                )
            emails_sent.add(1, {"template": template.name})
            logger.info(
                "email_sent",
                extra={
                    "extra_fields": {
                        "event_id": str(envelope.event_id),
                        "template": template.name,
                        "message_id": message_id,
                    }
                },
            )
            return {"message_id": message_id}

        return await process_once(
            self._ledger, self._consumer_group, envelope.event_id, send_email
        )

    async def _recipient_for(self, envelope: EventEnvelope) -> UserContact:
        payload = envelope.payload
        if isinstance(payload, UserCreatedV1):
            return UserContact(
                user_id=payload.user_id, email=payload.email, display_name=payload.display_name
            )
        if isinstance(payload, OrderCreatedV1):
            return await self._resolver.for_user(payload.user_id)
        if isinstance(payload, PaymentSuccessfulV1):
            return await self._resolver.for_order(payload.order_id)
        raise TypeError(f"Unexpected payload for {envelope.topic.value}")

    def _context_for(self, envelope: EventEnvelope, recipient: UserContact) -> dict[str, Any]:
        context: dict[str, Any] = envelope.payload.model_dump(mode="json")
        context["display_name"] = recipient.display_name
        context["store_name"] = self._settings.storefront_name
        return context
