from __future__ import annotations

from dataclasses import dataclass

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payment_service.core.config import Settings
from payment_service.core.errors import SignatureInvalidError
from payment_service.core.metrics import webhook_rejections, webhooks_received
from payment_service.repositories.session_repository import CheckoutSessionRepository
from payment_service.webhooks.models import ProviderWebhookEvent, WebhookAck
from payment_service.webhooks.signature import verify_signature
from shared.constants import PAYMENT_WEBHOOK_GROUP
from shared.contracts import (
    CheckoutSessionORM,
    EventEnvelope,
    EventPayload,
    IdempotencyOutcome,
    PayloadValidationError,
    PaymentFailedV1,
    PaymentSuccessfulV1,
    SessionStatus,
    Topic,
    WebhookEventType,
)
from shared.idempotency.contracts import hash_result
from shared.idempotency.sql import ProcessedEventRepository
from shared.logging import get_logger, update_correlation_context
from shared.logging.fields import ORDER_ID, SESSION_ID
from shared.observability import current_trace_id
from shared.outbox import OutboxRepository
from shared.utils.ids import deterministic_event_id
from shared.utils.time import ensure_aware, utc_now

logger = get_logger(__name__)


@dataclass(frozen=True)
class RepositoryBundle:
    sessions: CheckoutSessionRepository
    outbox: OutboxRepository
    ledger: ProcessedEventRepository


class HandleWebhookUseCase:
    """Turns a verified provider webhook into a session outcome and a payment event.

    Verification happens before any read or write. The delivery id reservation,
    the session update and the outbox row share one transaction.
    """

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession], settings: Settings
    ) -> None:
        self._session_factory = session_factory
        self._settings = settings

    async def execute(self, raw_body: bytes, signature_header: str | None) -> WebhookAck:
        try:
            verify_signature(
                self._settings.webhook_secret,
                raw_body,
                signature_header,
                tolerance_seconds=self._settings.webhook_tolerance_seconds,
            )
        except SignatureInvalidError as exc:
            webhook_rejections.add(1, {"reason": "signature"})
            logger.warning(
                "webhook_signature_rejected", extra={"extra_fields": {"reason": str(exc)}}
            )
            raise

        event = self._parse(raw_body)
        update_correlation_context({SESSION_ID: str(event.data.session_id)})
        delivery_event_id = deterministic_event_id("provider-delivery", event.id)

        async with self._session_factory() as session:
            repositories = self._build_repositories(session)
            outcome = await repositories.ledger.reserve(
                PAYMENT_WEBHOOK_GROUP,
                delivery_event_id,
                lease_seconds=self._settings.ledger_lease_seconds,
            )
            if outcome is IdempotencyOutcome.ALREADY_PROCESSED:
                return self._ack(event, "duplicate")

            checkout_session = await repositories.sessions.get_by_id(
                event.data.session_id, for_update=True
            )
            result = await self._apply(repositories, checkout_session, event)
            await repositories.ledger.mark_committed(
                PAYMENT_WEBHOOK_GROUP,
                delivery_event_id,
                result_hash=hash_result({"outcome": result}),
            )
            await session.commit()
        return self._ack(event, result)

    def _build_repositories(self, session: AsyncSession) -> RepositoryBundle:
        return RepositoryBundle(
            sessions=CheckoutSessionRepository(session),
            outbox=OutboxRepository(session),
            ledger=ProcessedEventRepository(session),
        )

    def _parse(self, raw_body: bytes) -> ProviderWebhookEvent:
        try:
            return ProviderWebhookEvent.model_validate_json(raw_body)
        except ValidationError as exc:
            webhook_rejections.add(1, {"reason": "payload"})
            raise PayloadValidationError("Malformed provider webhook payload") from exc

    async def _apply(
        self,
        repositories: RepositoryBundle,
        checkout_session: CheckoutSessionORM | None,
        event: ProviderWebhookEvent,
    ) -> str:
        if checkout_session is None:
            logger.warning(
                "webhook_unknown_session",
                extra={"extra_fields": {"session_id": str(event.data.session_id)}},
            )
            return "unknown_session"
        update_correlation_context({ORDER_ID: str(checkout_session.order_id)})
        if checkout_session.status != SessionStatus.PENDING:
            logger.info(
                "webhook_ignored_for_settled_session",
                extra={
                    "extra_fields": {
                        "session_id": str(checkout_session.session_id),
                        "status": checkout_session.status.value,
                        "webhook_type": event.type.value,
                    }
                },
            )
            return "ignored"
        if ensure_aware(checkout_session.expires_at) <= utc_now():
            return await self._expire_late(repositories, checkout_session, event)

        succeeded = event.type is WebhookEventType.SUCCEEDED
        new_status = SessionStatus.SUCCEEDED if succeeded else SessionStatus.FAILED
        failure_reason = None if succeeded else event.data.failure_reason or "declined"
        provider_reference = event.data.provider_reference or checkout_session.provider_reference
        settled = await repositories.sessions.settle(
            checkout_session.session_id,
            new_status,
            provider_reference=provider_reference,
            failure_reason=failure_reason,
        )
        if not settled:
            return "ignored"

        payload = self._payment_payload(
            checkout_session, succeeded, provider_reference, failure_reason
        )
        topic = Topic.PAYMENT_SUCCESSFUL if succeeded else Topic.PAYMENT_FAILED
        repositories.outbox.add_envelope(
            EventEnvelope.build(
                payload,
                str(checkout_session.order_id),
                event_id=deterministic_event_id(topic.value, checkout_session.session_id),
                trace_id=current_trace_id(),
            )
        )
        logger.info(
            "checkout_session_settled",
            extra={
                "extra_fields": {
                    "session_id": str(checkout_session.session_id),
                    "order_id": str(checkout_session.order_id),
                    "status": new_status.value,
                    "topic": topic.value,
                }
            },
        )
        return new_status.value

    async def _expire_late(
        self,
        repositories: RepositoryBundle,
        checkout_session: CheckoutSessionORM,
        event: ProviderWebhookEvent,
    ) -> str:
        # Overdue sessions expire silently even when the sweep has not reached them.
        await repositories.sessions.settle(
            checkout_session.session_id, SessionStatus.EXPIRED, failure_reason="expired"
        )
        logger.info(
            "webhook_for_overdue_session",
            extra={
                "extra_fields": {
                    "session_id": str(checkout_session.session_id),
                    "order_id": str(checkout_session.order_id),
                    "webhook_type": event.type.value,
                }
            },
        )
        return "expired"

    def _payment_payload(
        self,
        checkout_session: CheckoutSessionORM,
        succeeded: bool,
        provider_reference: str | None,
        failure_reason: str | None,
    ) -> EventPayload:
        if succeeded:
            return PaymentSuccessfulV1(
                order_id=checkout_session.order_id,
                session_id=checkout_session.session_id,
                amount=checkout_session.amount,
                currency=checkout_session.currency,
                order_version=checkout_session.order_version,
                provider_reference=provider_reference,
            )
        return PaymentFailedV1(
            order_id=checkout_session.order_id,
            session_id=checkout_session.session_id,
            amount=checkout_session.amount,
            currency=checkout_session.currency,
            order_version=checkout_session.order_version,
            provider_reference=provider_reference,
            reason=failure_reason or "declined",
        )

    def _ack(self, event: ProviderWebhookEvent, outcome: str) -> WebhookAck:
        webhooks_received.add(1, {"type": event.type.value, "outcome": outcome})
        return WebhookAck(delivery_id=event.id, outcome=outcome)
