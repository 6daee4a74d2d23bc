from __future__ import annotations

from datetime import timedelta

from opentelemetry import trace
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payment_service.core.config import Settings
from payment_service.core.errors import (
    DuplicateSessionError,
    InvalidAmountError,
    ValidationAppError,
)
from payment_service.core.metrics import sessions_created, sessions_expired, sessions_rejected
from payment_service.providers.gateway import CheckoutGateway
from payment_service.repositories.session_repository import (
    CheckoutSessionRepository,
    SessionCreateData,
)
from payment_service.use_cases.responses import to_session_response
from shared.contracts import (
    CheckoutSessionORM,
    CheckoutSessionResponse,
    CreateSessionRequest,
    ProviderCheckoutRequest,
    SessionStatus,
)
from shared.logging import get_logger, update_correlation_context
from shared.logging.fields import ORDER_ID, SESSION_ID
from shared.utils.ids import new_uuid
from shared.utils.time import ensure_aware, utc_now
from shared.utils.validation import ensure_positive_amount, ensure_supported_currency

logger = get_logger(__name__)


class CreateSessionUseCase:
    """Opens a checkout session for one order version.

    The Pending row is committed before the provider is called so that the
    partial unique index arbitrates concurrent requests for the same order. A
    provider failure expires the claim again so the order can retry.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        gateway: CheckoutGateway,
        settings: Settings,
    ) -> None:
        self._session_factory = session_factory
        self._gateway = gateway
        self._settings = settings
        self._tracer = trace.get_tracer(__name__)

    async def execute(self, request: CreateSessionRequest) -> CheckoutSessionResponse:
        session_data = self._build_session_data(request)
        update_correlation_context(
            {ORDER_ID: str(session_data.order_id), SESSION_ID: str(session_data.session_id)}
        )
        checkout_session = await self._claim(session_data)

        with self._tracer.start_as_current_span("provider_create_checkout"):
            try:
                provider_response = await self._gateway.create_checkout(
                    ProviderCheckoutRequest(
                        session_id=session_data.session_id,
                        order_id=session_data.order_id,
                        amount=session_data.amount,
                        currency=session_data.currency,
                    )
                )
            except Exception as exc:
                await self._release_claim(checkout_session, exc)
                raise

        async with self._session_factory() as session:
            await self._build_repository(session).attach_provider_reference(
                checkout_session.session_id,
                provider_response.provider_reference,
                provider_response.checkout_url,
            )
            await session.commit()
        checkout_session.provider_reference = provider_response.provider_reference
        checkout_session.checkout_url = provider_response.checkout_url

        sessions_created.add(1, {"currency": session_data.currency})
        logger.info(
            "checkout_session_created",
            extra={
                "extra_fields": {
                    "session_id": str(checkout_session.session_id),
                    "order_id": str(checkout_session.order_id),
                    "order_version": checkout_session.order_version,
                    "amount": checkout_session.amount,
                    "currency": checkout_session.currency,
                }
            },
        )
        return to_session_response(checkout_session)

    def _build_repository(self, session: AsyncSession) -> CheckoutSessionRepository:
        return CheckoutSessionRepository(session)

    def _build_session_data(self, request: CreateSessionRequest) -> SessionCreateData:
        with self._tracer.start_as_current_span("validate"):
            try:
                amount = ensure_positive_amount(request.amount)
            except ValueError as exc:
                sessions_rejected.add(1, {"reason": "invalid_amount"})
                raise InvalidAmountError(str(exc)) from exc
            try:
                currency = ensure_supported_currency(
                    request.currency, self._settings.supported_currencies
                )
            except ValueError as exc:
                sessions_rejected.add(1, {"reason": "currency"})
                raise ValidationAppError(str(exc)) from exc
            return SessionCreateData(
                session_id=new_uuid(),
                order_id=request.order_id,
                order_version=request.order_version,
                amount=amount,
                currency=currency,
                expires_at=utc_now() + timedelta(seconds=self._settings.session_ttl_seconds),
            )

    async def _claim(self, session_data: SessionCreateData) -> CheckoutSessionORM:
        async with self._session_factory() as session:
            repository = self._build_repository(session)
            pending = await repository.get_pending_for_order(session_data.order_id)
            if pending is not None:
                if ensure_aware(pending.expires_at) > utc_now():
                    sessions_rejected.add(1, {"reason": "duplicate"})
                    raise DuplicateSessionError(session_data.order_id)
                await repository.settle(
                    pending.session_id, SessionStatus.EXPIRED, failure_reason="expired"
                )
                sessions_expired.add(1)
                logger.info(
                    "overdue_session_expired",
                    extra={"extra_fields": {"session_id": str(pending.session_id)}},
                )

            checkout_session = repository.create_session(session_data)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                sessions_rejected.add(1, {"reason": "duplicate"})
                raise DuplicateSessionError(session_data.order_id) from exc
            return checkout_session

    async def _release_claim(self, checkout_session: CheckoutSessionORM, error: Exception) -> None:
        async with self._session_factory() as session:
            await self._build_repository(session).settle(
                checkout_session.session_id,
                SessionStatus.EXPIRED,
                failure_reason=f"provider_error:{type(error).__name__}",
            )
            await session.commit()
        logger.warning(
            "checkout_session_claim_released",
            extra={
                "extra_fields": {
                    "session_id": str(checkout_session.session_id),
                    "error_type": type(error).__name__,
                }
            },
        )
