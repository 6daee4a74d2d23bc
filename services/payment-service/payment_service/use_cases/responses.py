from __future__ import annotations

from shared.contracts import CheckoutSessionORM, CheckoutSessionResponse


def to_session_response(checkout_session: CheckoutSessionORM) -> CheckoutSessionResponse:
    return CheckoutSessionResponse(
        session_id=checkout_session.session_id,
        order_id=checkout_session.order_id,
        order_version=checkout_session.order_version,
        amount=checkout_session.amount,
        currency=checkout_session.currency,
        status=checkout_session.status,
        provider_reference=checkout_session.provider_reference,
        checkout_url=checkout_session.checkout_url,
        failure_reason=checkout_session.failure_reason,
        expires_at=checkout_session.expires_at,
    )
