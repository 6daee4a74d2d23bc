from __future__ import annotations

import stripe

from payment_service.core.errors import SignatureInvalidError


def verify_signature(
    secret: str,
    body: bytes,
    header: str | None,
    *,
    tolerance_seconds: int = 300,
) -> None:
    """Checks a ``t=<unix>,v1=<hex>`` Provider-Signature header against the raw body."""
    if not header:
        raise SignatureInvalidError("Missing Provider-Signature header")
    try:
        payload = body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise SignatureInvalidError("Webhook body is not UTF-8") from exc
    try:
        stripe.WebhookSignature.verify_header(
            payload, header, secret, tolerance=tolerance_seconds
        )
    except stripe.SignatureVerificationError as exc:
        raise SignatureInvalidError(f"Invalid webhook signature: {exc}") from exc
