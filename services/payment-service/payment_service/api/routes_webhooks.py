from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request

from payment_service.api.dependencies import get_handle_webhook_use_case
from payment_service.use_cases.handle_webhook import HandleWebhookUseCase
from payment_service.webhooks.models import WebhookAck

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/provider")
async def provider_webhook(
    request: Request,
    use_case: Annotated[HandleWebhookUseCase, Depends(get_handle_webhook_use_case)],
    provider_signature: Annotated[str | None, Header(alias="Provider-Signature")] = None,
) -> WebhookAck:
    # The signature covers the exact bytes received.
    raw_body = await request.body()
    return await use_case.execute(raw_body, provider_signature)
