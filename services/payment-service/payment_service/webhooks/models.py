from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from shared.contracts import WebhookEventType


class WebhookSessionData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    session_id: UUID
    provider_reference: str | None = None
    failure_reason: str | None = None


class ProviderWebhookEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1, max_length=256)
    type: WebhookEventType
    created: int | None = None
    data: WebhookSessionData


class WebhookAck(BaseModel):
    delivery_id: str
    outcome: str
