from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.contracts.enums import OrderStatus, SessionStatus


class LineItemRequest(BaseModel):
    product_id: str = Field(min_length=1, max_length=128)
    quantity: int = Field(gt=0)
    unit_price: int = Field(ge=0)


class CreateOrderRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=128)
    currency: str = Field(min_length=3, max_length=3)
    line_items: list[LineItemRequest] = Field(min_length=1)

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, value: str) -> str:
        return value.upper()


class LineItemResponse(BaseModel):
    product_id: str
    quantity: int
    unit_price: int


class OrderResponse(BaseModel):
    order_id: UUID
    user_id: str
    status: OrderStatus
    version: int
    total_amount: int
    currency: str
    line_items: list[LineItemResponse]
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CreateSessionRequest(BaseModel):
    order_id: UUID
    amount: int
    currency: str = Field(min_length=1, max_length=8)
    order_version: int = Field(default=0, ge=0)


class CheckoutSessionResponse(BaseModel):
    session_id: UUID
    order_id: UUID
    order_version: int
    amount: int
    currency: str
    status: SessionStatus
    provider_reference: str | None = None
    checkout_url: str | None = None
    failure_reason: str | None = None
    expires_at: datetime


class CheckoutResponse(BaseModel):
    order: OrderResponse
    session: CheckoutSessionResponse


class ProviderCheckoutRequest(BaseModel):
    session_id: UUID
    order_id: UUID
    amount: int
    currency: str


class ProviderCheckoutResponse(BaseModel):
    provider_reference: str
    checkout_url: str | None = None

    model_config = ConfigDict(extra="forbid")


class UserContact(BaseModel):
    user_id: str
    email: str
    display_name: str | None = None

    model_config = ConfigDict(extra="ignore")
