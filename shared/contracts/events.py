from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shared.contracts.enums import OrderStatus, Topic
from shared.contracts.errors import SchemaVersionError


class EventPayload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra="forbid"
    )


class UserCreatedV1(EventPayload):
    user_id: str
    email: str
    display_name: str | None = None


class LineItemSnapshot(EventPayload):
    product_id: str
    quantity: int = Field(gt=0)
    unit_price: int = Field(ge=0)


class OrderCreatedV1(EventPayload):
    order_id: UUID
    user_id: str
    line_items: tuple[LineItemSnapshot, ...]
    total_amount: int = Field(ge=0)
    currency: str = Field(min_length=3, max_length=3)
    status: OrderStatus
    version: int = Field(ge=0)


class OrderUpdatedV1(EventPayload):
    order_id: UUID
    status: OrderStatus
    previous_status: OrderStatus
    version: int = Field(ge=1)
    reason: str | None = None


class PaymentSuccessfulV1(EventPayload):
    order_id: UUID
    session_id: UUID
    amount: int = Field(gt=0)
    currency: str = Field(min_length=3, max_length=3)
    order_version: int = Field(ge=0)
    provider_reference: str | None = None


class PaymentFailedV1(EventPayload):
    order_id: UUID
    session_id: UUID
    amount: int = Field(gt=0)
    currency: str = Field(min_length=3, max_length=3)
    order_version: int = Field(ge=0)
    provider_reference: str | None = None
    reason: str


CURRENT_SCHEMA_VERSION = 1

PAYLOAD_SCHEMAS: dict[tuple[Topic, int], type[EventPayload]] = {
    (Topic.USER_CREATED, 1): UserCreatedV1,
    (Topic.ORDER_CREATED, 1): OrderCreatedV1,
    (Topic.ORDER_UPDATED, 1): OrderUpdatedV1,
    (Topic.PAYMENT_SUCCESSFUL, 1): PaymentSuccessfulV1,
    (Topic.PAYMENT_FAILED, 1): PaymentFailedV1,
}


def payload_model_for(topic: Topic, schema_version: int) -> type[EventPayload]:
    model = PAYLOAD_SCHEMAS.get((topic, schema_version))
    if model is None:
        raise SchemaVersionError(topic.value, schema_version)
    return model


def schema_version_of(payload: EventPayload) -> int:
    for (_, version), model in PAYLOAD_SCHEMAS.items():
        if type(payload) is model:
            return version
    raise ValueError(f"Unregistered payload type: {type(payload).__name__}")


def topic_of(payload: EventPayload) -> Topic:
    for (topic, _), model in PAYLOAD_SCHEMAS.items():
        if type(payload) is model:
            return topic
    raise ValueError(f"Unregistered payload type: {type(payload).__name__}")
