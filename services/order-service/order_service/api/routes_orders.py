from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Header, status

from order_service.api.dependencies import (
    get_cancel_order_use_case,
    get_create_order_use_case,
    get_fulfill_order_use_case,
    get_get_order_use_case,
    get_start_checkout_use_case,
)
from order_service.use_cases.create_order import CreateOrderUseCase
from order_service.use_cases.get_order import GetOrderUseCase
from order_service.use_cases.order_commands import CancelOrderUseCase, FulfillOrderUseCase
from order_service.use_cases.start_checkout import StartCheckoutUseCase
from shared.contracts import CheckoutResponse, CreateOrderRequest, OrderResponse

router = APIRouter(tags=["orders"])


@router.post("/orders", status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: CreateOrderRequest,
    use_case: Annotated[CreateOrderUseCase, Depends(get_create_order_use_case)],
    idempotency_key: Annotated[str, Header(alias="Idempotency-Key")],
) -> OrderResponse:
    return await use_case.execute(payload, idempotency_key)


@router.get("/orders/{order_id}")
async def get_order(
    order_id: UUID,
    use_case: Annotated[GetOrderUseCase, Depends(get_get_order_use_case)],
) -> OrderResponse:
    return await use_case.execute(order_id)


@router.post("/orders/{order_id}/checkout")
async def start_checkout(
    order_id: UUID,
    use_case: Annotated[StartCheckoutUseCase, Depends(get_start_checkout_use_case)],
) -> CheckoutResponse:
    return await use_case.execute(order_id)


@router.post("/orders/{order_id}/cancel")
async def cancel_order(
    order_id: UUID,
    use_case: Annotated[CancelOrderUseCase, Depends(get_cancel_order_use_case)],
) -> OrderResponse:
    return await use_case.execute(order_id, reason="cancelled_by_command")


@router.post("/orders/{order_id}/fulfill")
async def fulfill_order(
    order_id: UUID,
    use_case: Annotated[FulfillOrderUseCase, Depends(get_fulfill_order_use_case)],
) -> OrderResponse:
    return await use_case.execute(order_id)
