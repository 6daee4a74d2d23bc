from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status

from payment_service.api.dependencies import (
    get_create_session_use_case,
    get_get_session_use_case,
)
from payment_service.use_cases.create_session import CreateSessionUseCase
from payment_service.use_cases.get_session import GetSessionUseCase
from shared.contracts import CheckoutSessionResponse, CreateSessionRequest

router = APIRouter(prefix="/checkout/sessions", tags=["checkout-sessions"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: CreateSessionRequest,
    use_case: Annotated[CreateSessionUseCase, Depends(get_create_session_use_case)],
) -> CheckoutSessionResponse:
    return await use_case.execute(payload)


@router.get("/{session_id}")
async def get_session(
    session_id: UUID,
    use_case: Annotated[GetSessionUseCase, Depends(get_get_session_use_case)],
) -> CheckoutSessionResponse:
    return await use_case.execute(session_id)
