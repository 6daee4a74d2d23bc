from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payment_service.providers.gateway import CheckoutGateway
from payment_service.use_cases.create_session import CreateSessionUseCase
from payment_service.use_cases.get_session import GetSessionUseCase
from payment_service.use_cases.handle_webhook import HandleWebhookUseCase


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.session_factory


def get_checkout_gateway(request: Request) -> CheckoutGateway:
    return request.app.state.checkout_gateway


def get_create_session_use_case(
    request: Request,
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    gateway: Annotated[CheckoutGateway, Depends(get_checkout_gateway)],
) -> CreateSessionUseCase:
    return CreateSessionUseCase(session_factory, gateway, request.app.state.settings)


def get_get_session_use_case(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> GetSessionUseCase:
    return GetSessionUseCase(session_factory)


def get_handle_webhook_use_case(
    request: Request,
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> HandleWebhookUseCase:
    return HandleWebhookUseCase(session_factory, request.app.state.settings)
