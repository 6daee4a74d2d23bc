from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from order_service.clients.payments_client import PaymentsClient
from order_service.use_cases.create_order import CreateOrderUseCase
from order_service.use_cases.get_order import GetOrderUseCase
from order_service.use_cases.order_commands import CancelOrderUseCase, FulfillOrderUseCase
from order_service.use_cases.start_checkout import StartCheckoutUseCase


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.session_factory


def get_payments_client(request: Request) -> PaymentsClient:
    return request.app.state.payments_client


def get_create_order_use_case(
    request: Request,
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> CreateOrderUseCase:
    return CreateOrderUseCase(session_factory, request.app.state.settings)


def get_start_checkout_use_case(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    payments_client: Annotated[PaymentsClient, Depends(get_payments_client)],
) -> StartCheckoutUseCase:
    return StartCheckoutUseCase(session_factory, payments_client)


def get_cancel_order_use_case(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> CancelOrderUseCase:
    return CancelOrderUseCase(session_factory)


def get_fulfill_order_use_case(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> FulfillOrderUseCase:
    return FulfillOrderUseCase(session_factory)


def get_get_order_use_case(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> GetOrderUseCase:
    return GetOrderUseCase(session_factory)
