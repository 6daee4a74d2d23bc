from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shared.contracts import CheckoutSessionORM, SessionStatus
from shared.utils.time import utc_now


@dataclass(frozen=True)
class SessionCreateData:
    session_id: UUID
    order_id: UUID
    order_version: int
    amount: int
    currency: str
    expires_at: datetime


class CheckoutSessionRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(
        self, session_id: UUID, *, for_update: bool = False
    ) -> CheckoutSessionORM | None:
        stmt = select(CheckoutSessionORM).where(CheckoutSessionORM.session_id == session_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_pending_for_order(self, order_id: UUID) -> CheckoutSessionORM | None:
        stmt = (
            select(CheckoutSessionORM)
            .where(
                CheckoutSessionORM.order_id == order_id,
                CheckoutSessionORM.status == SessionStatus.PENDING,
            )
            .with_for_update()
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    def create_session(self, session_data: SessionCreateData) -> CheckoutSessionORM:
        now = utc_now()
        entity = CheckoutSessionORM(
            session_id=session_data.session_id,
            order_id=session_data.order_id,
            order_version=session_data.order_version,
            amount=session_data.amount,
            currency=session_data.currency,
            status=SessionStatus.PENDING,
            expires_at=session_data.expires_at,
            created_at=now,
            updated_at=now,
        )
        self._session.add(entity)
        return entity

    async def attach_provider_reference(
        self, session_id: UUID, provider_reference: str, checkout_url: str | None
    ) -> bool:
        stmt = (
            update(CheckoutSessionORM)
            .where(
                CheckoutSessionORM.session_id == session_id,
                CheckoutSessionORM.status == SessionStatus.PENDING,
            )
            .values(
                provider_reference=provider_reference,
                checkout_url=checkout_url,
                updated_at=utc_now(),
            )
        )
        result = await self._session.execute(stmt)
        return bool(getattr(result, "rowcount", 0))

    async def settle(
        self,
        session_id: UUID,
        status: SessionStatus,
        *,
        provider_reference: str | None = None,
        failure_reason: str | None = None,
    ) -> bool:
        values: dict[str, object] = {
            "status": status,
            "failure_reason": failure_reason,
            "updated_at": utc_now(),
        }
        if provider_reference:
            values["provider_reference"] = provider_reference
        stmt = (
            update(CheckoutSessionORM)
            .where(
                CheckoutSessionORM.session_id == session_id,
                CheckoutSessionORM.status == SessionStatus.PENDING,
            )
            .values(**values)
        )
        result = await self._session.execute(stmt)
        return bool(getattr(result, "rowcount", 0))

    async def expire_overdue(self, now: datetime, limit: int) -> list[CheckoutSessionORM]:
        due = (
            select(CheckoutSessionORM.session_id)
            .where(
                CheckoutSessionORM.status == SessionStatus.PENDING,
                CheckoutSessionORM.expires_at <= now,
            )
            .order_by(CheckoutSessionORM.expires_at)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        stmt = (
            update(CheckoutSessionORM)
            .where(
                CheckoutSessionORM.session_id.in_(due.scalar_subquery()),
                CheckoutSessionORM.status == SessionStatus.PENDING,
            )
            .values(status=SessionStatus.EXPIRED, failure_reason="expired", updated_at=now)
            .returning(CheckoutSessionORM)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())
