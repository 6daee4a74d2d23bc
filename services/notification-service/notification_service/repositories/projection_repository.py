from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from shared.contracts import (
    OrderCreatedV1,
    OrderUpdatedV1,
    OrderViewORM,
    UserContact,
    UserContactORM,
)
from shared.utils.time import utc_now


class ProjectionRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_contact(self, user_id: str) -> UserContactORM | None:
        result = await self._session.execute(
            select(UserContactORM).where(UserContactORM.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_order_view(self, order_id: UUID) -> OrderViewORM | None:
        result = await self._session.execute(
            select(OrderViewORM).where(OrderViewORM.order_id == order_id)
        )
        return result.scalar_one_or_none()

    async def upsert_contact(self, contact: UserContact) -> None:
        now = utc_now()
        stmt = insert(UserContactORM).values(
            user_id=contact.user_id,
            email=contact.email,
            display_name=contact.display_name,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[UserContactORM.user_id],
            set_={
                "email": stmt.excluded.email,
                "display_name": stmt.excluded.display_name,
                "updated_at": now,
            },
        )
        await self._session.execute(stmt)

    async def record_order_created(self, payload: OrderCreatedV1) -> None:
        # Status and version stay untouched when a later update was projected first.
        now = utc_now()
        stmt = insert(OrderViewORM).values(
            order_id=payload.order_id,
            user_id=payload.user_id,
            status=payload.status,
            version=payload.version,
            total_amount=payload.total_amount,
            currency=payload.currency,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[OrderViewORM.order_id],
            set_={
                "user_id": stmt.excluded.user_id,
                "total_amount": stmt.excluded.total_amount,
                "currency": stmt.excluded.currency,
                "updated_at": now,
            },
        )
        await self._session.execute(stmt)

    async def record_order_updated(self, payload: OrderUpdatedV1) -> bool:
        stmt = (
            update(OrderViewORM)
            .where(
                OrderViewORM.order_id == payload.order_id,
                OrderViewORM.version < payload.version,
            )
            .values(status=payload.status, version=payload.version, updated_at=utc_now())
        )
        result = await self._session.execute(stmt)
        return bool(getattr(result, "rowcount", 0))
