from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shared.contracts import OrderLineItemORM, OrderORM, OrderStatus
from shared.utils.time import utc_now


@dataclass(frozen=True)
class LineItemData:
    product_id: str
    quantity: int
    unit_price: int


@dataclass(frozen=True)
class OrderCreateData:
    order_id: UUID
    user_id: str
    dedup_token: str
    currency: str
    line_items: tuple[LineItemData, ...]

    @property
    def total_amount(self) -> int:
        return sum(item.quantity * item.unit_price for item in self.line_items)


class OrderRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, order_id: UUID) -> OrderORM | None:
        stmt = select(OrderORM).where(OrderORM.order_id == order_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_dedup_token(self, user_id: str, dedup_token: str) -> OrderORM | None:
        stmt = select(OrderORM).where(
            OrderORM.user_id == user_id,
            OrderORM.dedup_token == dedup_token,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    def create_order(self, order_data: OrderCreateData) -> OrderORM:
        now = utc_now()
        entity = OrderORM(
            order_id=order_data.order_id,
            user_id=order_data.user_id,
            dedup_token=order_data.dedup_token,
            currency=order_data.currency,
            total_amount=order_data.total_amount,
            status=OrderStatus.CREATED,
            version=0,
            created_at=now,
            updated_at=now,
            line_items=[
                OrderLineItemORM(
                    position=position,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                )
                for position, item in enumerate(order_data.line_items)
            ],
        )
        self._session.add(entity)
        return entity

    async def transition(
        self,
        order_id: UUID,
        *,
        expected_version: int,
        expected_status: OrderStatus,
        new_status: OrderStatus,
    ) -> bool:
        stmt = (
            update(OrderORM)
            .where(
                OrderORM.order_id == order_id,
                OrderORM.version == expected_version,
                OrderORM.status == expected_status,
            )
            .values(status=new_status, version=expected_version + 1, updated_at=utc_now())
        )
        result = await self._session.execute(stmt)
        return bool(getattr(result, "rowcount", 0))
