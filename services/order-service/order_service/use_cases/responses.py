from __future__ import annotations

from shared.contracts import LineItemResponse, OrderORM, OrderResponse


def to_order_response(order: OrderORM) -> OrderResponse:
    return OrderResponse(
        order_id=order.order_id,
        user_id=order.user_id,
        status=order.status,
        version=order.version,
        total_amount=order.total_amount,
        currency=order.currency,
        line_items=[
            LineItemResponse(
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
            )
            for item in order.line_items
        ],
        created_at=order.created_at,
        updated_at=order.updated_at,
    )
