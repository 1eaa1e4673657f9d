"""Order queries and the generic status state machine."""

import uuid
from typing import Optional

from libs.auth.models import AuthUser, Role
from libs.common.errors import InvalidStateError, NotFoundError
from libs.common.logging import get_logger
from libs.db.transaction import atomic
from services.commerce_service.models import (
    Buyer,
    Order,
    OrderAction,
    OrderLog,
    OrderStatus,
    Seller,
)
from sqlalchemy import false, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)

# dispatched is only reachable through dispatch_order
ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.CONFIRMED: frozenset({OrderStatus.CANCELLED}),
    OrderStatus.DISPATCHED: frozenset({OrderStatus.DELIVERED, OrderStatus.RETURNED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.RETURNED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.RETURNED: frozenset(),
}

STATUS_ACTIONS = {
    OrderStatus.DELIVERED: OrderAction.DELIVERED,
    OrderStatus.CANCELLED: OrderAction.CANCELLED,
    OrderStatus.RETURNED: OrderAction.RETURNED,
}


def _order_query():
    return select(Order).options(selectinload(Order.items), selectinload(Order.logs))


async def load_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    result = await db.execute(
        _order_query()
        .where(Order.id == order_id)
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order


async def _visibility_filter(db: AsyncSession, user: AuthUser):
    """Column criterion restricting orders to what ``user`` may see, or None."""
    if user.is_back_office:
        return None
    if user.role == Role.SELLER:
        seller_id = await db.scalar(select(Seller.id).where(Seller.auth_id == user.user_id))
        # no profile, nothing visible (avoid matching NULL seller ids)
        return Order.seller_id == seller_id if seller_id else false()
    buyer_id = await db.scalar(select(Buyer.id).where(Buyer.auth_id == user.user_id))
    return Order.buyer_id == buyer_id if buyer_id else false()


async def get_order_for_user(
    db: AsyncSession, order_id: uuid.UUID, user: AuthUser
) -> Order:
    query = _order_query().where(Order.id == order_id)
    criterion = await _visibility_filter(db, user)
    if criterion is not None:
        query = query.where(criterion)
    order = (await db.execute(query)).scalar_one_or_none()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order


async def list_orders(
    db: AsyncSession,
    user: AuthUser,
    *,
    status: Optional[OrderStatus] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Order]:
    query = _order_query()
    criterion = await _visibility_filter(db, user)
    if criterion is not None:
        query = query.where(criterion)
    if status is not None:
        query = query.where(Order.status == status)
    query = query.order_by(Order.created_at.desc()).limit(limit).offset(offset)
    return list((await db.execute(query)).scalars().all())


async def update_order_status(
    db: AsyncSession,
    order_id: uuid.UUID,
    new_status: OrderStatus,
    actor: AuthUser,
    note: Optional[str] = None,
) -> Order:
    """
    Move an order along the post-dispatch lifecycle, or cancel it.

    Raises:
        NotFoundError: order missing, or not visible to a buyer caller
        InvalidStateError: transition not allowed from the current status
    """
    async with atomic(db):
        order = (
            await db.execute(
                select(Order).where(Order.id == order_id).with_for_update()
            )
        ).scalar_one_or_none()
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")

        if actor.role == Role.BUYER:
            buyer_id = await db.scalar(
                select(Buyer.id).where(Buyer.auth_id == actor.user_id)
            )
            if order.buyer_id != buyer_id:
                raise NotFoundError(f"Order {order_id} not found")
            if new_status != OrderStatus.CANCELLED:
                raise InvalidStateError("Buyers may only cancel orders")
        elif actor.role == Role.SELLER:
            seller_id = await db.scalar(
                select(Seller.id).where(Seller.auth_id == actor.user_id)
            )
            if seller_id is None or order.seller_id != seller_id:
                raise NotFoundError(f"Order {order_id} not found")

        if new_status not in ALLOWED_TRANSITIONS[order.status]:
            raise InvalidStateError(
                f"Cannot move order from {order.status.value} to {new_status.value}"
            )

        previous = order.status
        order.status = new_status
        db.add(
            OrderLog(
                order_id=order.id,
                action=STATUS_ACTIONS[new_status],
                actor_id=actor.user_id,
                note=note,
            )
        )

    logger.info(
        "Order %s moved %s -> %s",
        order.order_number,
        previous.value,
        new_status.value,
        extra={"extra_fields": {"order_id": str(order.id), "actor": actor.user_id}},
    )
    return await load_order(db, order_id)
