"""Buyer notifications, including the post-payment hook."""

import uuid

from libs.common.currency import format_inr
from libs.common.errors import NotFoundError
from libs.common.logging import get_logger
from libs.db.transaction import atomic
from services.commerce_service.models import (
    Buyer,
    Invoice,
    Notification,
    NotificationType,
    Payment,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def notify_payment_received(
    db: AsyncSession, invoice: Invoice, payment: Payment
) -> Notification:
    """Tell the buyer a payment was credited. Runs after the payment commits."""
    async with atomic(db):
        notification = Notification(
            buyer_id=invoice.buyer_id,
            type=NotificationType.PAYMENT,
            title=f"Payment received for {invoice.number}",
            body=(
                f"{format_inr(payment.amount_paise)} received. "
                f"Balance due: {format_inr(invoice.balance_due_paise)}."
            ),
            data={
                "invoice_id": str(invoice.id),
                "payment_id": str(payment.id),
                "invoice_status": invoice.status.value,
            },
        )
        db.add(notification)
    logger.info("Payment notification queued for buyer %s", invoice.buyer_id)
    return notification


async def _buyer_id_for(db: AsyncSession, auth_id: str) -> uuid.UUID | None:
    return await db.scalar(select(Buyer.id).where(Buyer.auth_id == auth_id))


async def list_notifications(
    db: AsyncSession, auth_id: str, *, unseen_only: bool = False, limit: int = 50
) -> list[Notification]:
    buyer_id = await _buyer_id_for(db, auth_id)
    if buyer_id is None:
        return []
    query = select(Notification).where(Notification.buyer_id == buyer_id)
    if unseen_only:
        query = query.where(Notification.seen.is_(False))
    query = query.order_by(Notification.created_at.desc()).limit(limit)
    return list((await db.execute(query)).scalars().all())


async def mark_seen(
    db: AsyncSession, notification_id: uuid.UUID, auth_id: str
) -> Notification:
    async with atomic(db):
        buyer_id = await _buyer_id_for(db, auth_id)
        notification = await db.get(Notification, notification_id)
        if notification is None or notification.buyer_id != buyer_id:
            raise NotFoundError(f"Notification {notification_id} not found")
        notification.seen = True
    return notification
