"""Invoice lookups."""

import uuid

from libs.common.errors import NotFoundError
from services.commerce_service.models import Invoice
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload


def _invoice_query():
    return (
        select(Invoice)
        .options(selectinload(Invoice.items), selectinload(Invoice.payment_refs))
        .execution_options(populate_existing=True)
    )


async def get_invoice(
    db: AsyncSession, invoice_id: uuid.UUID, *, for_update: bool = False
) -> Invoice:
    query = _invoice_query().where(Invoice.id == invoice_id)
    if for_update:
        query = query.with_for_update()
    invoice = (await db.execute(query)).scalar_one_or_none()
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    return invoice


async def get_invoice_by_order(db: AsyncSession, order_id: uuid.UUID) -> Invoice:
    query = _invoice_query().where(Invoice.order_id == order_id)
    invoice = (await db.execute(query)).scalar_one_or_none()
    if invoice is None:
        raise NotFoundError(f"No invoice for order {order_id}")
    return invoice


async def get_invoice_by_number(
    db: AsyncSession, number: str, *, for_update: bool = False
) -> Invoice:
    query = _invoice_query().where(Invoice.number == number)
    if for_update:
        query = query.with_for_update()
    invoice = (await db.execute(query)).scalar_one_or_none()
    if invoice is None:
        raise NotFoundError(f"Invoice {number} not found")
    return invoice
