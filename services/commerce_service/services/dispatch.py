"""Dispatch an order and derive its invoice.

The status change, audit entry, invoice and (best-effort) payment QR are
written in one transaction. The PDF is published after commit so a renderer
failure never rolls back a dispatch.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

import httpx
from libs.common.currency import rupees_to_paise
from libs.common.datetime_utils import utc_now
from libs.common.errors import (
    ConflictError,
    GatewayError,
    InvalidStateError,
    NotFoundError,
)
from libs.common.logging import get_logger
from libs.db.transaction import atomic
from services.commerce_service.models import (
    Buyer,
    Invoice,
    InvoiceStatus,
    Order,
    OrderAction,
    OrderLog,
    OrderStatus,
    Payment,
    PaymentStatus,
    Seller,
)
from services.commerce_service.paytm_client import GATEWAY_NAME, PaytmClient
from services.commerce_service.services.invoice_documents import (
    publish_invoice_document,
)
from services.commerce_service.services.invoices import get_invoice
from services.commerce_service.services.ledger import (
    build_invoice_items,
    invoice_number_for,
    invoice_totals,
    payment_idempotency_key,
)
from services.commerce_service.services.orders import load_order
from services.commerce_service.storage import InvoiceStorage
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)


@dataclass
class DispatchNote:
    courier: Optional[str] = None
    awb: Optional[str] = None
    note: Optional[str] = None


@dataclass
class DispatchResult:
    order: Order
    invoice: Invoice


# ============================================================================
# PAYMENT QR
# ============================================================================


async def _ensure_created_payment(
    db: AsyncSession, invoice: Invoice, amount_paise: int
) -> Payment:
    """Insert the ``created`` payment for an invoice's QR unless it already exists."""
    key = payment_idempotency_key(GATEWAY_NAME, invoice.number)
    existing = await db.scalar(select(Payment).where(Payment.idempotency_key == key))
    if existing is not None:
        return existing

    payment = Payment(
        idempotency_key=key,
        invoice_id=invoice.id,
        order_id=invoice.order_id,
        buyer_id=invoice.buyer_id,
        gateway=GATEWAY_NAME,
        amount_paise=amount_paise,
        status=PaymentStatus.CREATED,
        gateway_order_id=invoice.number,
    )
    db.add(payment)
    return payment


async def attach_payment_qr(
    db: AsyncSession,
    invoice: Invoice,
    gateway: PaytmClient,
    *,
    best_effort: bool = True,
) -> bool:
    """
    Request a dynamic QR for the invoice's outstanding amount and store it.

    With ``best_effort`` a gateway failure is logged and the invoice is left
    without QR data; otherwise it raises ``GatewayError``. Returns whether a
    QR was attached.
    """
    amount_paise = invoice.balance_due_paise or invoice.grand_total_paise
    try:
        qr = await gateway.create_qr(invoice.number, amount_paise)
    except (GatewayError, httpx.HTTPError) as e:
        if not best_effort:
            if isinstance(e, GatewayError):
                raise
            raise GatewayError(f"Paytm unreachable: {e}") from e
        logger.warning(
            "QR generation failed for invoice %s: %s",
            invoice.number,
            e,
            extra={"extra_fields": {"invoice_id": str(invoice.id)}},
        )
        return False

    invoice.qr_id = qr.qr_id
    invoice.qr_payload = qr.qr_payload
    invoice.qr_image = qr.qr_image_b64
    await _ensure_created_payment(db, invoice, amount_paise)
    return True


async def request_invoice_qr(
    db: AsyncSession, invoice_id: uuid.UUID, gateway: PaytmClient
) -> Invoice:
    """
    Issue the payment QR for an unpaid invoice.

    Paid invoices and invoices that already carry a QR are returned unchanged.
    """
    async with atomic(db):
        invoice = await get_invoice(db, invoice_id, for_update=True)
        if invoice.status == InvoiceStatus.PAID:
            logger.info("Invoice %s already paid; QR not issued", invoice.number)
        elif invoice.has_qr:
            logger.info("Invoice %s already has a QR", invoice.number)
        else:
            await attach_payment_qr(db, invoice, gateway, best_effort=False)
    return invoice


# ============================================================================
# DISPATCH
# ============================================================================


async def _lock_confirmed_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    order = (
        await db.execute(
            select(Order)
            .options(selectinload(Order.items))
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    if order.status != OrderStatus.CONFIRMED:
        raise InvalidStateError(
            f"Only confirmed orders can be dispatched (order is {order.status.value})"
        )
    return order


async def build_invoice(db: AsyncSession, order: Order) -> Invoice:
    """Derive an unpaid invoice from an order's lines and totals."""
    buyer = await db.get(Buyer, order.buyer_id)
    seller = await db.get(Seller, order.seller_id) if order.seller_id else None

    totals = invoice_totals(order)
    final_paise = rupees_to_paise(order.final_amount_inr)
    if final_paise != totals["grand_total_paise"]:
        logger.warning(
            "Order %s final amount %s differs from derived invoice total %s paise",
            order.order_number,
            order.final_amount_inr,
            totals["grand_total_paise"],
        )

    invoice = Invoice(
        number=invoice_number_for(order),
        order_id=order.id,
        buyer_id=order.buyer_id,
        seller_id=order.seller_id,
        amount_paid_paise=0,
        balance_due_paise=totals["grand_total_paise"],
        status=InvoiceStatus.UNPAID,
        buyer_snapshot=buyer.snapshot() if buyer else None,
        seller_snapshot=seller.snapshot() if seller else None,
        shipping_address=order.shipping_address,
        **totals,
    )
    invoice.items = build_invoice_items(order)
    invoice.payment_refs = []
    return invoice


async def dispatch_order(
    db: AsyncSession,
    order_id: uuid.UUID,
    actor_id: str,
    note: DispatchNote,
    gateway: PaytmClient,
    storage: Optional[InvoiceStorage] = None,
) -> DispatchResult:
    """
    Mark a confirmed order dispatched and create its invoice atomically.

    Raises:
        NotFoundError: order missing
        InvalidStateError: order is not ``confirmed``
        ConflictError: an invoice with the derived number already exists
    """
    async with atomic(db):
        order = await _lock_confirmed_order(db, order_id)

        now = utc_now()
        order.status = OrderStatus.DISPATCHED
        order.dispatch_info = {
            "courier": note.courier,
            "awb": note.awb,
            "note": note.note,
            "at": now.isoformat(),
            "by": actor_id,
        }
        db.add(
            OrderLog(
                order_id=order.id,
                action=OrderAction.DISPATCHED,
                actor_id=actor_id,
                note=note.note,
            )
        )

        invoice = await build_invoice(db, order)
        db.add(invoice)
        try:
            await db.flush()
        except IntegrityError as e:
            raise ConflictError(
                f"Invoice {invoice.number} already exists for another order"
            ) from e

        await attach_payment_qr(db, invoice, gateway, best_effort=True)

    logger.info(
        "Order %s dispatched with invoice %s",
        order.order_number,
        invoice.number,
        extra={
            "extra_fields": {
                "order_id": str(order.id),
                "invoice_id": str(invoice.id),
                "grand_total_paise": invoice.grand_total_paise,
                "actor": actor_id,
            }
        },
    )

    invoice_id = invoice.id
    if storage is not None:
        await publish_invoice_document(db, invoice_id, storage)

    return DispatchResult(
        order=await load_order(db, order_id),
        invoice=await get_invoice(db, invoice_id),
    )
