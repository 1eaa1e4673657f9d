"""Invoice document publishing: render the PDF, store it, record its URL.

Runs after the dispatch transaction has committed, so a renderer or storage
failure never undoes a dispatch. Publishing is retried with exponential
backoff and can be re-run on demand.
"""

import asyncio
import uuid
from typing import Optional

from libs.common.config import get_settings
from libs.common.currency import format_inr
from libs.common.datetime_utils import local_now
from libs.common.errors import NotFoundError
from libs.common.logging import get_logger
from libs.common.pdf import generate_invoice_pdf
from libs.db.transaction import atomic
from services.commerce_service.models import Invoice, Order
from services.commerce_service.paytm_client import decode_qr_image
from services.commerce_service.services.invoices import get_invoice
from services.commerce_service.storage import InvoiceStorage
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


def build_document_inputs(invoice: Invoice, order: Order) -> dict:
    """Shape an invoice into the renderer's header/rows/parties/options contract."""
    settings = get_settings()
    created = invoice.created_at or local_now()

    line_rows = [
        {
            "name": item.name,
            "hsn_code": item.hsn_code,
            "quantity": item.quantity,
            "rate": format_inr(item.unit_price_paise),
            "gst_percent": f"{item.gst_percent or 0}",
            "gst": format_inr(item.gst_paise),
            "amount": format_inr(item.line_total_paise),
        }
        for item in invoice.items
    ]

    charges = [
        ("Subtotal", format_inr(invoice.subtotal_paise)),
        ("Discount", f"- {format_inr(invoice.discount_total_paise)}"),
        ("GST", format_inr(invoice.gst_total_paise)),
        ("Grand Total", format_inr(invoice.grand_total_paise)),
    ]
    if invoice.amount_paid_paise:
        charges.insert(-1, ("Paid", format_inr(invoice.amount_paid_paise)))

    return {
        "header": {
            "invoice_number": invoice.number,
            "order_number": order.order_number,
            "order_id": str(order.id),
            "date": created.strftime("%d %b %Y"),
        },
        "line_rows": line_rows,
        "buyer": invoice.buyer_snapshot or {},
        "seller": invoice.seller_snapshot,
        "options": {
            "company": {
                "name": settings.COMPANY_LEGAL_NAME,
                "gst_number": settings.COMPANY_GST_NUMBER,
            },
            "shipping": invoice.shipping_address,
            "charges": charges,
            "payment": {
                "status": invoice.status.value,
                "qr_payload": invoice.qr_payload,
                "qr_image": decode_qr_image(invoice.qr_image),
                "amount_due": format_inr(invoice.balance_due_paise)
                if invoice.balance_due_paise
                else None,
            },
        },
    }


async def render_invoice(invoice: Invoice, order: Order) -> bytes:
    inputs = build_document_inputs(invoice, order)
    # ReportLab is CPU-bound and synchronous
    return await asyncio.to_thread(
        generate_invoice_pdf,
        inputs["header"],
        inputs["line_rows"],
        inputs["buyer"],
        inputs["seller"],
        inputs["options"],
    )


async def _publish_once(
    db: AsyncSession, invoice_id: uuid.UUID, storage: InvoiceStorage
) -> str:
    invoice = await get_invoice(db, invoice_id)
    order = await db.get(Order, invoice.order_id)
    content = await render_invoice(invoice, order)
    url = await storage.save(invoice.number, content)

    async with atomic(db):
        invoice = await get_invoice(db, invoice_id, for_update=True)
        order = (
            await db.execute(
                select(Order).where(Order.id == invoice.order_id).with_for_update()
            )
        ).scalar_one()
        invoice.pdf_url = url
        order.invoice_url = url
    return url


async def publish_invoice_document(
    db: AsyncSession,
    invoice_id: uuid.UUID,
    storage: InvoiceStorage,
    *,
    attempts: Optional[int] = None,
    backoff_seconds: Optional[float] = None,
    raise_on_failure: bool = False,
) -> Optional[str]:
    """
    Render and store the invoice PDF, retrying with exponential backoff.

    Returns the document URL, or None when every attempt failed and
    ``raise_on_failure`` is False.
    """
    settings = get_settings()
    attempts = max(attempts or settings.INVOICE_RENDER_ATTEMPTS, 1)
    delay = (
        settings.INVOICE_RENDER_BACKOFF_SECONDS
        if backoff_seconds is None
        else backoff_seconds
    )

    for attempt in range(1, attempts + 1):
        try:
            url = await _publish_once(db, invoice_id, storage)
            logger.info("Published invoice document %s", url)
            return url
        except NotFoundError:
            raise
        except Exception as e:
            logger.error(
                "Invoice document attempt %d/%d failed for %s: %s",
                attempt,
                attempts,
                invoice_id,
                e,
                extra={"extra_fields": {"invoice_id": str(invoice_id)}},
            )
            if attempt == attempts:
                if raise_on_failure:
                    raise
                return None
            await asyncio.sleep(delay)
            delay *= 2
    return None
