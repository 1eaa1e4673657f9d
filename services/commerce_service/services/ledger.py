"""Money and idempotency helpers shared by dispatch and reconciliation."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from libs.common.currency import rupees_to_paise, to_decimal
from libs.common.datetime_utils import local_now
from services.commerce_service.models import (
    InvoiceItem,
    InvoiceStatus,
    Order,
    OrderPaymentStatus,
    PaymentStatus,
)

SUCCESS_CODE = "TXN_SUCCESS"
PENDING_CODE = "PENDING"

ORDER_PAYMENT_STATUS = {
    InvoiceStatus.UNPAID: OrderPaymentStatus.UNPAID,
    InvoiceStatus.PARTIALLY_PAID: OrderPaymentStatus.PARTIAL,
    InvoiceStatus.PAID: OrderPaymentStatus.PAID,
    # A refunded invoice leaves the order with nothing paid
    InvoiceStatus.REFUNDED: OrderPaymentStatus.UNPAID,
}


def payment_idempotency_key(
    gateway: str, order_reference: str, transaction_id: Optional[str] = None
) -> str:
    """
    Deterministic dedup key for a gateway payment.

    The same formula is used when the QR is issued (no transaction id yet) and
    when the webhook arrives, so repeated deliveries of one event collide.
    """
    key = f"{gateway.upper()}:{order_reference}"
    if transaction_id:
        key = f"{key}:{transaction_id}"
    return key


def map_gateway_status(code: Optional[str]) -> PaymentStatus:
    normalized = (code or "").strip().upper()
    if normalized == SUCCESS_CODE:
        return PaymentStatus.CAPTURED
    if normalized == PENDING_CODE:
        return PaymentStatus.PENDING
    return PaymentStatus.FAILED


def invoice_number_for(order: Order) -> str:
    if order.order_number:
        return f"INV-{order.order_number}"
    return f"INV-{local_now().strftime('%Y%m%d%H%M%S%f')}"


def gst_paise(line_total_paise: int, gst_percent) -> int:
    """Tax on a line, rounded half-up to the nearest paisa."""
    gst = Decimal(line_total_paise) * to_decimal(gst_percent) / 100
    return int(gst.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_invoice_items(order: Order) -> list[InvoiceItem]:
    items = []
    for position, line in enumerate(order.items):
        unit_paise = rupees_to_paise(line.unit_price_inr)
        line_paise = unit_paise * line.quantity
        items.append(
            InvoiceItem(
                position=position,
                product_id=line.product_id,
                name=line.name,
                brand=line.brand,
                hsn_code=line.hsn_code,
                quantity=line.quantity,
                unit_price_paise=unit_paise,
                line_total_paise=line_paise,
                gst_percent=line.gst_percent or Decimal("0"),
                gst_paise=gst_paise(line_paise, line.gst_percent),
            )
        )
    return items


def invoice_totals(order: Order) -> dict[str, int]:
    """
    Invoice rollups in paise, taken from the order's totals.

    ``grand_total`` is always subtotal - discount + gst, even when the order
    carries an overridden final amount.
    """
    subtotal = rupees_to_paise(order.total_amount_inr)
    discount = rupees_to_paise(order.discount_amount_inr)
    gst = rupees_to_paise(order.gst_amount_inr)
    grand_total = max(subtotal - discount + gst, 0)
    return {
        "subtotal_paise": subtotal,
        "discount_total_paise": discount,
        "gst_total_paise": gst,
        "grand_total_paise": grand_total,
    }
