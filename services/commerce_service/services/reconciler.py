"""Payment reconciliation for gateway webhooks.

Each event is verified, recorded as a Payment keyed by its idempotency key,
and, on the first transition into ``captured``, credited to its invoice.
The invoice row is locked for the duration so concurrent deliveries for the
same invoice are applied one after the other.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Optional, Union
from urllib.parse import parse_qs

from libs.common.currency import rupees_to_paise
from libs.common.errors import (
    ConflictError,
    InvalidSignatureError,
    MalformedPayloadError,
)
from libs.common.logging import get_logger
from libs.db.transaction import atomic
from services.commerce_service.models import Invoice, Order, Payment, PaymentStatus
from services.commerce_service.paytm_client import GATEWAY_NAME, PaytmClient
from services.commerce_service.services.invoices import get_invoice_by_number
from services.commerce_service.services.ledger import (
    ORDER_PAYMENT_STATUS,
    map_gateway_status,
    payment_idempotency_key,
)
from services.commerce_service.services.notifications import notify_payment_received
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

PostPaymentHook = Callable[[AsyncSession, Invoice, Payment], Awaitable[None]]

EVENT_ATTEMPTS = 2

# ============================================================================
# PAYLOAD NORMALIZATION
# ============================================================================


@dataclass
class FormPayload:
    """URL-encoded webhook body."""

    fields: dict[str, str] = field(default_factory=dict)


@dataclass
class JsonPayload:
    """JSON webhook body."""

    fields: dict[str, Any] = field(default_factory=dict)


GatewayPayload = Union[FormPayload, JsonPayload]


def parse_webhook_body(raw: bytes, content_type: Optional[str] = None) -> GatewayPayload:
    """Decide once whether a body is JSON or form-encoded."""
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        raise MalformedPayloadError("Webhook body is not valid UTF-8")

    is_json = "json" in (content_type or "").lower() or text.lstrip().startswith("{")
    if is_json:
        try:
            data = json.loads(text)
        except ValueError:
            raise MalformedPayloadError("Webhook body is not valid JSON")
        if not isinstance(data, dict):
            raise MalformedPayloadError("Webhook JSON body must be an object")
        return JsonPayload(fields=data)

    parsed = parse_qs(text, keep_blank_values=True)
    return FormPayload(fields={key: values[0] for key, values in parsed.items()})


def normalize_payload(payload: Union[GatewayPayload, Mapping[str, Any]]) -> dict[str, Any]:
    """Flatten any accepted payload shape into one key-value mapping."""
    if isinstance(payload, (FormPayload, JsonPayload)):
        return dict(payload.fields)
    return dict(payload)


def _field(flat: Mapping[str, Any], *names: str) -> Optional[Any]:
    for name in names:
        if flat.get(name) not in (None, ""):
            return flat[name]
    lowered = {key.lower(): value for key, value in flat.items()}
    for name in names:
        value = lowered.get(name.lower())
        if value not in (None, ""):
            return value
    return None


@dataclass
class GatewayEvent:
    status_code: str
    order_reference: str
    amount_paise: int
    transaction_id: Optional[str]

    @property
    def idempotency_key(self) -> str:
        return payment_idempotency_key(
            GATEWAY_NAME, self.order_reference, self.transaction_id
        )


def extract_event(flat: Mapping[str, Any]) -> GatewayEvent:
    order_reference = _field(flat, "ORDERID", "orderId")
    if not order_reference:
        raise MalformedPayloadError("Missing ORDERID")

    status_code = str(_field(flat, "STATUS", "status") or "").strip().upper()
    if not status_code:
        raise MalformedPayloadError("Missing STATUS")

    raw_amount = _field(flat, "TXNAMOUNT", "amount")
    if raw_amount is None:
        if map_gateway_status(status_code) == PaymentStatus.CAPTURED:
            raise MalformedPayloadError("Missing TXNAMOUNT on a successful transaction")
        amount_paise = 0
    else:
        try:
            amount_paise = rupees_to_paise(raw_amount)
        except ValueError:
            raise MalformedPayloadError(f"Invalid TXNAMOUNT {raw_amount!r}")
        if amount_paise < 0:
            raise MalformedPayloadError("TXNAMOUNT must not be negative")

    transaction_id = _field(flat, "TXNID", "txnId")
    return GatewayEvent(
        status_code=status_code,
        order_reference=str(order_reference),
        amount_paise=amount_paise,
        transaction_id=str(transaction_id) if transaction_id else None,
    )


# ============================================================================
# RECONCILIATION
# ============================================================================


@dataclass
class ReconcileResult:
    invoice: Invoice
    payment: Payment
    applied: bool
    duplicate: bool


async def _reconcile(
    db: AsyncSession, event: GatewayEvent, flat: dict[str, Any]
) -> ReconcileResult:
    async with atomic(db):
        invoice = await get_invoice_by_number(
            db, event.order_reference, for_update=True
        )
        key = event.idempotency_key
        new_status = map_gateway_status(event.status_code)

        payment = await db.scalar(
            select(Payment)
            .where(Payment.idempotency_key == key)
            .with_for_update()
            .execution_options(populate_existing=True)
        )

        if payment is None:
            prior_status = None
            payment = Payment(
                idempotency_key=key,
                invoice_id=invoice.id,
                order_id=invoice.order_id,
                buyer_id=invoice.buyer_id,
                gateway=GATEWAY_NAME,
                amount_paise=event.amount_paise,
                status=new_status,
                gateway_order_id=event.order_reference,
                gateway_txn_id=event.transaction_id,
                verified=True,
                raw_payload=flat,
            )
            db.add(payment)
            try:
                await db.flush()
            except IntegrityError as e:
                raise ConflictError(f"Payment {key} was created concurrently") from e
        else:
            prior_status = payment.status
            payment.raw_payload = flat
            payment.verified = True
            payment.gateway_txn_id = event.transaction_id or payment.gateway_txn_id
            if prior_status == PaymentStatus.CAPTURED and new_status != PaymentStatus.CAPTURED:
                # captured is terminal; a late non-success delivery only refreshes the payload
                logger.warning(
                    "Ignoring %s for captured payment %s", new_status.value, key
                )
            else:
                payment.status = new_status
            logger.info(
                "Refreshing existing payment %s (%s -> %s)",
                key,
                prior_status.value,
                payment.status.value,
            )

        applied = (
            payment.status == PaymentStatus.CAPTURED
            and prior_status != PaymentStatus.CAPTURED
        )
        if applied:
            expected = invoice.balance_due_paise or invoice.grand_total_paise
            if event.amount_paise != expected:
                logger.warning(
                    "Invoice %s received %s paise, %s paise were due",
                    invoice.number,
                    event.amount_paise,
                    expected,
                )
            payment.amount_paise = event.amount_paise
            invoice.apply_payment(event.amount_paise, payment.id, GATEWAY_NAME)

            order = await db.get(Order, invoice.order_id, with_for_update=True)
            order.payment_status = ORDER_PAYMENT_STATUS[invoice.status]

    if applied:
        logger.info(
            "Applied payment %s to invoice %s",
            payment.idempotency_key,
            invoice.number,
            extra={
                "extra_fields": {
                    "invoice_id": str(invoice.id),
                    "amount_paise": event.amount_paise,
                    "invoice_status": invoice.status.value,
                    "balance_due_paise": invoice.balance_due_paise,
                }
            },
        )
    return ReconcileResult(
        invoice=invoice,
        payment=payment,
        applied=applied,
        duplicate=prior_status is not None,
    )


async def handle_gateway_event(
    db: AsyncSession,
    payload: Union[GatewayPayload, Mapping[str, Any]],
    gateway: PaytmClient,
    *,
    post_payment_hook: Optional[PostPaymentHook] = notify_payment_received,
) -> ReconcileResult:
    """
    Verify and reconcile one gateway event.

    Raises:
        InvalidSignatureError: checksum did not verify (nothing is read or written)
        MalformedPayloadError: required fields missing or unparseable
        NotFoundError: no invoice matches the gateway order reference
    """
    flat = normalize_payload(payload)

    if not gateway.verify_signature(flat):
        logger.warning(
            "Rejected webhook with invalid checksum",
            extra={"extra_fields": {"order_reference": _field(flat, "ORDERID", "orderId")}},
        )
        raise InvalidSignatureError("Invalid checksum")

    event = extract_event(flat)

    for attempt in range(1, EVENT_ATTEMPTS + 1):
        try:
            result = await _reconcile(db, event, flat)
            break
        except ConflictError:
            if attempt == EVENT_ATTEMPTS:
                raise
            logger.info("Concurrent delivery for %s, retrying", event.idempotency_key)

    if result.applied and post_payment_hook is not None:
        invoice_number = result.invoice.number
        try:
            await post_payment_hook(db, result.invoice, result.payment)
        except Exception:
            logger.exception("Post-payment hook failed for invoice %s", invoice_number)
    return result
