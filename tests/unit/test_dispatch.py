"""Unit tests for dispatch and invoice issue."""

from decimal import Decimal

import httpx
import pytest
from libs.common.errors import ConflictError, GatewayError, InvalidStateError
from services.commerce_service.models import (
    Invoice,
    InvoiceStatus,
    OrderAction,
    OrderStatus,
    Payment,
    PaymentStatus,
)
from services.commerce_service.schemas import OrderLineRequest
from services.commerce_service.services import dispatch as dispatch_module
from services.commerce_service.services import invoice_documents
from services.commerce_service.services.dispatch import (
    DispatchNote,
    dispatch_order,
    request_invoice_qr,
)
from services.commerce_service.services.order_assembler import (
    ExplicitTotals,
    place_order,
)
from services.commerce_service.services.orders import load_order
from sqlalchemy import func, select


async def _place(db, catalog, x_qty=2, y_qty=0):
    lines = [OrderLineRequest(product_id=str(catalog.product_x.id), quantity=x_qty)]
    if y_qty:
        lines.append(
            OrderLineRequest(product_id=str(catalog.product_y.id), quantity=y_qty)
        )
    return await place_order(db, catalog.buyer.id, lines)


async def _count(db, model) -> int:
    return await db.scalar(select(func.count()).select_from(model))


NOTE = DispatchNote(courier="Delhivery", awb="AWB123", note="2 cartons")


# ---------------------------------------------------------------------------
# dispatch_order
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_dispatch_creates_unpaid_invoice(db_session, catalog, gateway):
    """A 1000 rupee order yields a 100000 paise unpaid invoice."""
    order = await _place(db_session, catalog, x_qty=2)

    result = await dispatch_order(db_session, order.id, "staff-1", NOTE, gateway)

    invoice = result.invoice
    assert invoice.number == f"INV-{order.order_number}"
    assert invoice.subtotal_paise == 100000
    assert invoice.grand_total_paise == 100000
    assert invoice.amount_paid_paise == 0
    assert invoice.balance_due_paise == 100000
    assert invoice.status == InvoiceStatus.UNPAID
    assert invoice.buyer_snapshot["name"] == catalog.buyer.name
    assert invoice.seller_snapshot["brand_name"] == catalog.seller.brand_name
    assert [(i.quantity, i.unit_price_paise) for i in invoice.items] == [(2, 50000)]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_invoice_bills_derived_total_over_final_override(
    db_session, catalog, gateway
):
    """An overridden order final amount does not change what the invoice bills."""
    order = await place_order(
        db_session,
        catalog.buyer.id,
        [OrderLineRequest(product_id=str(catalog.product_x.id), quantity=2)],
        explicit_totals=ExplicitTotals(final_amount=Decimal("900")),
    )
    assert order.final_amount_inr == Decimal("900.00")

    result = await dispatch_order(db_session, order.id, "staff-1", NOTE, gateway)

    assert result.invoice.grand_total_paise == 100000
    assert result.invoice.balance_due_paise == 100000
    assert result.order.final_amount_inr == Decimal("900.00")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_dispatch_updates_order_and_audit_trail(db_session, catalog, gateway):
    order = await _place(db_session, catalog)

    result = await dispatch_order(db_session, order.id, "staff-1", NOTE, gateway)

    assert result.order.status == OrderStatus.DISPATCHED
    assert result.order.dispatch_info["courier"] == "Delhivery"
    assert result.order.dispatch_info["awb"] == "AWB123"
    assert result.order.dispatch_info["by"] == "staff-1"
    assert [log.action for log in result.order.logs] == [
        OrderAction.PLACED,
        OrderAction.DISPATCHED,
    ]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_dispatch_attaches_qr_and_created_payment(db_session, catalog, gateway):
    order = await _place(db_session, catalog, x_qty=1, y_qty=1)

    result = await dispatch_order(db_session, order.id, "staff-1", NOTE, gateway)

    invoice = result.invoice
    assert gateway.qr_requests == [(invoice.number, 200000)]
    assert invoice.qr_id == f"QR-{invoice.number}"
    assert invoice.qr_payload.startswith("upi://pay")

    payment = await db_session.scalar(
        select(Payment).where(Payment.invoice_id == invoice.id)
    )
    assert payment.idempotency_key == f"PAYTM:{invoice.number}"
    assert payment.status == PaymentStatus.CREATED
    assert payment.amount_paise == 200000


@pytest.mark.asyncio
@pytest.mark.unit
async def test_dispatch_survives_qr_failure(db_session, catalog, gateway):
    """The gateway being down leaves the invoice without a QR, not the order undispatched."""
    gateway.fail_with = GatewayError("QR service unavailable")
    order = await _place(db_session, catalog)

    result = await dispatch_order(db_session, order.id, "staff-1", NOTE, gateway)

    assert result.order.status == OrderStatus.DISPATCHED
    assert result.invoice.qr_id is None
    assert await _count(db_session, Payment) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_dispatch_twice_is_rejected(db_session, catalog, gateway):
    order = await _place(db_session, catalog)
    await dispatch_order(db_session, order.id, "staff-1", NOTE, gateway)

    with pytest.raises(InvalidStateError):
        await dispatch_order(db_session, order.id, "staff-1", NOTE, gateway)

    assert await _count(db_session, Invoice) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_dispatch_failure_rolls_back_everything(
    db_session, catalog, gateway, monkeypatch
):
    """If the invoice cannot be built, the order stays confirmed with no new audit entry."""
    order = await _place(db_session, catalog)
    order_id = order.id

    async def _broken(db, order):
        raise RuntimeError("invoice builder exploded")

    monkeypatch.setattr(dispatch_module, "build_invoice", _broken)

    with pytest.raises(RuntimeError):
        await dispatch_order(db_session, order_id, "staff-1", NOTE, gateway)

    reloaded = await load_order(db_session, order_id)
    assert reloaded.status == OrderStatus.CONFIRMED
    assert reloaded.dispatch_info is None
    assert [log.action for log in reloaded.logs] == [OrderAction.PLACED]
    assert await _count(db_session, Invoice) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_dispatch_invoice_number_conflict(
    db_session, catalog, gateway, monkeypatch
):
    """A clashing invoice number is a conflict and the order is left confirmed."""
    monkeypatch.setattr(dispatch_module, "invoice_number_for", lambda order: "INV-FIXED")
    first = await _place(db_session, catalog)
    second = await _place(db_session, catalog)
    second_id = second.id
    await dispatch_order(db_session, first.id, "staff-1", NOTE, gateway)

    with pytest.raises(ConflictError):
        await dispatch_order(db_session, second_id, "staff-1", NOTE, gateway)

    reloaded = await load_order(db_session, second_id)
    assert reloaded.status == OrderStatus.CONFIRMED
    assert await _count(db_session, Invoice) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_dispatch_publishes_document(db_session, catalog, gateway, storage):
    order = await _place(db_session, catalog)

    result = await dispatch_order(
        db_session, order.id, "staff-1", NOTE, gateway, storage
    )

    expected_url = f"http://test/static/invoices/{result.invoice.number}.pdf"
    assert result.invoice.pdf_url == expected_url
    assert result.order.invoice_url == expected_url
    stored = storage.root / f"{result.invoice.number}.pdf"
    assert stored.read_bytes().startswith(b"%PDF")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_document_failure_does_not_undo_dispatch(
    db_session, catalog, gateway, storage, monkeypatch
):
    order = await _place(db_session, catalog)

    async def _fail(invoice, order):
        raise RuntimeError("renderer crashed")

    monkeypatch.setattr(invoice_documents, "render_invoice", _fail)

    result = await dispatch_order(
        db_session, order.id, "staff-1", NOTE, gateway, storage
    )

    assert result.order.status == OrderStatus.DISPATCHED
    assert result.invoice.pdf_url is None


# ---------------------------------------------------------------------------
# request_invoice_qr
# ---------------------------------------------------------------------------


async def _invoice_without_qr(db, catalog, gateway):
    gateway.fail_with = GatewayError("down")
    order = await _place(db, catalog)
    result = await dispatch_order(db, order.id, "staff-1", NOTE, gateway)
    gateway.fail_with = None
    gateway.qr_requests.clear()
    return result.invoice


@pytest.mark.asyncio
@pytest.mark.unit
async def test_request_qr_attaches_missing_qr(db_session, catalog, gateway):
    invoice = await _invoice_without_qr(db_session, catalog, gateway)

    updated = await request_invoice_qr(db_session, invoice.id, gateway)

    assert updated.qr_id == f"QR-{invoice.number}"
    assert gateway.qr_requests == [(invoice.number, 100000)]
    assert await _count(db_session, Payment) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_request_qr_is_noop_when_present(db_session, catalog, gateway):
    order = await _place(db_session, catalog)
    result = await dispatch_order(db_session, order.id, "staff-1", NOTE, gateway)
    gateway.qr_requests.clear()

    await request_invoice_qr(db_session, result.invoice.id, gateway)

    assert gateway.qr_requests == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_request_qr_propagates_gateway_errors(db_session, catalog, gateway):
    invoice = await _invoice_without_qr(db_session, catalog, gateway)
    gateway.fail_with = GatewayError("RC-1 rejected")

    with pytest.raises(GatewayError):
        await request_invoice_qr(db_session, invoice.id, gateway)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_request_qr_wraps_transport_errors(db_session, catalog, gateway):
    invoice = await _invoice_without_qr(db_session, catalog, gateway)
    gateway.fail_with = httpx.ConnectError("connection refused")

    with pytest.raises(GatewayError):
        await request_invoice_qr(db_session, invoice.id, gateway)

    assert await _count(db_session, Payment) == 0
