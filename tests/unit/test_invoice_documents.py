"""Unit tests for invoice PDF rendering and publishing."""

import uuid

import pytest
from libs.common.errors import NotFoundError
from libs.common.pdf import _address_lines, generate_invoice_pdf
from services.commerce_service.models import Order
from services.commerce_service.schemas import OrderLineRequest
from services.commerce_service.services import invoice_documents
from services.commerce_service.services.dispatch import DispatchNote, dispatch_order
from services.commerce_service.services.invoice_documents import (
    build_document_inputs,
    publish_invoice_document,
)
from services.commerce_service.services.order_assembler import place_order


async def _invoice(db, catalog, gateway):
    order = await place_order(
        db,
        catalog.buyer.id,
        [
            OrderLineRequest(product_id=str(catalog.product_x.id), quantity=2),
            OrderLineRequest(product_id=str(catalog.product_y.id), quantity=1),
        ],
    )
    result = await dispatch_order(db, order.id, "staff-1", DispatchNote(), gateway)
    return result.invoice, result.order


@pytest.mark.asyncio
@pytest.mark.unit
async def test_document_inputs_shape(db_session, catalog, gateway):
    invoice, order = await _invoice(db_session, catalog, gateway)

    inputs = build_document_inputs(invoice, order)

    assert inputs["header"]["invoice_number"] == invoice.number
    assert inputs["header"]["order_number"] == order.order_number
    assert [row["quantity"] for row in inputs["line_rows"]] == [2, 1]
    assert inputs["line_rows"][0]["amount"] == "Rs. 1,000.00"
    assert inputs["buyer"]["name"] == catalog.buyer.name
    assert ("Grand Total", "Rs. 2,500.00") in inputs["options"]["charges"]
    payment = inputs["options"]["payment"]
    assert payment["status"] == "unpaid"
    assert payment["qr_payload"] == invoice.qr_payload
    assert payment["amount_due"] == "Rs. 2,500.00"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_publish_writes_pdf_and_records_url(db_session, catalog, gateway, storage):
    invoice, order = await _invoice(db_session, catalog, gateway)

    url = await publish_invoice_document(db_session, invoice.id, storage)

    assert url == f"http://test/static/invoices/{invoice.number}.pdf"
    assert (storage.root / f"{invoice.number}.pdf").read_bytes().startswith(b"%PDF")
    refreshed = await db_session.get(Order, order.id, populate_existing=True)
    assert refreshed.invoice_url == url


@pytest.mark.asyncio
@pytest.mark.unit
async def test_publish_retries_then_succeeds(
    db_session, catalog, gateway, storage, monkeypatch
):
    invoice, _ = await _invoice(db_session, catalog, gateway)
    real_render = invoice_documents.render_invoice
    calls = []

    async def _flaky(invoice, order):
        calls.append(invoice.number)
        if len(calls) < 2:
            raise RuntimeError("font cache busy")
        return await real_render(invoice, order)

    monkeypatch.setattr(invoice_documents, "render_invoice", _flaky)

    url = await publish_invoice_document(
        db_session, invoice.id, storage, attempts=3, backoff_seconds=0
    )

    assert url is not None
    assert len(calls) == 2


@pytest.mark.asyncio
@pytest.mark.unit
async def test_publish_gives_up_after_attempts(
    db_session, catalog, gateway, storage, monkeypatch
):
    invoice, _ = await _invoice(db_session, catalog, gateway)
    invoice_id = invoice.id

    async def _fail(invoice, order):
        raise RuntimeError("renderer crashed")

    monkeypatch.setattr(invoice_documents, "render_invoice", _fail)

    assert (
        await publish_invoice_document(
            db_session, invoice_id, storage, attempts=2, backoff_seconds=0
        )
        is None
    )
    with pytest.raises(RuntimeError):
        await publish_invoice_document(
            db_session,
            invoice_id,
            storage,
            attempts=1,
            backoff_seconds=0,
            raise_on_failure=True,
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_publish_unknown_invoice(db_session, storage):
    with pytest.raises(NotFoundError):
        await publish_invoice_document(db_session, uuid.uuid4(), storage, attempts=3)


@pytest.mark.unit
def test_generate_paid_invoice_pdf():
    content = generate_invoice_pdf(
        {"invoice_number": "INV-1", "order_number": "ORD-1", "date": "01 Jan 2026"},
        [
            {
                "name": "Rice",
                "hsn_code": "1006",
                "quantity": 1,
                "rate": "Rs. 10.00",
                "gst_percent": "0",
                "gst": "Rs. 0.00",
                "amount": "Rs. 10.00",
            }
        ],
        {"name": "Ravi", "shop_address": {"line": "12 Market Road", "city": "Pune"}},
        options={
            "charges": [("Grand Total", "Rs. 10.00")],
            "payment": {"status": "paid", "qr_payload": "upi://pay?pa=merchant@paytm"},
        },
    )

    assert content.startswith(b"%PDF")


@pytest.mark.unit
def test_address_lines_skip_blank_parts():
    assert _address_lines(None) == []
    assert _address_lines(
        {"line": "12 Market Road", "city": "Pune", "postal_code": "411001"}
    ) == ["12 Market Road", "Pune, 411001"]
