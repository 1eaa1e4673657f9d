"""
PDF generation utilities using ReportLab.
"""

import io
from typing import List, Optional
from xml.sax.saxutils import escape

from reportlab.graphics.barcode.qr import QrCodeWidget
from reportlab.graphics.shapes import Drawing
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import (
    Image,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

LINE_HEADERS = ["#", "Item", "HSN", "Qty", "Rate", "GST %", "GST", "Amount"]


def _qr_drawing(payload: str, size: float = 1.4 * inch) -> Drawing:
    widget = QrCodeWidget(payload)
    x1, y1, x2, y2 = widget.getBounds()
    width, height = x2 - x1, y2 - y1
    drawing = Drawing(size, size, transform=[size / width, 0, 0, size / height, 0, 0])
    drawing.add(widget)
    return drawing


def _address_lines(address: Optional[dict]) -> List[str]:
    if not address:
        return []
    city_line = ", ".join(
        part
        for part in (address.get("city"), address.get("state"), address.get("postal_code"))
        if part
    )
    return [
        line
        for line in (address.get("line"), city_line, address.get("country"))
        if line
    ]


def _paid_watermark(canvas, doc) -> None:
    canvas.saveState()
    canvas.setFont("Helvetica-Bold", 96)
    canvas.setFillColor(colors.HexColor("#16a34a"), alpha=0.15)
    canvas.translate(A4[0] / 2, A4[1] / 2)
    canvas.rotate(35)
    canvas.drawCentredString(0, 0, "PAID")
    canvas.restoreState()


def _no_decoration(canvas, doc) -> None:
    pass


def generate_invoice_pdf(
    header: dict,  # {"invoice_number", "order_number", "order_id", "date"}
    line_rows: List[dict],  # [{"name", "hsn_code", "quantity", "rate", "gst_percent", "gst", "amount"}]
    buyer: dict,
    seller: Optional[dict] = None,
    options: Optional[dict] = None,
) -> bytes:
    """
    Render a tax invoice.

    ``options`` may carry:
      - ``company``: {"name", "gst_number"}
      - ``shipping``: address dict
      - ``charges``: list of (label, display amount) rows, last one is the total
      - ``payment``: {"status", "qr_payload", "qr_image", "amount_due"}

    Amounts arrive pre-formatted; this function does no arithmetic.
    Returns PDF as bytes.
    """
    options = options or {}
    company = options.get("company") or {}
    payment = options.get("payment") or {}
    charges = options.get("charges") or []

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=0.6 * inch,
        leftMargin=0.6 * inch,
        topMargin=0.6 * inch,
        bottomMargin=0.6 * inch,
        title=header.get("invoice_number", "Invoice"),
    )

    styles = getSampleStyleSheet()
    elements = []

    title_style = ParagraphStyle(
        "InvoiceTitle",
        parent=styles["Heading1"],
        fontSize=20,
        textColor=colors.HexColor("#1e293b"),
        spaceAfter=6,
    )
    small_style = ParagraphStyle("Small", parent=styles["Normal"], fontSize=9)
    heading_style = ParagraphStyle(
        "PartyHeading",
        parent=styles["Heading4"],
        textColor=colors.HexColor("#64748b"),
        spaceAfter=2,
    )

    # Header
    elements.append(Paragraph(escape(company.get("name") or "Tax Invoice"), title_style))
    if company.get("gst_number"):
        elements.append(Paragraph(f"GSTIN: {company['gst_number']}", small_style))
    elements.append(Spacer(1, 10))

    meta_data = [
        ["Invoice No:", header.get("invoice_number", "")],
        ["Order No:", header.get("order_number") or header.get("order_id", "")],
        ["Date:", header.get("date", "")],
    ]
    meta_table = Table(meta_data, colWidths=[1.2 * inch, 3 * inch])
    meta_table.setStyle(
        TableStyle(
            [
                ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 10),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
            ]
        )
    )
    elements.append(meta_table)
    elements.append(Spacer(1, 12))

    # Parties
    def party_block(title: str, name: Optional[str], lines: List[str]) -> list:
        block = [Paragraph(title, heading_style)]
        if name:
            block.append(Paragraph(f"<b>{escape(name)}</b>", small_style))
        block.extend(Paragraph(escape(line), small_style) for line in lines)
        return block

    buyer_lines = []
    if buyer.get("shop_name"):
        buyer_lines.append(buyer["shop_name"])
    buyer_lines.extend(_address_lines(buyer.get("shop_address")))
    if buyer.get("phone"):
        buyer_lines.append(f"Phone: {buyer['phone']}")

    seller = seller or {}
    seller_lines = _address_lines(seller.get("address"))
    if seller.get("gst_number"):
        seller_lines.append(f"GSTIN: {seller['gst_number']}")

    parties = [
        party_block("Bill To", buyer.get("name"), buyer_lines),
        party_block("Ship To", None, _address_lines(options.get("shipping"))),
        party_block("Sold By", seller.get("brand_name"), seller_lines),
    ]
    party_table = Table([parties], colWidths=[2.4 * inch] * 3)
    party_table.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
    elements.append(party_table)
    elements.append(Spacer(1, 16))

    # Lines
    line_data = [LINE_HEADERS]
    for index, row in enumerate(line_rows, start=1):
        line_data.append(
            [
                str(index),
                Paragraph(escape(row.get("name") or ""), small_style),
                row.get("hsn_code") or "",
                str(row.get("quantity", "")),
                row.get("rate", ""),
                row.get("gst_percent", ""),
                row.get("gst", ""),
                row.get("amount", ""),
            ]
        )
    lines_table = Table(
        line_data,
        colWidths=[
            0.3 * inch,
            2.4 * inch,
            0.7 * inch,
            0.5 * inch,
            0.9 * inch,
            0.6 * inch,
            0.8 * inch,
            1.0 * inch,
        ],
        repeatRows=1,
    )
    lines_table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#1e293b")),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("ALIGN", (3, 1), (-1, -1), "RIGHT"),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#e2e8f0")),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ]
        )
    )
    elements.append(lines_table)
    elements.append(Spacer(1, 12))

    # Charges + payment
    charges_table = Table(
        [[label, value] for label, value in charges],
        colWidths=[1.6 * inch, 1.3 * inch],
    )
    charges_style = [
        ("FONTSIZE", (0, 0), (-1, -1), 10),
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
        ("LINEABOVE", (0, -1), (-1, -1), 0.8, colors.HexColor("#1e293b")),
    ]
    if charges:
        charges_style.append(("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"))
    charges_table.setStyle(TableStyle(charges_style))

    payment_cell: list = []
    if payment.get("qr_payload"):
        payment_cell.append(Paragraph("Scan to pay (UPI)", heading_style))
        payment_cell.append(_qr_drawing(payment["qr_payload"]))
    elif payment.get("qr_image"):
        payment_cell.append(Paragraph("Scan to pay (UPI)", heading_style))
        payment_cell.append(
            Image(io.BytesIO(payment["qr_image"]), width=1.4 * inch, height=1.4 * inch)
        )
    if payment.get("amount_due"):
        payment_cell.append(Paragraph(f"Amount due: {payment['amount_due']}", small_style))

    summary = Table([[payment_cell, charges_table]], colWidths=[4.2 * inch, 3.0 * inch])
    summary.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
    elements.append(summary)

    elements.append(Spacer(1, 24))
    elements.append(
        Paragraph("This is a computer generated invoice.", styles["Italic"])
    )

    decorate = _paid_watermark if payment.get("status") == "paid" else _no_decoration
    doc.build(elements, onFirstPage=decorate, onLaterPages=decorate)

    return buffer.getvalue()
