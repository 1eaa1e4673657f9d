"""Billing models: invoices, their line items and payment references, payments.

All amounts here are integer paise.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base, JSONType
from services.commerce_service.models.enums import (
    InvoiceStatus,
    PaymentStatus,
    enum_values,
)
from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship


def derive_invoice_status(amount_paid_paise: int, grand_total_paise: int) -> InvoiceStatus:
    if amount_paid_paise <= 0:
        return InvoiceStatus.UNPAID
    if amount_paid_paise >= grand_total_paise:
        return InvoiceStatus.PAID
    return InvoiceStatus.PARTIALLY_PAID


# ============================================================================
# INVOICE MODELS
# ============================================================================


class Invoice(Base):
    """Invoice derived from exactly one dispatched order."""

    __tablename__ = "invoices"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    number: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id"), unique=True, nullable=False
    )
    buyer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("buyers.id"), nullable=False, index=True
    )
    seller_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("sellers.id", ondelete="SET NULL"), nullable=True
    )

    # Rollups (paise)
    subtotal_paise: Mapped[int] = mapped_column(BigInteger, nullable=False)
    discount_total_paise: Mapped[int] = mapped_column(
        BigInteger, default=0, server_default="0"
    )
    gst_total_paise: Mapped[int] = mapped_column(
        BigInteger, default=0, server_default="0"
    )
    grand_total_paise: Mapped[int] = mapped_column(BigInteger, nullable=False)
    amount_paid_paise: Mapped[int] = mapped_column(
        BigInteger, default=0, server_default="0"
    )
    balance_due_paise: Mapped[int] = mapped_column(BigInteger, nullable=False)

    status: Mapped[InvoiceStatus] = mapped_column(
        SAEnum(InvoiceStatus, values_callable=enum_values, name="invoice_status_enum"),
        default=InvoiceStatus.UNPAID,
        server_default="unpaid",
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Party snapshots taken at dispatch time
    buyer_snapshot: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    seller_snapshot: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    shipping_address: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    # Gateway QR, populated once
    qr_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    qr_payload: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    qr_image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    pdf_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("balance_due_paise >= 0", name="invoice_balance_non_negative"),
        CheckConstraint("amount_paid_paise >= 0", name="invoice_paid_non_negative"),
    )

    # Relationships
    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
    )
    payment_refs = relationship(
        "InvoicePaymentRef",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoicePaymentRef.id",
    )
    order = relationship("Order")

    @property
    def has_qr(self) -> bool:
        return bool(self.qr_id or self.qr_payload)

    def apply_payment(
        self, amount_paise: int, payment_id: uuid.UUID, gateway: str
    ) -> None:
        """
        Credit a captured payment.

        Not idempotent: every call credits again. Callers guard with the
        payment's prior status.
        """
        if amount_paise < 0:
            raise ValueError("payment amount must be non-negative")

        self.amount_paid_paise = (self.amount_paid_paise or 0) + amount_paise
        self.balance_due_paise = max(self.grand_total_paise - self.amount_paid_paise, 0)
        self.status = derive_invoice_status(
            self.amount_paid_paise, self.grand_total_paise
        )
        if self.status == InvoiceStatus.PAID and self.paid_at is None:
            self.paid_at = utc_now()

        self.payment_refs.append(
            InvoicePaymentRef(
                payment_id=payment_id, amount_paise=amount_paise, gateway=gateway
            )
        )

    def __repr__(self):
        return f"<Invoice {self.number} status={self.status}>"


class InvoiceItem(Base):
    """Invoice lines, copied from the order at dispatch."""

    __tablename__ = "invoice_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    brand: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    hsn_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price_paise: Mapped[int] = mapped_column(BigInteger, nullable=False)
    line_total_paise: Mapped[int] = mapped_column(BigInteger, nullable=False)
    gst_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=0, server_default="0"
    )
    gst_paise: Mapped[int] = mapped_column(BigInteger, default=0, server_default="0")

    invoice = relationship("Invoice", back_populates="items")

    def __repr__(self):
        return f"<InvoiceItem {self.name} qty={self.quantity}>"


class InvoicePaymentRef(Base):
    """Append-only record of each payment applied to an invoice."""

    __tablename__ = "invoice_payment_refs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    payment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("payments.id"), nullable=False
    )
    amount_paise: Mapped[int] = mapped_column(BigInteger, nullable=False)
    gateway: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    invoice = relationship("Invoice", back_populates="payment_refs")

    def __repr__(self):
        return f"<InvoicePaymentRef {self.payment_id} {self.amount_paise}>"


# ============================================================================
# PAYMENT MODEL
# ============================================================================


class Payment(Base):
    """One gateway transaction attempt, deduplicated by idempotency key."""

    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    idempotency_key: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )

    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("invoices.id"), nullable=False, index=True
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id"), nullable=False
    )
    buyer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("buyers.id"), nullable=False
    )

    gateway: Mapped[str] = mapped_column(String(32), nullable=False)
    amount_paise: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[PaymentStatus] = mapped_column(
        SAEnum(PaymentStatus, values_callable=enum_values, name="payment_status_enum"),
        default=PaymentStatus.CREATED,
        server_default="created",
    )

    gateway_order_id: Mapped[Optional[str]] = mapped_column(
        String(128), nullable=True, index=True
    )
    gateway_txn_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    verified: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false"
    )
    raw_payload: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    invoice = relationship("Invoice")

    def __repr__(self):
        return f"<Payment {self.idempotency_key} status={self.status}>"
