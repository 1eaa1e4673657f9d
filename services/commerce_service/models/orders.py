"""Order models: orders, line items, audit trail."""

import random
import string
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import local_now, utc_now
from libs.db.base import Base, JSONType
from services.commerce_service.models.enums import (
    OrderAction,
    OrderPaymentStatus,
    OrderStatus,
    enum_values,
)
from sqlalchemy import CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

# ============================================================================
# ORDER MODELS
# ============================================================================


class Order(Base):
    """Orders. Amounts in INR."""

    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_number: Mapped[Optional[str]] = mapped_column(
        String(32), unique=True, nullable=True, index=True
    )

    buyer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("buyers.id"), nullable=False, index=True
    )
    seller_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("sellers.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # Pricing (in INR)
    total_amount_inr: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_amount_inr: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=0, server_default="0"
    )
    gst_amount_inr: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=0, server_default="0"
    )
    final_amount_inr: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    brand_amounts: Mapped[Optional[dict]] = mapped_column(
        JSONType, nullable=True
    )  # {"Acme": "1500.00", ...}

    # Address copied from the buyer's shop at order time
    shipping_address: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(OrderStatus, values_callable=enum_values, name="order_status_enum"),
        default=OrderStatus.CONFIRMED,
        server_default="confirmed",
    )
    payment_status: Mapped[OrderPaymentStatus] = mapped_column(
        SAEnum(
            OrderPaymentStatus,
            values_callable=enum_values,
            name="order_payment_status_enum",
        ),
        default=OrderPaymentStatus.UNPAID,
        server_default="unpaid",
    )

    # {"courier": "...", "awb": "...", "note": "...", "at": "...", "by": "..."}
    dispatch_info: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    invoice_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        Index("ix_orders_buyer_id_created_at", "buyer_id", "created_at"),
    )

    # Relationships
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )
    logs = relationship(
        "OrderLog",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLog.id",
    )
    buyer = relationship("Buyer")
    seller = relationship("Seller")

    @staticmethod
    def generate_order_number() -> str:
        """Generate a unique order number like ORD-20260104-A1B2C."""
        date_part = local_now().strftime("%Y%m%d")
        random_part = "".join(
            random.choices(string.ascii_uppercase + string.digits, k=5)
        )
        return f"ORD-{date_part}-{random_part}"

    def __repr__(self):
        return f"<Order {self.order_number or self.id} status={self.status}>"


class OrderItem(Base):
    """Order line items (snapshot at order time)."""

    __tablename__ = "order_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    # Null for ad-hoc lines with no catalog backing
    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="SET NULL"), nullable=True
    )

    # Snapshot at order time (products may change)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    brand: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    hsn_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    gst_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=0, server_default="0"
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price_inr: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    line_total_inr: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="order_item_positive_quantity"),
        CheckConstraint("unit_price_inr >= 0", name="order_item_price_non_negative"),
    )

    order = relationship("Order", back_populates="items")

    def __repr__(self):
        return f"<OrderItem {self.name} qty={self.quantity}>"


class OrderLog(Base):
    """Append-only audit trail for an order."""

    __tablename__ = "order_logs"

    # Integer key keeps insertion order stable
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    action: Mapped[OrderAction] = mapped_column(
        SAEnum(OrderAction, values_callable=enum_values, name="order_action_enum"),
        nullable=False,
    )
    actor_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    order = relationship("Order", back_populates="logs")

    def __repr__(self):
        return f"<OrderLog {self.action} order={self.order_id}>"
