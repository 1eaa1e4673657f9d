"""Catalog and party models: products, buyers, sellers."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base, JSONType
from services.commerce_service.models.enums import GstType, enum_values
from sqlalchemy import Boolean, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

# ============================================================================
# PARTY MODELS
# ============================================================================


class Seller(Base):
    """Sellers (brands supplying the catalog)."""

    __tablename__ = "sellers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    auth_id: Mapped[Optional[str]] = mapped_column(
        String(255), unique=True, index=True, nullable=True
    )
    brand_name: Mapped[str] = mapped_column(String(255), nullable=False)
    gst_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    products = relationship("Product", back_populates="seller")

    def snapshot(self) -> dict:
        return {
            "id": str(self.id),
            "brand_name": self.brand_name,
            "gst_number": self.gst_number,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
        }

    def __repr__(self):
        return f"<Seller {self.brand_name}>"


class Buyer(Base):
    """Buyers (retail shops placing wholesale orders)."""

    __tablename__ = "buyers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    auth_id: Mapped[Optional[str]] = mapped_column(
        String(255), unique=True, index=True, nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    shop_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # {"line": "...", "city": "...", "state": "...", "postal_code": "...", "country": "India"}
    shop_address: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    def snapshot(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "shop_name": self.shop_name,
            "shop_address": dict(self.shop_address or {}),
        }

    def __repr__(self):
        return f"<Buyer {self.name}>"


# ============================================================================
# PRODUCT MODEL
# ============================================================================


class Product(Base):
    """Catalog products. Prices in INR."""

    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    seller_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("sellers.id", ondelete="SET NULL"), nullable=True, index=True
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    brand: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    hsn_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Tax
    gst_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=0, server_default="0"
    )
    gst_type: Mapped[GstType] = mapped_column(
        SAEnum(GstType, values_callable=enum_values, name="gst_type_enum"),
        default=GstType.EXCLUSIVE,
        server_default="exclusive",
    )

    # Pricing inputs
    purchase_price_inr: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    margin_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=0, server_default="0"
    )
    discount_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=0, server_default="0"
    )
    discount_amount_inr: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=0, server_default="0"
    )

    # Derived prices
    mrp_inr: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    final_price_inr: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2), nullable=True
    )

    stock: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    seller = relationship("Seller", back_populates="products")

    @property
    def effective_price_inr(self) -> Decimal:
        """First non-zero of final price, list price and purchase price."""
        for price in (self.final_price_inr, self.mrp_inr, self.purchase_price_inr):
            if price:
                return price
        return Decimal("0")

    def __repr__(self):
        return f"<Product {self.name}>"
