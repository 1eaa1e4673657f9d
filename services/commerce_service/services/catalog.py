"""Catalog and party maintenance."""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from libs.common.currency import quantize_rupees, to_decimal
from libs.common.errors import NotFoundError
from libs.common.logging import get_logger
from libs.db.transaction import atomic
from services.commerce_service.models import Buyer, GstType, Product, Seller
from services.commerce_service.schemas import (
    Address,
    BuyerCreate,
    ProductCreate,
    SellerCreate,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass
class PriceBreakdown:
    mrp: Decimal
    discount: Decimal
    price_after_discount: Decimal
    gst: Decimal
    final_price: Decimal


def derive_prices(
    purchase_price,
    margin_percent=0,
    discount_percent=0,
    discount_amount=0,
    gst_percent=0,
    gst_type: GstType = GstType.EXCLUSIVE,
) -> PriceBreakdown:
    """
    List and sale price from purchase cost.

    The larger of the flat and percentage discounts applies. Inclusive GST is
    carved out of the discounted price; exclusive GST is added on top.
    """
    base = to_decimal(purchase_price) * (1 + to_decimal(margin_percent) / 100)
    discount = max(to_decimal(discount_amount), base * to_decimal(discount_percent) / 100)
    after = max(base - discount, Decimal("0"))

    rate = to_decimal(gst_percent) / 100
    if gst_type == GstType.INCLUSIVE:
        gst = after - after / (1 + rate)
        final = after
    else:
        gst = after * rate
        final = after + gst

    return PriceBreakdown(
        mrp=quantize_rupees(base),
        discount=quantize_rupees(discount),
        price_after_discount=quantize_rupees(after),
        gst=quantize_rupees(gst),
        final_price=quantize_rupees(final),
    )


# ============================================================================
# PRODUCTS
# ============================================================================


async def create_product(db: AsyncSession, data: ProductCreate) -> Product:
    if data.seller_id is not None and await db.get(Seller, data.seller_id) is None:
        raise NotFoundError(f"Seller {data.seller_id} not found")

    prices = derive_prices(
        data.purchase_price_inr,
        margin_percent=data.margin_percent,
        discount_percent=data.discount_percent,
        discount_amount=data.discount_amount_inr,
        gst_percent=data.gst_percent,
        gst_type=data.gst_type,
    )
    product = Product(
        **data.model_dump(),
        mrp_inr=prices.mrp,
        final_price_inr=prices.final_price,
    )
    async with atomic(db):
        db.add(product)
    logger.info("Created product %s at %s", product.name, prices.final_price)
    return product


async def list_products(
    db: AsyncSession,
    *,
    seller_id: Optional[uuid.UUID] = None,
    brand: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Product]:
    query = select(Product).where(Product.is_active.is_(True))
    if seller_id:
        query = query.where(Product.seller_id == seller_id)
    if brand:
        query = query.where(Product.brand == brand)
    query = query.order_by(Product.name).limit(limit).offset(offset)
    return list((await db.execute(query)).scalars().all())


async def get_product(db: AsyncSession, product_id: uuid.UUID) -> Product:
    product = await db.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


# ============================================================================
# PARTIES
# ============================================================================


async def create_buyer(db: AsyncSession, data: BuyerCreate) -> Buyer:
    buyer = Buyer(**data.model_dump(exclude={"shop_address"}))
    if data.shop_address:
        buyer.shop_address = data.shop_address.model_dump()
    async with atomic(db):
        db.add(buyer)
    return buyer


async def update_buyer_address(
    db: AsyncSession, buyer_id: uuid.UUID, address: Address
) -> Buyer:
    async with atomic(db):
        buyer = await db.get(Buyer, buyer_id, with_for_update=True)
        if buyer is None:
            raise NotFoundError(f"Buyer {buyer_id} not found")
        buyer.shop_address = address.model_dump()
    return buyer


async def get_buyer_for_user(db: AsyncSession, auth_id: str) -> Buyer:
    result = await db.execute(select(Buyer).where(Buyer.auth_id == auth_id))
    buyer = result.scalar_one_or_none()
    if buyer is None:
        raise NotFoundError("Buyer profile not found")
    return buyer


async def get_seller_for_user(db: AsyncSession, auth_id: str) -> Seller:
    result = await db.execute(select(Seller).where(Seller.auth_id == auth_id))
    seller = result.scalar_one_or_none()
    if seller is None:
        raise NotFoundError("Seller profile not found")
    return seller


async def create_seller(db: AsyncSession, data: SellerCreate) -> Seller:
    seller = Seller(**data.model_dump(exclude={"address"}))
    if data.address:
        seller.address = data.address.model_dump()
    async with atomic(db):
        db.add(seller)
    return seller
