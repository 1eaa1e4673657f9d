"""Order placement from mixed catalog and ad-hoc lines.

Catalog lines reference a product by id and are priced from the product's
current effective price. Ad-hoc lines carry their own price. Catalog
references that do not resolve are dropped rather than failing the order.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

from libs.common.currency import quantize_rupees, to_decimal
from libs.common.errors import InvalidInputError, NotFoundError
from libs.common.logging import get_logger
from libs.db.transaction import atomic
from services.commerce_service.models import (
    Buyer,
    Order,
    OrderAction,
    OrderItem,
    OrderLog,
    OrderPaymentStatus,
    OrderStatus,
    Product,
    Seller,
)
from services.commerce_service.schemas import Address, OrderLineRequest
from services.commerce_service.services.orders import load_order
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

ORDER_NUMBER_ATTEMPTS = 3


@dataclass
class ExplicitTotals:
    """Caller overrides for the order rollups (INR). ``None`` means derive."""

    total_amount: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None
    gst_amount: Optional[Decimal] = None
    final_amount: Optional[Decimal] = None


@dataclass
class AssembledLine:
    product_id: Optional[uuid.UUID]
    name: str
    brand: Optional[str]
    hsn_code: Optional[str]
    gst_percent: Decimal
    quantity: int
    unit_price: Decimal
    seller_id: Optional[uuid.UUID] = None

    @property
    def line_total(self) -> Decimal:
        return quantize_rupees(self.unit_price * self.quantity)


def parse_product_ref(value) -> Optional[uuid.UUID]:
    """Return the product id if ``value`` is a syntactically valid reference."""
    if value is None:
        return None
    try:
        return uuid.UUID(str(value).strip())
    except ValueError:
        return None


def coerce_quantity(value) -> int:
    """Positive integer quantity; anything missing or non-positive becomes 1."""
    try:
        quantity = int(to_decimal(value))
    except (TypeError, ValueError):
        return 1
    return quantity if quantity > 0 else 1


def partition_lines(
    lines: Sequence[OrderLineRequest],
) -> tuple[list[tuple[uuid.UUID, OrderLineRequest]], list[OrderLineRequest]]:
    """Split requested lines into catalog and ad-hoc, rejecting unknown shapes."""
    catalog: list[tuple[uuid.UUID, OrderLineRequest]] = []
    ad_hoc: list[OrderLineRequest] = []
    for index, line in enumerate(lines):
        product_id = parse_product_ref(line.product_id)
        if product_id is not None:
            catalog.append((product_id, line))
        elif line.price is not None or line.name:
            ad_hoc.append(line)
        else:
            raise InvalidInputError(
                f"Line {index + 1} needs a valid product_id or an explicit price"
            )
    return catalog, ad_hoc


async def resolve_catalog_lines(
    db: AsyncSession, catalog: list[tuple[uuid.UUID, OrderLineRequest]]
) -> list[AssembledLine]:
    if not catalog:
        return []

    ids = list({product_id for product_id, _ in catalog})
    result = await db.execute(select(Product).where(Product.id.in_(ids)))
    products = {product.id: product for product in result.scalars().all()}

    assembled = []
    for product_id, line in catalog:
        product = products.get(product_id)
        if product is None:
            logger.info("Dropping unresolved product reference %s", product_id)
            continue
        assembled.append(
            AssembledLine(
                product_id=product.id,
                name=product.name,
                brand=product.brand,
                hsn_code=product.hsn_code,
                gst_percent=product.gst_percent or Decimal("0"),
                quantity=coerce_quantity(line.quantity),
                unit_price=quantize_rupees(product.effective_price_inr),
                seller_id=product.seller_id,
            )
        )
    return assembled


def build_ad_hoc_lines(lines: list[OrderLineRequest]) -> list[AssembledLine]:
    assembled = []
    for line in lines:
        try:
            price = quantize_rupees(line.price)
        except ValueError:
            raise InvalidInputError(f"Invalid price {line.price!r}")
        if price < 0:
            raise InvalidInputError("Line price must not be negative")
        assembled.append(
            AssembledLine(
                product_id=None,
                name=line.name or "Custom item",
                brand=line.brand,
                hsn_code=line.hsn_code,
                gst_percent=line.gst_percent or Decimal("0"),
                quantity=coerce_quantity(line.quantity),
                unit_price=price,
            )
        )
    return assembled


def brand_rollup(lines: list[AssembledLine]) -> dict[str, str]:
    """Sum of line totals per brand; lines without a brand are left out."""
    totals: dict[str, Decimal] = {}
    for line in lines:
        if not line.brand:
            continue
        totals[line.brand] = totals.get(line.brand, Decimal("0")) + line.line_total
    return {brand: str(amount) for brand, amount in totals.items()}


def compute_totals(
    lines: list[AssembledLine], explicit: Optional[ExplicitTotals] = None
) -> dict[str, Decimal]:
    explicit = explicit or ExplicitTotals()
    total = sum((line.line_total for line in lines), Decimal("0"))
    if explicit.total_amount is not None:
        total = explicit.total_amount
    discount = quantize_rupees(explicit.discount_amount)
    gst = quantize_rupees(explicit.gst_amount)
    final = total - discount + gst
    if explicit.final_amount is not None:
        if quantize_rupees(explicit.final_amount) != quantize_rupees(final):
            logger.warning(
                "Final amount override %s differs from derived %s",
                explicit.final_amount,
                final,
            )
        final = quantize_rupees(explicit.final_amount)
    return {
        "total_amount_inr": quantize_rupees(total),
        "discount_amount_inr": discount,
        "gst_amount_inr": gst,
        "final_amount_inr": quantize_rupees(final),
    }


def _is_order_number_collision(exc: IntegrityError) -> bool:
    return "order_number" in str(exc.orig)


def _derive_seller(lines: list[AssembledLine]) -> Optional[uuid.UUID]:
    sellers = {line.seller_id for line in lines if line.product_id is not None}
    if len(sellers) == 1:
        return sellers.pop()
    return None


async def place_order(
    db: AsyncSession,
    buyer_id: Optional[uuid.UUID],
    lines: Sequence[OrderLineRequest],
    *,
    shipping_override: Optional[Address] = None,
    explicit_totals: Optional[ExplicitTotals] = None,
    seller_id: Optional[uuid.UUID] = None,
    actor_id: Optional[str] = None,
) -> Order:
    """
    Build, price and persist an order.

    Raises:
        InvalidInputError: no buyer, no lines, malformed line, or no line
            survives catalog resolution
        NotFoundError: buyer or explicit seller does not exist
    """
    if buyer_id is None:
        raise InvalidInputError("buyer_id is required")
    if not lines:
        raise InvalidInputError("At least one line is required")

    catalog, ad_hoc = partition_lines(lines)

    for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
        try:
            async with atomic(db):
                buyer = await db.get(Buyer, buyer_id, with_for_update=True)
                if buyer is None:
                    raise NotFoundError(f"Buyer {buyer_id} not found")
                if seller_id is not None and await db.get(Seller, seller_id) is None:
                    raise NotFoundError(f"Seller {seller_id} not found")

                merged = await resolve_catalog_lines(db, catalog)
                merged.extend(build_ad_hoc_lines(ad_hoc))
                if not merged:
                    raise InvalidInputError("No valid lines in order")

                if shipping_override is not None:
                    buyer.shop_address = {
                        **(buyer.shop_address or {}),
                        **shipping_override.model_dump(exclude_unset=True),
                    }

                order = Order(
                    order_number=Order.generate_order_number(),
                    buyer_id=buyer.id,
                    seller_id=seller_id or _derive_seller(merged),
                    brand_amounts=brand_rollup(merged),
                    shipping_address=dict(buyer.shop_address or {}),
                    status=OrderStatus.CONFIRMED,
                    payment_status=OrderPaymentStatus.UNPAID,
                    **compute_totals(merged, explicit_totals),
                )
                order.items = [
                    OrderItem(
                        position=position,
                        product_id=line.product_id,
                        name=line.name,
                        brand=line.brand,
                        hsn_code=line.hsn_code,
                        gst_percent=line.gst_percent,
                        quantity=line.quantity,
                        unit_price_inr=line.unit_price,
                        line_total_inr=line.line_total,
                    )
                    for position, line in enumerate(merged)
                ]
                order.logs = [
                    OrderLog(action=OrderAction.PLACED, actor_id=actor_id)
                ]
                db.add(order)
            break
        except IntegrityError as exc:
            # Only an order number collision is retried, with a fresh number
            if not _is_order_number_collision(exc):
                raise
            if attempt == ORDER_NUMBER_ATTEMPTS:
                raise
            logger.warning("Order number collision, retrying (%d)", attempt)

    logger.info(
        "Order placed %s",
        order.order_number,
        extra={
            "extra_fields": {
                "order_id": str(order.id),
                "buyer_id": str(buyer_id),
                "lines": len(order.items),
                "final_amount_inr": str(order.final_amount_inr),
            }
        },
    )
    return await load_order(db, order.id)

