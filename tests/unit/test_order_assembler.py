"""Unit tests for order placement.

Tests call place_order and its helpers directly with the db_session fixture.
"""

import re
import uuid
from decimal import Decimal

import pytest
from libs.common.errors import InvalidInputError, NotFoundError
from services.commerce_service.models import (
    Order,
    OrderAction,
    OrderPaymentStatus,
    OrderStatus,
)
from services.commerce_service.schemas import Address, OrderLineRequest
from services.commerce_service.services.order_assembler import (
    AssembledLine,
    ExplicitTotals,
    _is_order_number_collision,
    brand_rollup,
    coerce_quantity,
    compute_totals,
    parse_product_ref,
    partition_lines,
    place_order,
)
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError


def _line(product, quantity=1):
    return OrderLineRequest(product_id=str(product.id), quantity=quantity)


async def _order_count(db) -> int:
    return await db.scalar(select(func.count()).select_from(Order))


# ---------------------------------------------------------------------------
# place_order
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_place_order_prices_catalog_lines(db_session, catalog):
    """Two catalog lines (2 x 500, 1 x 1500) give a 2500 confirmed order."""
    order = await place_order(
        db_session,
        catalog.buyer.id,
        [_line(catalog.product_x, 2), _line(catalog.product_y, 1)],
        actor_id=catalog.buyer.auth_id,
    )

    assert order.total_amount_inr == Decimal("2500.00")
    assert order.final_amount_inr == Decimal("2500.00")
    assert order.status == OrderStatus.CONFIRMED
    assert order.payment_status == OrderPaymentStatus.UNPAID
    assert sorted(item.line_total_inr for item in order.items) == [
        Decimal("1000.00"),
        Decimal("1500.00"),
    ]
    assert [item.position for item in order.items] == [0, 1]
    assert re.fullmatch(r"ORD-\d{8}-[A-Z0-9]{5}", order.order_number)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_place_order_records_context(db_session, catalog):
    """Seller, brand rollup, shipping snapshot and audit entry are captured."""
    order = await place_order(
        db_session,
        catalog.buyer.id,
        [_line(catalog.product_x, 2), _line(catalog.product_y, 1)],
        actor_id="buyer-1",
    )

    assert order.seller_id == catalog.seller.id
    assert order.brand_amounts == {"Acme": "1000.00", "Zenith": "1500.00"}
    assert order.shipping_address == catalog.buyer.shop_address
    assert [log.action for log in order.logs] == [OrderAction.PLACED]
    assert order.logs[0].actor_id == "buyer-1"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_place_order_drops_unresolved_product(db_session, catalog):
    """A stale catalog reference is dropped; the order keeps the valid line."""
    order = await place_order(
        db_session,
        catalog.buyer.id,
        [
            _line(catalog.product_x, 1),
            OrderLineRequest(product_id=str(uuid.uuid4()), quantity=3),
        ],
    )

    assert len(order.items) == 1
    assert order.items[0].product_id == catalog.product_x.id
    assert order.total_amount_inr == Decimal("500.00")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_place_order_with_no_surviving_lines_persists_nothing(
    db_session, catalog
):
    """Only unresolvable references means invalid input and no order row."""
    with pytest.raises(InvalidInputError):
        await place_order(
            db_session,
            catalog.buyer.id,
            [OrderLineRequest(product_id=str(uuid.uuid4()))],
        )

    assert await _order_count(db_session) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_place_order_rejects_empty_request(db_session, catalog):
    with pytest.raises(InvalidInputError):
        await place_order(db_session, catalog.buyer.id, [])

    assert await _order_count(db_session) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_place_order_requires_buyer(db_session, catalog):
    with pytest.raises(InvalidInputError):
        await place_order(db_session, None, [_line(catalog.product_x)])

    with pytest.raises(NotFoundError):
        await place_order(db_session, uuid.uuid4(), [_line(catalog.product_x)])


@pytest.mark.asyncio
@pytest.mark.unit
async def test_place_order_rejects_unknown_seller(db_session, catalog):
    lines = [_line(catalog.product_x)]
    buyer_id = catalog.buyer.id

    with pytest.raises(NotFoundError, match="Seller"):
        await place_order(db_session, buyer_id, lines, seller_id=uuid.uuid4())

    assert await _order_count(db_session) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_place_order_retries_order_number_collision(
    db_session, catalog, monkeypatch
):
    lines = [_line(catalog.product_x)]
    buyer_id = catalog.buyer.id
    first = await place_order(db_session, buyer_id, lines)
    numbers = iter([first.order_number, "ORD-20260101-FRESH"])
    monkeypatch.setattr(
        Order, "generate_order_number", staticmethod(lambda: next(numbers))
    )

    second = await place_order(db_session, buyer_id, lines)

    assert second.order_number == "ORD-20260101-FRESH"
    assert await _order_count(db_session) == 2


@pytest.mark.asyncio
@pytest.mark.unit
async def test_place_order_rejects_unrecognised_line(db_session, catalog):
    """A line that is neither a product reference nor priced is refused."""
    with pytest.raises(InvalidInputError):
        await place_order(
            db_session,
            catalog.buyer.id,
            [_line(catalog.product_x), OrderLineRequest(product_id="not-a-uuid")],
        )

    assert await _order_count(db_session) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_place_order_ad_hoc_line(db_session, catalog):
    """Ad-hoc lines use their own price and do not pin a seller."""
    order = await place_order(
        db_session,
        catalog.buyer.id,
        [OrderLineRequest(name="Loose sugar", price="42.50", quantity="3")],
    )

    item = order.items[0]
    assert item.product_id is None
    assert item.name == "Loose sugar"
    assert item.unit_price_inr == Decimal("42.50")
    assert item.line_total_inr == Decimal("127.50")
    assert order.seller_id is None
    assert order.brand_amounts == {}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_place_order_rejects_negative_ad_hoc_price(db_session, catalog):
    with pytest.raises(InvalidInputError):
        await place_order(
            db_session,
            catalog.buyer.id,
            [OrderLineRequest(name="Refund line", price="-10")],
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_place_order_explicit_totals(db_session, catalog):
    """Caller-supplied discount, GST and final amount override the rollup."""
    order = await place_order(
        db_session,
        catalog.buyer.id,
        [_line(catalog.product_x, 2)],
        explicit_totals=ExplicitTotals(
            discount_amount=Decimal("100"), gst_amount=Decimal("45")
        ),
    )

    assert order.total_amount_inr == Decimal("1000.00")
    assert order.discount_amount_inr == Decimal("100.00")
    assert order.gst_amount_inr == Decimal("45.00")
    assert order.final_amount_inr == Decimal("945.00")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_place_order_merges_shipping_override(db_session, catalog):
    """Only the fields sent in the override replace the buyer's address."""
    order = await place_order(
        db_session,
        catalog.buyer.id,
        [_line(catalog.product_x)],
        shipping_override=Address(city="Mumbai", postal_code="400001"),
    )

    assert order.shipping_address["city"] == "Mumbai"
    assert order.shipping_address["postal_code"] == "400001"
    assert order.shipping_address["line"] == "12 Market Road"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.parametrize(
    "value,expected",
    [(None, 1), ("3", 3), (2, 2), (0, 1), (-4, 1), ("abc", 1), (2.7, 2)],
)
def test_coerce_quantity(value, expected):
    assert coerce_quantity(value) == expected


@pytest.mark.unit
def test_parse_product_ref():
    product_id = uuid.uuid4()
    assert parse_product_ref(str(product_id)) == product_id
    assert parse_product_ref(f"  {product_id} ") == product_id
    assert parse_product_ref("sku-123") is None
    assert parse_product_ref(None) is None


@pytest.mark.unit
def test_partition_lines_splits_by_shape():
    product_id = uuid.uuid4()
    catalog_lines, ad_hoc = partition_lines(
        [
            OrderLineRequest(product_id=str(product_id)),
            OrderLineRequest(name="Custom crate", price=0),
            OrderLineRequest(product_id="bad-ref", price="10"),
        ]
    )

    assert [ref for ref, _ in catalog_lines] == [product_id]
    assert len(ad_hoc) == 2


def _assembled(brand, unit_price, quantity=1):
    return AssembledLine(
        product_id=None,
        name="Line",
        brand=brand,
        hsn_code=None,
        gst_percent=Decimal("0"),
        quantity=quantity,
        unit_price=Decimal(unit_price),
    )


@pytest.mark.unit
def test_brand_rollup_sums_per_brand_and_skips_unbranded():
    lines = [
        _assembled("Acme", "100.00", 2),
        _assembled("Acme", "50.00"),
        _assembled(None, "999.00"),
        _assembled("Zenith", "10.00", 3),
    ]

    assert brand_rollup(lines) == {"Acme": "250.00", "Zenith": "30.00"}


@pytest.mark.unit
def test_compute_totals_final_override_wins():
    totals = compute_totals(
        [_assembled("Acme", "100.00", 2)],
        ExplicitTotals(final_amount=Decimal("150")),
    )

    assert totals["total_amount_inr"] == Decimal("200.00")
    assert totals["final_amount_inr"] == Decimal("150.00")


@pytest.mark.unit
def test_only_order_number_violations_are_collisions():
    collision = IntegrityError(
        "INSERT INTO orders",
        {},
        Exception("UNIQUE constraint failed: orders.order_number"),
    )
    foreign_key = IntegrityError(
        "INSERT INTO orders",
        {},
        Exception(
            'insert or update on table "orders" violates foreign key '
            'constraint "orders_seller_id_fkey"'
        ),
    )

    assert _is_order_number_collision(collision) is True
    assert _is_order_number_collision(foreign_key) is False
