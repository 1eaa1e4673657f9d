"""
Model factories for creating valid test data.

Every factory produces a valid, insertable SQLAlchemy model instance.
Override any field via kwargs.

Usage:
    buyer = BuyerFactory.create(name="Corner Store")
    db_session.add(buyer)
    await db_session.commit()
"""

import uuid
from decimal import Decimal

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


def _auth_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def _address(**overrides) -> dict:
    address = {
        "line": "12 Market Road",
        "city": "Pune",
        "state": "Maharashtra",
        "postal_code": "411001",
        "country": "India",
    }
    address.update(overrides)
    return address


# ---------------------------------------------------------------------------
# Parties
# ---------------------------------------------------------------------------


class SellerFactory:
    @staticmethod
    def create(**overrides):
        from services.commerce_service.models import Seller

        defaults = {
            "id": _uuid(),
            "auth_id": _auth_id("seller"),
            "brand_name": "Acme Traders",
            "gst_number": "27AAAAA0000A1Z5",
            "phone": "+919800000001",
            "email": "sales@acme.test",
            "address": _address(line="1 Industrial Estate"),
        }
        defaults.update(overrides)
        return Seller(**defaults)


class BuyerFactory:
    @staticmethod
    def create(**overrides):
        from services.commerce_service.models import Buyer

        defaults = {
            "id": _uuid(),
            "auth_id": _auth_id("buyer"),
            "name": "Ravi Kumar",
            "phone": "+919800000002",
            "email": "ravi@shop.test",
            "shop_name": "Kumar General Store",
            "shop_address": _address(),
        }
        defaults.update(overrides)
        return Buyer(**defaults)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class ProductFactory:
    @staticmethod
    def create(seller_id=None, **overrides):
        from services.commerce_service.models import GstType, Product

        price = Decimal(str(overrides.pop("price", "500.00")))
        defaults = {
            "id": _uuid(),
            "seller_id": seller_id,
            "name": "Basmati Rice 5kg",
            "brand": "Acme",
            "hsn_code": "1006",
            "gst_percent": Decimal("0"),
            "gst_type": GstType.EXCLUSIVE,
            "purchase_price_inr": price,
            "margin_percent": Decimal("0"),
            "discount_percent": Decimal("0"),
            "discount_amount_inr": Decimal("0"),
            "mrp_inr": price,
            "final_price_inr": price,
            "stock": 100,
            "is_active": True,
        }
        defaults.update(overrides)
        return Product(**defaults)
