from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

import pytest
import pytest_asyncio
from libs.auth.dependencies import create_access_token
from libs.auth.models import Role
from services.commerce_service.models import Buyer, Product, Seller
from services.commerce_service.paytm_client import PaytmClient, QrCode
from services.commerce_service.storage import InvoiceStorage

from tests.factories import BuyerFactory, ProductFactory, SellerFactory

MERCHANT_KEY = "TESTMERCHANTKEY1"


class FakePaytm(PaytmClient):
    """
    Paytm double: real checksum handling, canned QR responses.

    Set ``fail_with`` to an exception instance to make ``create_qr`` raise it.
    """

    def __init__(self):
        super().__init__(
            merchant_id="TESTMID00000000000000",
            merchant_key=MERCHANT_KEY,
            base_url="https://paytm.test",
        )
        self.qr_requests: list[tuple[str, int]] = []
        self.fail_with: Optional[Exception] = None

    async def create_qr(self, order_reference: str, amount_paise: int) -> QrCode:
        self.qr_requests.append((order_reference, amount_paise))
        if self.fail_with is not None:
            raise self.fail_with
        return QrCode(
            qr_id=f"QR-{order_reference}",
            qr_payload=f"upi://pay?pa=merchant@paytm&tr={order_reference}&am={amount_paise / 100:.2f}",
            qr_image_b64=None,
        )

    def signed(self, **fields) -> dict:
        """Return ``fields`` plus a valid CHECKSUMHASH."""
        payload = dict(fields)
        payload["CHECKSUMHASH"] = self.sign_payload(payload)
        return payload


@pytest.fixture
def gateway() -> FakePaytm:
    return FakePaytm()


@pytest.fixture
def storage(tmp_path) -> InvoiceStorage:
    return InvoiceStorage(tmp_path / "invoices", "http://test/static/invoices")


@pytest.fixture
def auth_headers() -> Callable[..., dict]:
    """Build bearer headers carrying a real signed token."""

    def _headers(user_id: str, role: Role = Role.BUYER) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}

    return _headers


# ---------------------------------------------------------------------------
# Seeded catalog
# ---------------------------------------------------------------------------


@dataclass
class Catalog:
    seller: Seller
    buyer: Buyer
    product_x: Product
    product_y: Product


@pytest_asyncio.fixture
async def catalog(db_session) -> Catalog:
    """One seller, one buyer and two products priced 500 and 1500."""
    seller = SellerFactory.create(auth_id="seller-1")
    buyer = BuyerFactory.create(auth_id="buyer-1")
    product_x = ProductFactory.create(
        seller_id=seller.id, name="Basmati Rice 5kg", brand="Acme", price="500.00"
    )
    product_y = ProductFactory.create(
        seller_id=seller.id,
        name="Sunflower Oil 15L",
        brand="Zenith",
        hsn_code="1512",
        price="1500.00",
        gst_percent=Decimal("5"),
    )
    db_session.add_all([seller, buyer, product_x, product_y])
    await db_session.commit()
    return Catalog(seller=seller, buyer=buyer, product_x=product_x, product_y=product_y)
