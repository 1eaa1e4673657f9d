"""
Paytm API client for dynamic UPI QR codes and webhook checksum verification.

Provides:
- Creating a dynamic QR for an invoice (``create_qr``)
- Signing request bodies and verifying webhook checksums

Checksums use Paytm's own ``paytmchecksum`` scheme keyed by the merchant key.
Request bodies are signed over the exact JSON text that is sent.
"""

import base64
import json
from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Optional

import httpx
from libs.common.config import get_settings
from libs.common.currency import paise_to_rupees
from libs.common.errors import GatewayError
from libs.common.logging import get_logger
from paytmchecksum import PaytmChecksum

logger = get_logger(__name__)

settings = get_settings()

GATEWAY_NAME = "paytm"
CHECKSUM_KEYS = ("CHECKSUMHASH", "checksumhash", "signature")


@dataclass
class QrCode:
    """Dynamic QR issued for one gateway order reference."""

    qr_id: str
    qr_payload: str
    qr_image_b64: Optional[str]


def _compact_json(value: dict) -> str:
    return json.dumps(value, separators=(",", ":"))


def _signable(payload: Mapping[str, object]) -> dict[str, str]:
    """Payload without its checksum field, values rendered as strings."""
    return {
        key: "" if value is None else str(value)
        for key, value in payload.items()
        if key not in CHECKSUM_KEYS
    }


class PaytmClient:
    """Async client for Paytm QR APIs."""

    def __init__(
        self,
        merchant_id: str = None,
        merchant_key: str = None,
        base_url: str = None,
        timeout: float = None,
        transport: httpx.AsyncBaseTransport = None,
    ):
        self.merchant_id = merchant_id or settings.PAYTM_MID
        self.merchant_key = merchant_key or settings.PAYTM_MERCHANT_KEY
        self.base_url = (base_url or settings.PAYTM_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.PAYTM_TIMEOUT_SECONDS
        self._transport = transport

    # =========================================================================
    # Checksums
    # =========================================================================

    def sign_body(self, body: dict) -> str:
        """Signature for an outbound request body, over its compact JSON text."""
        return PaytmChecksum.generateSignature(_compact_json(body), self.merchant_key)

    def sign_payload(self, payload: Mapping[str, object]) -> str:
        """Checksum for a flat key-value payload (the webhook format)."""
        return PaytmChecksum.generateSignature(_signable(payload), self.merchant_key)

    def verify_signature(self, payload: Mapping[str, object]) -> bool:
        """
        Verify the checksum carried by a flat webhook payload.

        The checksum field itself (any of its spellings) is excluded from the
        signed content. A checksum that cannot be decrypted counts as invalid.
        """
        received = None
        for key in CHECKSUM_KEYS:
            if payload.get(key):
                received = str(payload[key])
                break
        if not received or not self.merchant_key:
            return False
        try:
            return bool(
                PaytmChecksum.verifySignature(
                    _signable(payload), self.merchant_key, received
                )
            )
        except (ValueError, IndexError):
            logger.warning("Undecodable Paytm checksum")
            return False

    # =========================================================================
    # QR
    # =========================================================================

    async def _request(self, endpoint: str, content: str) -> dict:
        url = f"{self.base_url}{endpoint}"
        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport
        ) as client:
            response = await client.post(
                url, content=content, headers={"Content-Type": "application/json"}
            )

        try:
            data = response.json()
        except ValueError:
            raise GatewayError(
                f"Paytm returned a non-JSON response ({response.status_code})"
            )

        if not response.is_success:
            logger.error("Paytm API error: %s - %s", response.status_code, data)
            raise GatewayError(
                f"Paytm request failed with HTTP {response.status_code}",
                details={"status_code": response.status_code},
            )
        return data

    async def create_qr(self, order_reference: str, amount_paise: int) -> QrCode:
        """
        Create a dynamic UPI QR for ``order_reference``.

        Raises:
            GatewayError: non-success result from Paytm
            httpx.HTTPError: transport failure or timeout
        """
        amount: Decimal = paise_to_rupees(amount_paise)
        body = {
            "mid": self.merchant_id,
            "orderId": order_reference,
            "amount": f"{amount:.2f}",
            "businessType": "UPI_QR_CODE",
            "posId": settings.PAYTM_POS_ID,
        }
        payload = {
            "body": body,
            "head": {
                "clientId": settings.PAYTM_CLIENT_ID,
                "version": "v1",
                "signature": self.sign_body(body),
            },
        }

        data = await self._request(
            "/paymentservices/qr/create", _compact_json(payload)
        )

        result_body = data.get("body") or {}
        result_info = result_body.get("resultInfo") or {}
        if result_info.get("resultStatus") != "SUCCESS":
            code = result_info.get("resultCode") or "ERR"
            message = result_info.get("resultMsg") or "QR create failed"
            raise GatewayError(f"{code} {message}", details={"result_code": code})

        return QrCode(
            qr_id=str(result_body.get("qrCodeId") or ""),
            qr_payload=result_body.get("qrData") or "",
            qr_image_b64=result_body.get("image"),
        )


def decode_qr_image(qr_image_b64: Optional[str]) -> Optional[bytes]:
    if not qr_image_b64:
        return None
    try:
        return base64.b64decode(qr_image_b64)
    except ValueError:
        return None


def get_gateway_client() -> PaytmClient:
    """FastAPI dependency; overridden in tests."""
    return PaytmClient()
