"""Gateway webhooks (no auth; verified by checksum)."""

from fastapi import APIRouter, Depends, Request
from libs.db.session import get_async_db
from services.commerce_service.paytm_client import PaytmClient, get_gateway_client
from services.commerce_service.schemas import WebhookAck
from services.commerce_service.services.reconciler import (
    handle_gateway_event,
    parse_webhook_body,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/paytm", response_model=WebhookAck)
async def paytm_webhook(
    request: Request,
    db: AsyncSession = Depends(get_async_db),
    gateway: PaytmClient = Depends(get_gateway_client),
):
    """
    Paytm payment notification, form-encoded or JSON.

    Non-2xx responses make Paytm redeliver; reconciliation is idempotent per
    transaction so redelivery is safe.
    """
    raw = await request.body()
    payload = parse_webhook_body(raw, request.headers.get("content-type"))
    await handle_gateway_event(db, payload, gateway)
    return WebhookAck(ok=True)
