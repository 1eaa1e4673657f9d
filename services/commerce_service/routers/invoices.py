"""Invoices router: lookups, payment QR and document publishing."""

import uuid

from fastapi import APIRouter, Depends
from libs.auth.dependencies import (
    BACK_OFFICE_ROLES,
    DISPATCH_ROLES,
    get_current_user,
    require_roles,
)
from libs.auth.models import AuthUser, Role
from libs.common.errors import NotFoundError
from libs.db.session import get_async_db
from services.commerce_service.models import Buyer, Invoice, Seller
from services.commerce_service.paytm_client import PaytmClient, get_gateway_client
from services.commerce_service.schemas import DocumentResponse, InvoiceResponse
from services.commerce_service.services.dispatch import request_invoice_qr
from services.commerce_service.services.invoice_documents import (
    publish_invoice_document,
)
from services.commerce_service.services.invoices import (
    get_invoice,
    get_invoice_by_order,
)
from services.commerce_service.storage import InvoiceStorage, get_invoice_storage
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/invoices", tags=["invoices"])


async def _check_visible(db: AsyncSession, invoice: Invoice, user: AuthUser) -> Invoice:
    """Same visibility as orders: buyers and sellers only see their own."""
    if user.is_back_office:
        return invoice
    if user.role == Role.SELLER:
        owner = await db.scalar(select(Seller.id).where(Seller.auth_id == user.user_id))
        visible = owner is not None and invoice.seller_id == owner
    else:
        owner = await db.scalar(select(Buyer.id).where(Buyer.auth_id == user.user_id))
        visible = owner is not None and invoice.buyer_id == owner
    if not visible:
        raise NotFoundError(f"Invoice {invoice.id} not found")
    return invoice


@router.get("/by-order/{order_id}", response_model=InvoiceResponse)
async def get_order_invoice(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    invoice = await get_invoice_by_order(db, order_id)
    return await _check_visible(db, invoice, current_user)


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice_detail(
    invoice_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    invoice = await get_invoice(db, invoice_id)
    return await _check_visible(db, invoice, current_user)


@router.post("/{invoice_id}/paytm-qr", response_model=InvoiceResponse)
async def create_paytm_qr(
    invoice_id: uuid.UUID,
    current_user: AuthUser = Depends(require_roles(Role.BUYER, *DISPATCH_ROLES)),
    db: AsyncSession = Depends(get_async_db),
    gateway: PaytmClient = Depends(get_gateway_client),
):
    """Issue (or return the existing) payment QR for an unpaid invoice."""
    await _check_visible(db, await get_invoice(db, invoice_id), current_user)
    return await request_invoice_qr(db, invoice_id, gateway)


@router.post("/{invoice_id}/document", response_model=DocumentResponse)
async def publish_document(
    invoice_id: uuid.UUID,
    current_user: AuthUser = Depends(require_roles(*BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_async_db),
    storage: InvoiceStorage = Depends(get_invoice_storage),
):
    """Re-render and store the invoice PDF."""
    url = await publish_invoice_document(
        db, invoice_id, storage, raise_on_failure=True
    )
    return DocumentResponse(invoice_id=invoice_id, pdf_url=url)
