"""Orders router: placement, listing, status changes and dispatch."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from libs.auth.dependencies import (
    BACK_OFFICE_ROLES,
    DISPATCH_ROLES,
    get_current_user,
    require_roles,
)
from libs.auth.models import AuthUser, Role
from libs.db.session import get_async_db
from services.commerce_service.models import OrderStatus
from services.commerce_service.paytm_client import PaytmClient, get_gateway_client
from services.commerce_service.schemas import (
    DispatchRequest,
    DispatchResponse,
    InvoiceResponse,
    OrderCreate,
    OrderResponse,
    OrderStatusUpdate,
)
from services.commerce_service.services.catalog import get_buyer_for_user
from services.commerce_service.services.dispatch import DispatchNote, dispatch_order
from services.commerce_service.services.order_assembler import (
    ExplicitTotals,
    place_order,
)
from services.commerce_service.services.orders import (
    get_order_for_user,
    list_orders,
    update_order_status,
)
from services.commerce_service.storage import InvoiceStorage, get_invoice_storage
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/orders", tags=["orders"])

PLACE_ORDER_ROLES = (Role.BUYER, *BACK_OFFICE_ROLES)
STATUS_ROLES = (Role.BUYER, *DISPATCH_ROLES)


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: OrderCreate,
    current_user: AuthUser = Depends(require_roles(*PLACE_ORDER_ROLES)),
    db: AsyncSession = Depends(get_async_db),
):
    """Place an order. Buyers always order for their own profile."""
    buyer_id = payload.buyer_id
    if current_user.role == Role.BUYER:
        buyer_id = (await get_buyer_for_user(db, current_user.user_id)).id

    return await place_order(
        db,
        buyer_id,
        payload.lines,
        shipping_override=payload.shipping_address,
        explicit_totals=ExplicitTotals(
            total_amount=payload.total_amount_inr,
            discount_amount=payload.discount_amount_inr,
            gst_amount=payload.gst_amount_inr,
            final_amount=payload.final_amount_inr,
        ),
        seller_id=payload.seller_id,
        actor_id=current_user.user_id,
    )


@router.get("", response_model=list[OrderResponse])
async def get_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Orders visible to the caller, newest first."""
    return await list_orders(
        db, current_user, status=status_filter, limit=limit, offset=offset
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await get_order_for_user(db, order_id, current_user)


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def change_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    current_user: AuthUser = Depends(require_roles(*STATUS_ROLES)),
    db: AsyncSession = Depends(get_async_db),
):
    return await update_order_status(
        db, order_id, payload.status, current_user, note=payload.note
    )


@router.post("/{order_id}/dispatch", response_model=DispatchResponse)
async def dispatch(
    order_id: uuid.UUID,
    payload: DispatchRequest,
    current_user: AuthUser = Depends(require_roles(*DISPATCH_ROLES)),
    db: AsyncSession = Depends(get_async_db),
    gateway: PaytmClient = Depends(get_gateway_client),
    storage: InvoiceStorage = Depends(get_invoice_storage),
):
    """Mark a confirmed order dispatched and issue its invoice."""
    result = await dispatch_order(
        db,
        order_id,
        current_user.user_id,
        DispatchNote(courier=payload.courier, awb=payload.awb, note=payload.note),
        gateway,
        storage,
    )
    return DispatchResponse(
        order=OrderResponse.model_validate(result.order),
        invoice=InvoiceResponse.model_validate(result.invoice),
    )
