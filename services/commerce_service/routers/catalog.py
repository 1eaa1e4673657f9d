"""Catalog router: products, buyers and sellers."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from libs.auth.dependencies import (
    ADMIN_ROLES,
    BACK_OFFICE_ROLES,
    get_current_user,
    require_roles,
)
from libs.auth.models import AuthUser, Role
from libs.db.session import get_async_db
from services.commerce_service.schemas import (
    Address,
    BuyerCreate,
    BuyerResponse,
    ProductCreate,
    ProductResponse,
    SellerCreate,
    SellerResponse,
)
from services.commerce_service.services.catalog import (
    create_buyer,
    create_product,
    create_seller,
    get_product,
    get_seller_for_user,
    list_products,
    update_buyer_address,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["catalog"])


# ============================================================================
# PRODUCTS
# ============================================================================


@router.post(
    "/admin/products",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_product(
    payload: ProductCreate,
    current_user: AuthUser = Depends(require_roles(Role.SELLER, *ADMIN_ROLES)),
    db: AsyncSession = Depends(get_async_db),
):
    """Create a product; list and sale prices are derived from purchase cost."""
    if current_user.role == Role.SELLER:
        seller = await get_seller_for_user(db, current_user.user_id)
        payload = payload.model_copy(update={"seller_id": seller.id})
    return await create_product(db, payload)


@router.get("/products", response_model=list[ProductResponse])
async def browse_products(
    seller_id: Optional[uuid.UUID] = None,
    brand: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await list_products(
        db, seller_id=seller_id, brand=brand, limit=limit, offset=offset
    )


@router.get("/products/{product_id}", response_model=ProductResponse)
async def product_detail(
    product_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await get_product(db, product_id)


# ============================================================================
# PARTIES
# ============================================================================


@router.post(
    "/admin/buyers", response_model=BuyerResponse, status_code=status.HTTP_201_CREATED
)
async def add_buyer(
    payload: BuyerCreate,
    current_user: AuthUser = Depends(require_roles(*BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_async_db),
):
    return await create_buyer(db, payload)


@router.put("/buyers/{buyer_id}/address", response_model=BuyerResponse)
async def set_buyer_address(
    buyer_id: uuid.UUID,
    payload: Address,
    current_user: AuthUser = Depends(require_roles(*BACK_OFFICE_ROLES)),
    db: AsyncSession = Depends(get_async_db),
):
    return await update_buyer_address(db, buyer_id, payload)


@router.post(
    "/admin/sellers", response_model=SellerResponse, status_code=status.HTTP_201_CREATED
)
async def add_seller(
    payload: SellerCreate,
    current_user: AuthUser = Depends(require_roles(*ADMIN_ROLES)),
    db: AsyncSession = Depends(get_async_db),
):
    return await create_seller(db, payload)
