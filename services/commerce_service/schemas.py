"""Pydantic schemas for commerce service."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from services.commerce_service.models import (
    GstType,
    InvoiceStatus,
    NotificationType,
    OrderAction,
    OrderPaymentStatus,
    OrderStatus,
)

# ============================================================================
# PARTY SCHEMAS
# ============================================================================


class Address(BaseModel):
    line: Optional[str] = Field(None, max_length=500)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    country: str = "India"


class BuyerCreate(BaseModel):
    auth_id: Optional[str] = None
    name: str = Field(..., max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=255)
    shop_name: Optional[str] = Field(None, max_length=255)
    shop_address: Optional[Address] = None


class BuyerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    auth_id: Optional[str] = None
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    shop_name: Optional[str] = None
    shop_address: Optional[dict] = None
    created_at: datetime


class SellerCreate(BaseModel):
    auth_id: Optional[str] = None
    brand_name: str = Field(..., max_length=255)
    gst_number: Optional[str] = Field(None, max_length=20)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=255)
    address: Optional[Address] = None


class SellerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    auth_id: Optional[str] = None
    brand_name: str
    gst_number: Optional[str] = None
    address: Optional[dict] = None
    created_at: datetime


# ============================================================================
# PRODUCT SCHEMAS
# ============================================================================


class ProductCreate(BaseModel):
    seller_id: Optional[uuid.UUID] = None
    name: str = Field(..., max_length=255)
    brand: Optional[str] = Field(None, max_length=255)
    hsn_code: Optional[str] = Field(None, max_length=20)
    gst_percent: Decimal = Field(Decimal("0"), ge=0, le=100)
    gst_type: GstType = GstType.EXCLUSIVE
    purchase_price_inr: Decimal = Field(..., ge=0)
    margin_percent: Decimal = Field(Decimal("0"), ge=0)
    discount_percent: Decimal = Field(Decimal("0"), ge=0, le=100)
    discount_amount_inr: Decimal = Field(Decimal("0"), ge=0)
    stock: int = Field(0, ge=0)


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    seller_id: Optional[uuid.UUID] = None
    name: str
    brand: Optional[str] = None
    hsn_code: Optional[str] = None
    gst_percent: Decimal
    gst_type: GstType
    purchase_price_inr: Optional[Decimal] = None
    margin_percent: Decimal
    discount_percent: Decimal
    discount_amount_inr: Decimal
    mrp_inr: Optional[Decimal] = None
    final_price_inr: Optional[Decimal] = None
    stock: int
    is_active: bool
    created_at: datetime


# ============================================================================
# ORDER SCHEMAS
# ============================================================================


class OrderLineRequest(BaseModel):
    """
    One requested line. Either a catalog reference (``product_id``) or an
    ad-hoc line with a caller-supplied price. Values are coerced loosely by
    the assembler, so they are accepted as given here.
    """

    model_config = ConfigDict(populate_by_name=True)

    product_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("product_id", "productId")
    )
    quantity: Optional[Any] = None
    price: Optional[Any] = None
    name: Optional[str] = Field(None, max_length=255)
    brand: Optional[str] = Field(None, max_length=255)
    hsn_code: Optional[str] = Field(None, max_length=20)
    gst_percent: Optional[Decimal] = Field(None, ge=0, le=100)


class OrderCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Required for back-office callers; buyers order for themselves
    buyer_id: Optional[uuid.UUID] = Field(
        None, validation_alias=AliasChoices("buyer_id", "buyerId")
    )
    seller_id: Optional[uuid.UUID] = None
    lines: list[OrderLineRequest] = Field(
        default_factory=list, validation_alias=AliasChoices("lines", "products")
    )
    shipping_address: Optional[Address] = None

    # Explicit total overrides (INR)
    total_amount_inr: Optional[Decimal] = Field(None, ge=0)
    discount_amount_inr: Optional[Decimal] = Field(None, ge=0)
    gst_amount_inr: Optional[Decimal] = Field(None, ge=0)
    final_amount_inr: Optional[Decimal] = Field(None, ge=0)


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    position: int
    product_id: Optional[uuid.UUID] = None
    name: str
    brand: Optional[str] = None
    hsn_code: Optional[str] = None
    gst_percent: Decimal
    quantity: int
    unit_price_inr: Decimal
    line_total_inr: Decimal


class OrderLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    action: OrderAction
    actor_id: Optional[str] = None
    note: Optional[str] = None
    created_at: datetime


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_number: Optional[str] = None
    buyer_id: uuid.UUID
    seller_id: Optional[uuid.UUID] = None
    total_amount_inr: Decimal
    discount_amount_inr: Decimal
    gst_amount_inr: Decimal
    final_amount_inr: Decimal
    brand_amounts: Optional[dict] = None
    shipping_address: Optional[dict] = None
    status: OrderStatus
    payment_status: OrderPaymentStatus
    dispatch_info: Optional[dict] = None
    invoice_url: Optional[str] = None
    created_at: datetime
    items: list[OrderItemResponse] = []
    logs: list[OrderLogResponse] = []


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    note: Optional[str] = Field(None, max_length=1000)


class DispatchRequest(BaseModel):
    courier: Optional[str] = Field(None, max_length=255)
    awb: Optional[str] = Field(None, max_length=255)
    note: Optional[str] = Field(None, max_length=1000)


# ============================================================================
# INVOICE SCHEMAS
# ============================================================================


class InvoiceItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    position: int
    product_id: Optional[uuid.UUID] = None
    name: str
    brand: Optional[str] = None
    hsn_code: Optional[str] = None
    quantity: int
    unit_price_paise: int
    line_total_paise: int
    gst_percent: Decimal
    gst_paise: int


class InvoicePaymentRefResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payment_id: uuid.UUID
    amount_paise: int
    gateway: str
    created_at: datetime


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    number: str
    order_id: uuid.UUID
    buyer_id: uuid.UUID
    seller_id: Optional[uuid.UUID] = None
    subtotal_paise: int
    discount_total_paise: int
    gst_total_paise: int
    grand_total_paise: int
    amount_paid_paise: int
    balance_due_paise: int
    status: InvoiceStatus
    paid_at: Optional[datetime] = None
    qr_id: Optional[str] = None
    qr_payload: Optional[str] = None
    qr_image: Optional[str] = None
    pdf_url: Optional[str] = None
    created_at: datetime
    items: list[InvoiceItemResponse] = []
    payment_refs: list[InvoicePaymentRefResponse] = []


class DispatchResponse(BaseModel):
    order: OrderResponse
    invoice: InvoiceResponse


class WebhookAck(BaseModel):
    ok: bool = True


class DocumentResponse(BaseModel):
    invoice_id: uuid.UUID
    pdf_url: str


# ============================================================================
# NOTIFICATION SCHEMAS
# ============================================================================


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    type: NotificationType
    title: str
    body: Optional[str] = None
    data: Optional[dict] = None
    seen: bool
    created_at: datetime
