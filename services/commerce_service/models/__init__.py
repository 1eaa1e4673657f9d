"""Commerce Service models package."""

from services.commerce_service.models.billing import (
    Invoice,
    InvoiceItem,
    InvoicePaymentRef,
    Payment,
    derive_invoice_status,
)
from services.commerce_service.models.catalog import Buyer, Product, Seller
from services.commerce_service.models.enums import (
    GstType,
    InvoiceStatus,
    NotificationType,
    OrderAction,
    OrderPaymentStatus,
    OrderStatus,
    PaymentStatus,
)
from services.commerce_service.models.notifications import Notification
from services.commerce_service.models.orders import Order, OrderItem, OrderLog

__all__ = [
    "Buyer",
    "GstType",
    "Invoice",
    "InvoiceItem",
    "InvoicePaymentRef",
    "InvoiceStatus",
    "Notification",
    "NotificationType",
    "Order",
    "OrderAction",
    "OrderItem",
    "OrderLog",
    "OrderPaymentStatus",
    "OrderStatus",
    "Payment",
    "PaymentStatus",
    "Product",
    "Seller",
    "derive_invoice_status",
]
