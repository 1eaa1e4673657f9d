"""Commerce service routers package."""

from services.commerce_service.routers.catalog import router as catalog_router
from services.commerce_service.routers.invoices import router as invoices_router
from services.commerce_service.routers.notifications import (
    router as notifications_router,
)
from services.commerce_service.routers.orders import router as orders_router
from services.commerce_service.routers.webhooks import router as webhooks_router

__all__ = [
    "catalog_router",
    "invoices_router",
    "notifications_router",
    "orders_router",
    "webhooks_router",
]
