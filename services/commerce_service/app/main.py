"""FastAPI application for the Commerce Service."""

from fastapi import FastAPI
from libs.common.errors import register_exception_handlers
from libs.common.middleware import add_observability_middleware
from services.commerce_service.routers import (
    catalog_router,
    invoices_router,
    notifications_router,
    orders_router,
    webhooks_router,
)


def create_app() -> FastAPI:
    """Create and configure the Commerce Service FastAPI app."""
    app = FastAPI(
        title="Commerce Service",
        version="0.1.0",
        description="Wholesale ordering: catalog, orders, dispatch invoices and Paytm payments.",
    )

    add_observability_middleware(app)
    register_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "commerce"}

    app.include_router(catalog_router)
    app.include_router(orders_router)
    app.include_router(invoices_router)
    app.include_router(webhooks_router)
    app.include_router(notifications_router)

    return app


app = create_app()
