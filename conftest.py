import os
from typing import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Settings are read at import time, so the test environment has to be in place
# before anything under libs/ or services/ is imported.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ENVIRONMENT"] = "development"
os.environ["PAYTM_MID"] = "TESTMID00000000000000"
os.environ["PAYTM_MERCHANT_KEY"] = "TESTMERCHANTKEY1"
os.environ["AUTH_JWT_SECRET"] = "test-jwt-secret"
os.environ["INVOICE_RENDER_BACKOFF_SECONDS"] = "0"

from libs.common.config import get_settings  # noqa: E402

get_settings.cache_clear()

from libs.db.base import Base  # noqa: E402
from services.commerce_service import models as _commerce_models  # noqa: E402,F401
from services.commerce_service.app.main import app  # noqa: E402


@pytest_asyncio.fixture
async def test_engine():
    """
    Fresh in-memory SQLite database per test.

    StaticPool keeps the single connection alive so every session sees the
    same database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a database session.

    Services commit through ``atomic``; the database is thrown away with the
    engine, so nothing needs rolling back here.
    """
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    session = session_factory()

    try:
        yield session
    finally:
        await session.close()


@pytest_asyncio.fixture
async def client(db_session, gateway, storage) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient bound to the app with DB, gateway and storage
    dependencies pointed at the test doubles.
    """
    from libs.db.session import get_async_db
    from services.commerce_service.paytm_client import get_gateway_client
    from services.commerce_service.storage import get_invoice_storage

    async def _db():
        yield db_session

    app.dependency_overrides[get_async_db] = _db
    app.dependency_overrides[get_gateway_client] = lambda: gateway
    app.dependency_overrides[get_invoice_storage] = lambda: storage

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
