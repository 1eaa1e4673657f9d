"""Unit-of-work helper.

Every multi-entity mutation (dispatch, payment reconciliation) runs inside
``atomic`` so the writes land together or not at all.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from libs.common.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Commit on clean exit, roll back and re-raise on any exception."""
    try:
        yield db
        await db.commit()
    except Exception:
        await db.rollback()
        logger.debug("Transaction rolled back")
        raise
