"""Notifications router."""

import uuid

from fastapi import APIRouter, Depends
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.commerce_service.schemas import NotificationResponse
from services.commerce_service.services.notifications import (
    list_notifications,
    mark_seen,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/me", response_model=list[NotificationResponse])
async def my_notifications(
    unseen_only: bool = False,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await list_notifications(db, current_user.user_id, unseen_only=unseen_only)


@router.patch("/{notification_id}/seen", response_model=NotificationResponse)
async def acknowledge(
    notification_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await mark_seen(db, notification_id, current_user.user_id)
