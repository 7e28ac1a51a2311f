"""
In-app notification endpoints.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbay.core.security import get_current_user_id
from ticketbay.db.session import get_db
from ticketbay.schemas.notification import NotificationResponse
from ticketbay.services.notification_service import list_notifications, mark_read

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/", response_model=list[NotificationResponse])
async def list_notifications_endpoint(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await list_notifications(db, user_id, unread_only=unread_only, limit=limit)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read_endpoint(
    notification_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await mark_read(db, notification_id, user_id)
