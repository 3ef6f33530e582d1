# dreamsaver/api/v1/routes/notification.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from uuid import UUID

from dreamsaver.api.deps import get_current_user_id
from dreamsaver.core.database import get_async_session
from dreamsaver.crud import notification as crud_notification
from dreamsaver.schemas.notification import NotificationRead

router = APIRouter(prefix="/notification", tags=["notifications"])


@router.get("", response_model=List[NotificationRead])
async def get_notifications(
    unread_only: bool = Query(False, description="Filter to only unread notifications"),
    limit: int = Query(50, ge=1, le=200, description="Maximum number of notifications to return"),
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
):
    """Get notifications for the current user with optional filtering"""
    return await crud_notification.get_notifications_for_user(
        db,
        user_id=user_id,
        unread_only=unread_only,
        limit=limit,
    )


@router.get("/unread-count", response_model=int)
async def get_unread_count(
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
):
    return await crud_notification.get_unread_count(db, user_id)


@router.patch("/{notification_id}/read", response_model=NotificationRead)
async def mark_notification_as_read(
    notification_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
):
    """Mark a specific notification as read, ensuring it belongs to the current user"""
    notification = await crud_notification.mark_notification_as_read(db, notification_id, user_id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


@router.post("/read-all", response_model=int)
async def mark_all_notifications_as_read(
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
):
    return await crud_notification.mark_all_notifications_as_read(db, user_id)


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
):
    deleted = await crud_notification.delete_notification(db, notification_id, user_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"message": "Notification deleted"}
