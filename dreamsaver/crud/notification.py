# dreamsaver/crud/notification.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, desc, func
from dreamsaver.models.notification import Notification
from dreamsaver.schemas.notification import NotificationCreate
from typing import List, Optional
import uuid


async def add_notification(db: AsyncSession, notification: NotificationCreate) -> Notification:
    """Stage a notification in the caller's transaction. Does not commit."""
    db_notification = Notification(**notification.model_dump())
    db.add(db_notification)
    await db.flush()
    return db_notification


async def get_notifications_for_user(
    db: AsyncSession,
    user_id: str,
    unread_only: bool = False,
    limit: int = 50
) -> List[Notification]:
    """Get notifications for a specific user with filtering options"""
    query = (
        select(Notification)
        .filter(Notification.user_id == user_id)
    )

    if unread_only:
        query = query.filter(Notification.is_read == False)  # noqa: E712

    query = query.order_by(desc(Notification.created_at)).limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())


async def get_unread_count(db: AsyncSession, user_id: str) -> int:
    """Get count of unread notifications for a user"""
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
    )
    return result.scalar_one() or 0


async def mark_notification_as_read(db: AsyncSession, notification_id: uuid.UUID, user_id: str) -> Optional[Notification]:
    """Mark a notification as read, ensuring it belongs to the specified user"""
    result = await db.execute(
        select(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
    )
    notification = result.scalars().first()

    if notification:
        notification.is_read = True
        await db.commit()
        await db.refresh(notification)
    return notification


async def mark_all_notifications_as_read(db: AsyncSession, user_id: str) -> int:
    """Mark all notifications as read for a specific user"""
    result = await db.execute(
        update(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
        .values(is_read=True)
    )
    await db.commit()
    return result.rowcount


async def delete_notification(db: AsyncSession, notification_id: uuid.UUID, user_id: str) -> bool:
    """Delete a notification, ensuring it belongs to the specified user"""
    result = await db.execute(
        delete(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
    )
    await db.commit()
    return result.rowcount > 0
