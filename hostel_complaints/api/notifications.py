"""
Notification inbox endpoints
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from hostel_complaints.api.auth import get_current_user
from hostel_complaints.database import get_db
from hostel_complaints.exceptions import NotFoundError
from hostel_complaints.models.notification import Notification, NotificationType
from hostel_complaints.models.user import User

router = APIRouter()

INBOX_SIZE = 50


class NotificationResponse(BaseModel):
    id: int
    user_id: int
    complaint_id: Optional[int]
    message: str
    type: NotificationType
    priority: str
    read: bool
    created_at: datetime

    class Config:
        from_attributes = True


async def _owned(db: AsyncSession, notification_id: int, user: User) -> Notification:
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user.id,
        )
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        raise NotFoundError("Notification", notification_id)
    return notification


@router.get("/")
async def list_notifications(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Latest notifications plus the unread count"""
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == current_user.id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(INBOX_SIZE)
    )
    notifications = result.scalars().all()

    unread = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == current_user.id,
            Notification.read.is_(False),
        )
    )

    return {
        "success": True,
        "notifications": [NotificationResponse.model_validate(n) for n in notifications],
        "unread_count": unread.scalar_one(),
    }


@router.put("/read-all")
async def mark_all_read(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == current_user.id, Notification.read.is_(False))
        .values(read=True)
        .execution_options(synchronize_session="fetch")
    )
    await db.commit()
    return {"success": True, "message": "All notifications marked as read", "updated": result.rowcount}


@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    notification = await _owned(db, notification_id, current_user)
    notification.read = True
    await db.commit()
    return {"success": True, "notification": NotificationResponse.model_validate(notification)}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    notification = await _owned(db, notification_id, current_user)
    await db.delete(notification)
    await db.commit()
    return {"success": True, "message": "Notification deleted"}
