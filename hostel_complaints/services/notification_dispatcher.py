"""
Notification dispatcher

Delivers the outbound events a lifecycle operation returns: notification
events become persisted Notification rows (the durable record), realtime
events are pushed to connected sockets (a convenience, best-effort).
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from sqlalchemy.ext.asyncio import AsyncSession

from hostel_complaints.database import storage_errors
from hostel_complaints.models.notification import Notification, NotificationType
from hostel_complaints.services.realtime import ConnectionManager, connection_manager
from hostel_complaints.utils.helpers import utcnow
from hostel_complaints.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class NotificationEvent:
    """A notification to persist for ``user_id``"""
    user_id: int
    complaint_id: Optional[int]
    message: str
    type: NotificationType = NotificationType.STATUS_UPDATE
    priority: str = "normal"


@dataclass
class RealtimeEvent:
    """A named event to push to a realtime room"""
    room: str
    event: str
    payload: Dict[str, Any] = field(default_factory=dict)


OutboundEvent = Union[NotificationEvent, RealtimeEvent]


class NotificationDispatcher:

    def __init__(self, connections: Optional[ConnectionManager] = None):
        self.connections = connections or connection_manager

    async def notify(
        self,
        db: AsyncSession,
        user_id: int,
        complaint_id: Optional[int],
        message: str,
        type: NotificationType = NotificationType.STATUS_UPDATE,
        priority: str = "normal",
    ) -> Notification:
        """Create a notification row. Store failures raise StorageError; no retry."""
        notification = Notification(
            user_id=user_id,
            complaint_id=complaint_id,
            message=message,
            type=type,
            priority=priority or "normal",
            read=False,
            created_at=utcnow(),
        )
        db.add(notification)
        async with storage_errors("notification write"):
            await db.flush()
        return notification

    async def push(self, room: str, event: str, payload: Dict[str, Any]) -> int:
        """Best-effort push; an empty room or a dead socket is not an error"""
        try:
            return await self.connections.emit(room, event, payload)
        except Exception as e:
            logger.error(f"Realtime push '{event}' to {room} failed: {e}")
            return 0

    async def record(self, db: AsyncSession, events: Sequence[OutboundEvent]) -> List[Notification]:
        """Persist every NotificationEvent; call before committing"""
        created = []
        for event in events:
            if isinstance(event, NotificationEvent):
                created.append(await self.notify(
                    db,
                    user_id=event.user_id,
                    complaint_id=event.complaint_id,
                    message=event.message,
                    type=event.type,
                    priority=event.priority,
                ))
        return created

    async def publish(self, events: Sequence[OutboundEvent]) -> int:
        """Push every RealtimeEvent; call after committing"""
        delivered = 0
        for event in events:
            if isinstance(event, RealtimeEvent):
                delivered += await self.push(event.room, event.event, event.payload)
        return delivered


def get_notification_dispatcher() -> NotificationDispatcher:
    """Dependency returning a dispatcher bound to the process registry"""
    return NotificationDispatcher(connection_manager)
