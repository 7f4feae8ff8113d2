"""
Notification model - persisted per-user inbox entries
"""
from enum import Enum

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Enum as SQLEnum

from hostel_complaints.database import Base
from hostel_complaints.utils.helpers import utcnow


class NotificationType(str, Enum):
    STATUS_UPDATE = "status_update"
    NEW_ADMIN_NOTE = "new_admin_note"
    COMPLAINT_RESOLVED = "complaint_resolved"
    HIGH_PRIORITY_ALERT = "high_priority_alert"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    complaint_id = Column(Integer, ForeignKey("complaints.id"), nullable=True)
    message = Column(Text, nullable=False)
    type = Column(
        SQLEnum(NotificationType, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False, default=NotificationType.STATUS_UPDATE,
    )
    priority = Column(String, nullable=False, default="normal")
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, index=True)
