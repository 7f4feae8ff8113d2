from hostel_complaints.models.user import User, UserRole
from hostel_complaints.models.complaint import (
    Complaint, ComplaintVersion, ComplaintCategory, ComplaintStatus,
    ComplaintPriority, ApprovalStatus,
)
from hostel_complaints.models.notification import Notification, NotificationType
from hostel_complaints.models.feature_toggle import FeatureToggle

__all__ = [
    "User",
    "UserRole",
    "Complaint",
    "ComplaintVersion",
    "ComplaintCategory",
    "ComplaintStatus",
    "ComplaintPriority",
    "ApprovalStatus",
    "Notification",
    "NotificationType",
    "FeatureToggle",
]
