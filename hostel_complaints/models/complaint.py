"""
Complaint tracking models - complaints and their append-only version log
"""
from enum import Enum

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, Float, JSON,
    UniqueConstraint, Enum as SQLEnum,
)
from sqlalchemy.orm import relationship

from hostel_complaints.database import Base
from hostel_complaints.utils.helpers import utcnow


def _values(enum_cls):
    return [m.value for m in enum_cls]


class ComplaintCategory(str, Enum):
    CLEANING = "cleaning"
    MAINTENANCE = "maintenance"
    FOOD = "food"
    WATER = "water"
    ELECTRICITY = "electricity"
    PLUMBING = "plumbing"
    FURNITURE = "furniture"
    INTERNET = "internet"
    OTHER = "other"


class ComplaintStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


class ComplaintPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ApprovalStatus(str, Enum):
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"


# Fields copied into every ComplaintVersion snapshot
VERSIONED_FIELDS = ("status", "admin_notes", "estimated_cost", "actual_cost", "approval_status")


class Complaint(Base):
    """A single reported hostel issue"""
    __tablename__ = "complaints"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Content
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(
        SQLEnum(ComplaintCategory, native_enum=False, values_callable=_values),
        nullable=False, default=ComplaintCategory.OTHER,
    )
    priority = Column(
        SQLEnum(ComplaintPriority, native_enum=False, values_callable=_values),
        nullable=False, default=ComplaintPriority.MEDIUM,
    )
    images = Column(JSON, nullable=False, default=list)  # blob storage references

    # Status tracking
    status = Column(
        SQLEnum(ComplaintStatus, native_enum=False, values_callable=_values),
        nullable=False, default=ComplaintStatus.PENDING, index=True,
    )
    admin_notes = Column(Text, nullable=False, default="")

    # Cost estimation
    estimated_cost = Column(Float, nullable=True)
    actual_cost = Column(Float, nullable=True)
    currency = Column(String, nullable=False, default="INR")

    # Approval workflow
    approval_status = Column(
        SQLEnum(ApprovalStatus, native_enum=False, values_callable=_values),
        nullable=False, default=ApprovalStatus.PENDING_APPROVAL,
    )
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=False, default="")

    # Version tracking
    version = Column(Integer, nullable=False, default=1)

    # Soft delete
    deleted_at = Column(DateTime, nullable=True, index=True)
    deleted_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Time estimation
    estimated_days = Column(Integer, nullable=True)
    expected_completion_date = Column(DateTime, nullable=True)

    # Student feedback on resolution
    resolution_rating = Column(Float, nullable=True)  # 1-5
    resolution_feedback = Column(Text, nullable=False, default="")

    # Timestamps
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    resolved_at = Column(DateTime, nullable=True)

    # Relationships
    student = relationship("User", foreign_keys=[student_id])
    versions = relationship(
        "ComplaintVersion", back_populates="complaint", order_by="ComplaintVersion.version"
    )

    @property
    def proof_image(self):
        """First uploaded image, for single-proof UI usage"""
        return self.images[0] if self.images else None


class ComplaintVersion(Base):
    """Immutable snapshot of a complaint's mutable fields at one version"""
    __tablename__ = "complaint_versions"

    id = Column(Integer, primary_key=True, index=True)
    complaint_id = Column(Integer, ForeignKey("complaints.id"), nullable=False, index=True)
    version = Column(Integer, nullable=False)

    # Snapshot
    status = Column(String, nullable=False)
    admin_notes = Column(Text, nullable=True)
    estimated_cost = Column(Float, nullable=True)
    actual_cost = Column(Float, nullable=True)
    approval_status = Column(String, nullable=False)

    changed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    change_reason = Column(String, nullable=False, default="")
    created_at = Column(DateTime, default=utcnow)

    complaint = relationship("Complaint", back_populates="versions")

    __table_args__ = (
        UniqueConstraint("complaint_id", "version", name="uq_complaint_version"),
    )
