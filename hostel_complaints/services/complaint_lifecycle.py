"""
Complaint lifecycle manager

Owns every state change on a complaint: creation (with duplicate screening),
admin status transitions, cost and approval updates, soft-delete/restore,
student edits and post-resolution feedback.

Mutating operations return a LifecycleResult: the complaint plus the outbound
events (notifications and realtime pushes) the caller hands to the
NotificationDispatcher. Nothing here touches a socket.
"""
from dataclasses import dataclass, field
from datetime import timedelta
from numbers import Number
from typing import Any, Dict, List, Optional, Type

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hostel_complaints.config import get_settings
from hostel_complaints.database import storage_errors
from hostel_complaints.exceptions import (
    AuthorizationError, ConflictError, NotFoundError, ValidationError,
)
from hostel_complaints.models.complaint import (
    Complaint, ComplaintVersion, ComplaintCategory, ComplaintStatus,
    ComplaintPriority, ApprovalStatus,
)
from hostel_complaints.models.notification import NotificationType
from hostel_complaints.services.duplicate_detector import (
    DuplicateDetector, SubstringDuplicateDetector,
)
from hostel_complaints.services.feature_toggles import (
    DUPLICATE_DETECTION, FeatureToggleProvider,
)
from hostel_complaints.services.notification_dispatcher import (
    NotificationEvent, OutboundEvent, RealtimeEvent,
)
from hostel_complaints.services.realtime import ADMIN_ROOM, user_room
from hostel_complaints.services.versioning import VersionRecorder
from hostel_complaints.utils.helpers import build_pagination, format_currency, utcnow
from hostel_complaints.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

TITLE_MIN, TITLE_MAX = 5, 100
DESCRIPTION_MIN, DESCRIPTION_MAX = 10, 1000
FEEDBACK_MAX = 1000
RATING_MIN, RATING_MAX = 1, 5
MAX_PAGE_SIZE = 100
SORTABLE_FIELDS = {"created_at", "updated_at", "resolved_at"}

# Marks an argument the caller did not supply (None is a real value for costs)
UNSET: Any = object()


@dataclass
class LifecycleResult:
    complaint: Complaint
    events: List[OutboundEvent] = field(default_factory=list)


@dataclass
class ComplaintPage:
    items: List[Complaint]
    total: int
    page: int
    limit: int

    @property
    def pagination(self) -> Dict[str, Any]:
        return build_pagination(self.total, self.page, self.limit)


def _value(member):
    return getattr(member, "value", member)


def _iso(dt):
    return dt.isoformat() if dt else None


def complaint_payload(complaint: Complaint) -> Dict[str, Any]:
    """JSON-safe view of a complaint for realtime events"""
    return {
        "id": complaint.id,
        "student_id": complaint.student_id,
        "title": complaint.title,
        "description": complaint.description,
        "category": _value(complaint.category),
        "status": _value(complaint.status),
        "priority": _value(complaint.priority),
        "images": list(complaint.images or []),
        "proof_image": complaint.proof_image,
        "admin_notes": complaint.admin_notes,
        "estimated_cost": complaint.estimated_cost,
        "actual_cost": complaint.actual_cost,
        "currency": complaint.currency,
        "approval_status": _value(complaint.approval_status),
        "version": complaint.version,
        "estimated_days": complaint.estimated_days,
        "expected_completion_date": _iso(complaint.expected_completion_date),
        "resolution_rating": complaint.resolution_rating,
        "resolution_feedback": complaint.resolution_feedback,
        "created_at": _iso(complaint.created_at),
        "updated_at": _iso(complaint.updated_at),
        "resolved_at": _iso(complaint.resolved_at),
    }


def _money(amount, currency):
    return format_currency(amount, currency) if amount is not None else "-"


def _coerce_enum(enum_cls: Type, value: Any, field_name: str):
    try:
        return enum_cls(_value(value))
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"Invalid {field_name} '{value}'. Must be one of: {allowed}")


def _validate_title(title: str) -> None:
    if len(title) < TITLE_MIN or len(title) > TITLE_MAX:
        raise ValidationError(f"Title must be between {TITLE_MIN} and {TITLE_MAX} characters")


def _validate_description(description: str) -> None:
    if len(description) < DESCRIPTION_MIN or len(description) > DESCRIPTION_MAX:
        raise ValidationError(
            f"Description must be between {DESCRIPTION_MIN} and {DESCRIPTION_MAX} characters"
        )


def _validate_cost(value: Any, field_name: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, Number) or value < 0:
        raise ValidationError(f"{field_name} must be a non-negative number")
    return float(value)


def _parse_rating(rating: Any) -> float:
    if isinstance(rating, bool):
        raise ValidationError("Rating must be a number between 1 and 5")
    try:
        numeric = float(rating)
    except (TypeError, ValueError):
        raise ValidationError("Rating must be a number between 1 and 5")
    if numeric != numeric or numeric < RATING_MIN or numeric > RATING_MAX:
        raise ValidationError("Rating must be a number between 1 and 5")
    return numeric


class ComplaintLifecycleManager:
    """Complaint state machine; status and approval tracks plus soft-delete"""

    def __init__(
        self,
        toggles: FeatureToggleProvider,
        detector: Optional[DuplicateDetector] = None,
        preview_detector: Optional[DuplicateDetector] = None,
        recorder: Optional[VersionRecorder] = None,
        duplicate_window_days: Optional[int] = None,
        preview_window_days: Optional[int] = None,
    ):
        self.toggles = toggles
        self.detector = detector or SubstringDuplicateDetector()
        self.preview_detector = preview_detector or SubstringDuplicateDetector(
            title_prefix=40, description_prefix=80, description_window=80, limit=5
        )
        self.recorder = recorder or VersionRecorder()
        self.duplicate_window_days = duplicate_window_days or settings.DUPLICATE_WINDOW_DAYS
        self.preview_window_days = preview_window_days or settings.DUPLICATE_PREVIEW_WINDOW_DAYS

    # --- Loading ---

    async def _load_live(
        self,
        db: AsyncSession,
        complaint_id: int,
        for_update: bool = False,
    ) -> Complaint:
        query = select(Complaint).where(
            Complaint.id == complaint_id,
            Complaint.deleted_at.is_(None),
        )
        if for_update:
            query = query.with_for_update()
        async with storage_errors("complaint lookup"):
            result = await db.execute(query)
            complaint = result.scalar_one_or_none()
        if complaint is None:
            raise NotFoundError("Complaint", complaint_id)
        return complaint

    async def _persist(self, db: AsyncSession, operation: str) -> None:
        async with storage_errors(operation):
            await db.flush()

    # --- Create ---

    async def create(
        self,
        db: AsyncSession,
        *,
        title: str,
        description: str,
        student_id: int,
        category: Any = None,
        priority: Any = None,
        images: Optional[List[str]] = None,
    ) -> LifecycleResult:
        if not title or not description:
            raise ValidationError("Title and description are required")
        _validate_title(title)
        _validate_description(description)
        category = _coerce_enum(ComplaintCategory, category or ComplaintCategory.OTHER, "category")
        priority = _coerce_enum(ComplaintPriority, priority or ComplaintPriority.MEDIUM, "priority")

        if await self.toggles.is_enabled(db, DUPLICATE_DETECTION):
            candidates = await self.detector.check(
                db, student_id, title, description, self.duplicate_window_days
            )
            if candidates:
                logger.info(
                    f"Duplicate complaint blocked for student {student_id}: "
                    f"matches complaint {candidates[0].id}"
                )
                raise ConflictError(
                    "A similar complaint was already submitted recently. Please review "
                    "your existing complaints instead of creating a duplicate.",
                    possible_duplicate_id=candidates[0].id,
                    similar_complaints=[c.to_dict() for c in candidates],
                )

        now = utcnow()
        complaint = Complaint(
            title=title,
            description=description,
            category=category,
            priority=priority,
            student_id=student_id,
            images=list(images or []),
            status=ComplaintStatus.PENDING,
            approval_status=ApprovalStatus.PENDING_APPROVAL,
            admin_notes="",
            currency=settings.DEFAULT_CURRENCY,
            version=1,
            rejection_reason="",
            resolution_feedback="",
            created_at=now,
            updated_at=now,
        )
        db.add(complaint)
        await self._persist(db, "complaint create")

        logger.info(f"Complaint {complaint.id} created by student {student_id}")
        return LifecycleResult(
            complaint,
            [RealtimeEvent(ADMIN_ROOM, "complaintCreated", complaint_payload(complaint))],
        )

    # --- Reads ---

    async def get(
        self,
        db: AsyncSession,
        complaint_id: int,
        *,
        actor_id: int,
        actor_is_admin: bool,
    ) -> Complaint:
        complaint = await self._load_live(db, complaint_id)
        if complaint.student_id != actor_id and not actor_is_admin:
            raise AuthorizationError()
        return complaint

    async def version_history(
        self,
        db: AsyncSession,
        complaint_id: int,
        *,
        actor_id: int,
        actor_is_admin: bool,
    ) -> List[ComplaintVersion]:
        await self.get(db, complaint_id, actor_id=actor_id, actor_is_admin=actor_is_admin)
        return await self.recorder.history(db, complaint_id)

    async def check_duplicate(
        self,
        db: AsyncSession,
        *,
        student_id: int,
        title: str,
        description: str,
    ) -> Dict[str, Any]:
        """Pre-submit preview; wider window than create and never raises a conflict"""
        if not title or not description:
            raise ValidationError("Title and description required")
        matches = await self.preview_detector.check(
            db, student_id, title, description, self.preview_window_days
        )
        possible = matches[0] if matches else None
        return {
            "is_possible_duplicate": possible is not None,
            "existing_id": possible.id if possible else None,
            "similar_complaints": [m.to_dict() for m in matches],
        }

    async def list_complaints(
        self,
        db: AsyncSession,
        *,
        actor_id: int,
        actor_is_admin: bool,
        status: Optional[str] = None,
        search: Optional[str] = None,
        include_deleted: bool = False,
        page: int = 1,
        limit: int = 50,
        sort_by: str = "created_at",
    ) -> ComplaintPage:
        if sort_by not in SORTABLE_FIELDS:
            raise ValidationError(f"Cannot sort by '{sort_by}'")
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)

        filters = []
        if actor_is_admin:
            if not include_deleted:
                filters.append(Complaint.deleted_at.is_(None))
        else:
            filters.append(Complaint.deleted_at.is_(None))
            filters.append(Complaint.student_id == actor_id)

        if status and status != "all":
            filters.append(Complaint.status == _coerce_enum(ComplaintStatus, status, "status"))
        if search:
            filters.append(or_(
                Complaint.title.icontains(search, autoescape=True),
                Complaint.description.icontains(search, autoescape=True),
            ))

        sort_column = getattr(Complaint, sort_by)
        query = (
            select(Complaint)
            .options(selectinload(Complaint.student))
            .where(*filters)
            .order_by(sort_column.desc(), Complaint.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )

        async with storage_errors("complaint listing"):
            total = (await db.execute(
                select(func.count()).select_from(Complaint).where(*filters)
            )).scalar_one()
            items = list((await db.execute(query)).scalars().all())

        return ComplaintPage(items=items, total=total, page=page, limit=limit)

    # --- Admin transitions ---

    async def transition(
        self,
        db: AsyncSession,
        complaint_id: int,
        new_status: Any,
        *,
        actor_id: int,
        actor_is_admin: bool,
        admin_notes: Any = UNSET,
        estimated_cost: Any = UNSET,
        actual_cost: Any = UNSET,
        estimated_days: Any = UNSET,
    ) -> LifecycleResult:
        """
        Move a complaint to ``new_status``. Any-to-any moves are allowed and
        resolved_at is never cleared once set.
        """
        if not actor_is_admin:
            raise AuthorizationError("Only admins can change complaint status")
        if not new_status:
            raise ValidationError("Status is required")
        status = _coerce_enum(ComplaintStatus, new_status, "status")
        if estimated_cost is not UNSET:
            estimated_cost = _validate_cost(estimated_cost, "Estimated cost")
        if actual_cost is not UNSET:
            actual_cost = _validate_cost(actual_cost, "Actual cost")
        if estimated_days is not UNSET and estimated_days is not None:
            if isinstance(estimated_days, bool) or not isinstance(estimated_days, int) or estimated_days < 0:
                raise ValidationError("Estimated days must be a non-negative whole number")

        complaint = await self._load_live(db, complaint_id, for_update=True)
        previous_status = _value(complaint.status)
        now = utcnow()

        complaint.status = status
        if admin_notes is not UNSET and admin_notes is not None:
            complaint.admin_notes = admin_notes
        if estimated_cost is not UNSET:
            complaint.estimated_cost = estimated_cost
        if actual_cost is not UNSET:
            complaint.actual_cost = actual_cost
        if estimated_days is not UNSET and estimated_days is not None:
            complaint.estimated_days = estimated_days
            complaint.expected_completion_date = now + timedelta(days=estimated_days)

        complaint.updated_at = now
        if status == ComplaintStatus.RESOLVED:
            complaint.resolved_at = now

        await self.recorder.snapshot(
            db, complaint, actor_id, f"Status: {previous_status} → {status.value}"
        )

        owner = complaint.student_id
        events: List[OutboundEvent] = [
            NotificationEvent(
                user_id=owner,
                complaint_id=complaint.id,
                message=f'Your complaint "{complaint.title}" status updated to {status.value}',
                type=NotificationType.STATUS_UPDATE,
            )
        ]
        if complaint.priority == ComplaintPriority.HIGH and status in (
            ComplaintStatus.IN_PROGRESS, ComplaintStatus.RESOLVED
        ):
            events.append(NotificationEvent(
                user_id=owner,
                complaint_id=complaint.id,
                message=f'High-priority complaint "{complaint.title}" is now {status.value}.',
                type=NotificationType.HIGH_PRIORITY_ALERT,
                priority="high",
            ))
        events.append(RealtimeEvent(
            user_room(owner), "complaintStatusChanged", complaint_payload(complaint)
        ))

        logger.info(
            f"Complaint {complaint.id}: {previous_status} -> {status.value} "
            f"by admin {actor_id} (v{complaint.version})"
        )
        return LifecycleResult(complaint, events)

    async def update_cost(
        self,
        db: AsyncSession,
        complaint_id: int,
        *,
        actor_id: int,
        estimated_cost: Any = UNSET,
        actual_cost: Any = UNSET,
    ) -> LifecycleResult:
        if estimated_cost is not UNSET:
            estimated_cost = _validate_cost(estimated_cost, "Estimated cost")
        if actual_cost is not UNSET:
            actual_cost = _validate_cost(actual_cost, "Actual cost")

        complaint = await self._load_live(db, complaint_id, for_update=True)
        if estimated_cost is not UNSET:
            complaint.estimated_cost = estimated_cost
        if actual_cost is not UNSET:
            complaint.actual_cost = actual_cost
        complaint.updated_at = utcnow()

        await self.recorder.snapshot(db, complaint, actor_id, "Cost update")
        logger.info(
            f"Complaint {complaint.id} cost updated by admin {actor_id}: "
            f"estimated {_money(complaint.estimated_cost, complaint.currency)}, "
            f"actual {_money(complaint.actual_cost, complaint.currency)}"
        )
        return LifecycleResult(complaint)

    async def approve(
        self,
        db: AsyncSession,
        complaint_id: int,
        action: Any,
        *,
        actor_id: int,
        rejection_reason: Optional[str] = None,
    ) -> LifecycleResult:
        action = _value(action)
        if action not in (ApprovalStatus.APPROVED.value, ApprovalStatus.REJECTED.value):
            raise ValidationError("Invalid action. Must be 'approved' or 'rejected'")

        complaint = await self._load_live(db, complaint_id, for_update=True)
        now = utcnow()
        if action == ApprovalStatus.APPROVED.value:
            complaint.approval_status = ApprovalStatus.APPROVED
            complaint.approved_by = actor_id
            complaint.approved_at = now
            complaint.rejection_reason = ""
        else:
            complaint.approval_status = ApprovalStatus.REJECTED
            complaint.rejection_reason = rejection_reason or ""
        complaint.updated_at = now

        await self.recorder.snapshot(db, complaint, actor_id, f"Approval: {action}")
        logger.info(f"Complaint {complaint.id} {action} by admin {actor_id}")
        return LifecycleResult(complaint)

    # --- Soft delete ---

    async def soft_delete(
        self,
        db: AsyncSession,
        complaint_id: int,
        *,
        actor_id: int,
        actor_is_admin: bool,
    ) -> LifecycleResult:
        complaint = await self._load_live(db, complaint_id, for_update=True)
        if complaint.student_id != actor_id and not actor_is_admin:
            raise AuthorizationError()
        if actor_is_admin and complaint.status != ComplaintStatus.RESOLVED:
            raise ValidationError("Admins can only delete resolved complaints")

        now = utcnow()
        complaint.deleted_at = now
        complaint.deleted_by = actor_id
        complaint.updated_at = now
        await self._persist(db, "complaint delete")

        logger.info(f"Complaint {complaint.id} soft-deleted by user {actor_id}")
        return LifecycleResult(
            complaint,
            [RealtimeEvent(
                user_room(complaint.student_id), "complaintDeleted", {"complaint_id": complaint.id}
            )],
        )

    async def restore(self, db: AsyncSession, complaint_id: int) -> LifecycleResult:
        async with storage_errors("complaint lookup"):
            result = await db.execute(
                select(Complaint).where(
                    Complaint.id == complaint_id,
                    Complaint.deleted_at.is_not(None),
                )
            )
            complaint = result.scalar_one_or_none()
        if complaint is None:
            raise NotFoundError("Complaint", complaint_id, "Complaint not found or not deleted")

        complaint.deleted_at = None
        complaint.deleted_by = None
        complaint.updated_at = utcnow()
        await self._persist(db, "complaint restore")

        logger.info(f"Complaint {complaint.id} restored")
        return LifecycleResult(complaint)

    # --- Student operations ---

    async def update(
        self,
        db: AsyncSession,
        complaint_id: int,
        *,
        student_id: int,
        title: Optional[str] = None,
        description: Optional[str] = None,
        category: Any = None,
        priority: Any = None,
    ) -> LifecycleResult:
        """Owner edit while still pending; not versioned"""
        complaint = await self._load_live(db, complaint_id)
        if complaint.student_id != student_id:
            raise AuthorizationError("Not authorized to update this complaint")
        if complaint.status != ComplaintStatus.PENDING:
            raise ValidationError("Can only update pending complaints")

        if title is not None:
            _validate_title(title)
        if description is not None:
            _validate_description(description)
        if category is not None:
            category = _coerce_enum(ComplaintCategory, category, "category")
        if priority is not None:
            priority = _coerce_enum(ComplaintPriority, priority, "priority")

        if title is not None:
            complaint.title = title
        if description is not None:
            complaint.description = description
        if category is not None:
            complaint.category = category
        if priority is not None:
            complaint.priority = priority
        complaint.updated_at = utcnow()

        await self._persist(db, "complaint update")
        return LifecycleResult(complaint)

    async def submit_feedback(
        self,
        db: AsyncSession,
        complaint_id: int,
        *,
        student_id: int,
        rating: Any,
        feedback: Optional[str] = None,
    ) -> LifecycleResult:
        numeric_rating = _parse_rating(rating)

        complaint = await self._load_live(db, complaint_id)
        if complaint.student_id != student_id:
            raise AuthorizationError("Not authorized to rate this complaint")
        if complaint.status != ComplaintStatus.RESOLVED:
            raise ValidationError("You can rate only resolved complaints")

        complaint.resolution_rating = numeric_rating
        if isinstance(feedback, str):
            complaint.resolution_feedback = feedback[:FEEDBACK_MAX]
        complaint.updated_at = utcnow()

        await self._persist(db, "feedback submit")
        return LifecycleResult(complaint)
