"""
Complaints API endpoints
"""
from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from hostel_complaints.api.auth import get_current_user, require_admin, require_student
from hostel_complaints.database import get_db, storage_errors
from hostel_complaints.models.complaint import (
    ComplaintCategory, ComplaintStatus, ComplaintPriority, ApprovalStatus,
)
from hostel_complaints.models.user import User
from hostel_complaints.services.complaint_lifecycle import (
    ComplaintLifecycleManager, LifecycleResult,
)
from hostel_complaints.services.feature_toggles import FeatureToggleProvider, get_feature_toggles
from hostel_complaints.services.image_storage import LocalImageStorage, get_image_storage
from hostel_complaints.services.notification_dispatcher import (
    NotificationDispatcher, get_notification_dispatcher,
)

router = APIRouter()


class StudentSummary(BaseModel):
    id: int
    name: str
    email: str
    room_no: str
    hostel: str

    class Config:
        from_attributes = True


class ComplaintResponse(BaseModel):
    id: int
    student_id: int
    title: str
    description: str
    category: ComplaintCategory
    status: ComplaintStatus
    priority: ComplaintPriority
    images: List[str]
    proof_image: Optional[str]
    admin_notes: Optional[str]
    estimated_cost: Optional[float]
    actual_cost: Optional[float]
    currency: str
    approval_status: ApprovalStatus
    approved_by: Optional[int]
    approved_at: Optional[datetime]
    rejection_reason: Optional[str]
    version: int
    deleted_at: Optional[datetime]
    estimated_days: Optional[int]
    expected_completion_date: Optional[datetime]
    resolution_rating: Optional[float]
    resolution_feedback: Optional[str]
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime]

    class Config:
        from_attributes = True


class ComplaintListItem(ComplaintResponse):
    student: Optional[StudentSummary] = None


class VersionResponse(BaseModel):
    id: int
    complaint_id: int
    version: int
    status: ComplaintStatus
    admin_notes: Optional[str]
    estimated_cost: Optional[float]
    actual_cost: Optional[float]
    approval_status: ApprovalStatus
    changed_by: Optional[int]
    change_reason: str
    created_at: datetime

    class Config:
        from_attributes = True


class ComplaintEdit(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[str] = None


class DuplicateCheckRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class StatusUpdate(BaseModel):
    status: Optional[str] = None
    admin_notes: Optional[str] = None
    estimated_cost: Optional[float] = None
    actual_cost: Optional[float] = None
    estimated_days: Optional[int] = None


class CostUpdate(BaseModel):
    estimated_cost: Optional[float] = None
    actual_cost: Optional[float] = None


class ApprovalRequest(BaseModel):
    action: str
    rejection_reason: Optional[str] = None


class FeedbackRequest(BaseModel):
    rating: Any = None
    feedback: Optional[str] = None


def get_lifecycle_manager(
    toggles: FeatureToggleProvider = Depends(get_feature_toggles),
) -> ComplaintLifecycleManager:
    return ComplaintLifecycleManager(toggles)


async def _deliver(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    result: LifecycleResult,
) -> None:
    """Persist notifications with the change, push realtime events once committed"""
    await dispatcher.record(db, result.events)
    async with storage_errors("commit"):
        await db.commit()
    await dispatcher.publish(result.events)


def _complaint(result: LifecycleResult) -> ComplaintResponse:
    return ComplaintResponse.model_validate(result.complaint)


@router.post("/", status_code=201)
async def create_complaint(
    title: str = Form(""),
    description: str = Form(""),
    category: Optional[str] = Form(None),
    priority: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_student),
    manager: ComplaintLifecycleManager = Depends(get_lifecycle_manager),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
    storage: LocalImageStorage = Depends(get_image_storage),
):
    """File a complaint with up to five proof images"""
    references = await storage.save_all(images or [])
    try:
        result = await manager.create(
            db,
            title=title,
            description=description,
            student_id=current_user.id,
            category=category,
            priority=priority,
            images=references,
        )
    except Exception:
        for reference in references:
            storage.delete(reference)
        raise

    await _deliver(db, dispatcher, result)
    return {
        "success": True,
        "message": "Complaint created successfully",
        "complaint": _complaint(result),
    }


@router.get("/")
async def list_complaints(
    status: Optional[str] = None,
    search: Optional[str] = None,
    include_deleted: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1),
    sort_by: str = "created_at",
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    manager: ComplaintLifecycleManager = Depends(get_lifecycle_manager),
):
    """Students see their own complaints; admins see everyone's"""
    result = await manager.list_complaints(
        db,
        actor_id=current_user.id,
        actor_is_admin=current_user.is_admin,
        status=status,
        search=search,
        include_deleted=include_deleted,
        page=page,
        limit=limit,
        sort_by=sort_by,
    )
    return {
        "success": True,
        "complaints": [ComplaintListItem.model_validate(c) for c in result.items],
        "pagination": result.pagination,
    }


@router.post("/check-duplicate")
async def check_duplicate(
    request: DuplicateCheckRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_student),
    manager: ComplaintLifecycleManager = Depends(get_lifecycle_manager),
):
    preview = await manager.check_duplicate(
        db,
        student_id=current_user.id,
        title=request.title or "",
        description=request.description or "",
    )
    return {"success": True, **preview}


@router.get("/{complaint_id}")
async def get_complaint(
    complaint_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    manager: ComplaintLifecycleManager = Depends(get_lifecycle_manager),
):
    complaint = await manager.get(
        db, complaint_id, actor_id=current_user.id, actor_is_admin=current_user.is_admin
    )
    return {"success": True, "complaint": ComplaintResponse.model_validate(complaint)}


@router.get("/{complaint_id}/versions")
async def get_versions(
    complaint_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    manager: ComplaintLifecycleManager = Depends(get_lifecycle_manager),
):
    """Audit trail, newest first"""
    versions = await manager.version_history(
        db, complaint_id, actor_id=current_user.id, actor_is_admin=current_user.is_admin
    )
    return {"success": True, "versions": [VersionResponse.model_validate(v) for v in versions]}


@router.put("/{complaint_id}")
async def edit_complaint(
    complaint_id: int,
    request: ComplaintEdit,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_student),
    manager: ComplaintLifecycleManager = Depends(get_lifecycle_manager),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    result = await manager.update(
        db, complaint_id, student_id=current_user.id, **request.model_dump(exclude_none=True)
    )
    await _deliver(db, dispatcher, result)
    return {"success": True, "message": "Complaint updated successfully", "complaint": _complaint(result)}


@router.post("/{complaint_id}/feedback")
async def submit_feedback(
    complaint_id: int,
    request: FeedbackRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_student),
    manager: ComplaintLifecycleManager = Depends(get_lifecycle_manager),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    result = await manager.submit_feedback(
        db,
        complaint_id,
        student_id=current_user.id,
        rating=request.rating,
        feedback=request.feedback,
    )
    await _deliver(db, dispatcher, result)
    return {"success": True, "message": "Thank you for your feedback", "complaint": _complaint(result)}


# --- Admin ---


@router.put("/{complaint_id}/status")
async def update_status(
    complaint_id: int,
    request: StatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    manager: ComplaintLifecycleManager = Depends(get_lifecycle_manager),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    # Omitted fields stay untouched; an explicit null clears a cost
    fields = request.model_dump(exclude_unset=True)
    new_status = fields.pop("status", None)
    result = await manager.transition(
        db,
        complaint_id,
        new_status,
        actor_id=current_user.id,
        actor_is_admin=current_user.is_admin,
        **fields,
    )
    await _deliver(db, dispatcher, result)
    return {"success": True, "message": "Complaint status updated", "complaint": _complaint(result)}


@router.put("/{complaint_id}/cost")
async def update_cost(
    complaint_id: int,
    request: CostUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
    manager: ComplaintLifecycleManager = Depends(get_lifecycle_manager),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    result = await manager.update_cost(
        db, complaint_id, actor_id=current_user.id, **request.model_dump(exclude_unset=True)
    )
    await _deliver(db, dispatcher, result)
    return {"success": True, "message": "Cost updated", "complaint": _complaint(result)}


@router.put("/{complaint_id}/approve")
async def approve_complaint(
    complaint_id: int,
    request: ApprovalRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
    manager: ComplaintLifecycleManager = Depends(get_lifecycle_manager),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    result = await manager.approve(
        db,
        complaint_id,
        request.action,
        actor_id=current_user.id,
        rejection_reason=request.rejection_reason,
    )
    await _deliver(db, dispatcher, result)
    return {"success": True, "message": f"Complaint {request.action}", "complaint": _complaint(result)}


@router.delete("/{complaint_id}")
async def delete_complaint(
    complaint_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    manager: ComplaintLifecycleManager = Depends(get_lifecycle_manager),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    result = await manager.soft_delete(
        db, complaint_id, actor_id=current_user.id, actor_is_admin=current_user.is_admin
    )
    await _deliver(db, dispatcher, result)
    return {"success": True, "message": "Complaint deleted successfully"}


@router.post("/{complaint_id}/restore")
async def restore_complaint(
    complaint_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
    manager: ComplaintLifecycleManager = Depends(get_lifecycle_manager),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    result = await manager.restore(db, complaint_id)
    await _deliver(db, dispatcher, result)
    return {"success": True, "message": "Complaint restored", "complaint": _complaint(result)}
