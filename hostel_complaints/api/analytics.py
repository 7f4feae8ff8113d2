"""
Analytics endpoints (admin only)
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hostel_complaints.api.auth import require_admin
from hostel_complaints.database import get_db
from hostel_complaints.models.user import User
from hostel_complaints.services.analytics import get_analytics, get_statistics

router = APIRouter()


@router.get("/statistics")
async def statistics(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Status counts, distributions and the 7-day trend"""
    return {"success": True, **await get_statistics(db)}


@router.get("/summary")
async def summary(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return {"success": True, "analytics": await get_analytics(db)}
