"""
Feature toggle endpoints
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from hostel_complaints.api.auth import get_current_user, require_admin
from hostel_complaints.database import get_db
from hostel_complaints.models.user import User
from hostel_complaints.services import feature_toggles as toggle_service
from hostel_complaints.services.feature_toggles import FeatureToggleProvider, get_feature_toggles

router = APIRouter()


class FeatureToggleResponse(BaseModel):
    id: int
    key: str
    name: str
    description: str
    enabled: bool
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class FeatureToggleUpdate(BaseModel):
    enabled: Optional[bool] = None


@router.get("/")
async def list_feature_toggles(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    toggles = await toggle_service.list_toggles(db)
    return {"success": True, "toggles": [FeatureToggleResponse.model_validate(t) for t in toggles]}


@router.get("/{key}")
async def get_feature_toggle(
    key: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    toggle = await toggle_service.get_toggle(db, key)
    return {"success": True, "toggle": FeatureToggleResponse.model_validate(toggle)}


@router.put("/{key}")
async def update_feature_toggle(
    key: str,
    request: FeatureToggleUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
    provider: FeatureToggleProvider = Depends(get_feature_toggles),
):
    """Flip a toggle; a body without ``enabled`` switches it on"""
    enabled = True if request.enabled is None else request.enabled
    toggle = await toggle_service.set_toggle(db, key, enabled, provider=provider)
    await db.commit()
    return {
        "success": True,
        "message": f"Feature '{key}' {'enabled' if enabled else 'disabled'}",
        "toggle": FeatureToggleResponse.model_validate(toggle),
    }
