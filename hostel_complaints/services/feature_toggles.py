"""
Feature toggle gate - process-wide boolean switches

Toggles are opt-out switches: a key with no row is treated as enabled.
The lifecycle manager depends on FeatureToggleProvider, so tests can swap in
StaticFeatureToggles to force a switch on or off.
"""
import asyncio
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hostel_complaints.config import get_settings
from hostel_complaints.database import storage_errors
from hostel_complaints.exceptions import NotFoundError
from hostel_complaints.models.feature_toggle import FeatureToggle
from hostel_complaints.utils.helpers import utcnow
from hostel_complaints.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

DUPLICATE_DETECTION = "duplicate_detection"

DEFAULT_TOGGLES = [
    {
        "key": DUPLICATE_DETECTION,
        "name": "Duplicate complaint detection",
        "description": "Block new complaints that closely match one the same student filed recently",
        "enabled": True,
    },
]


class FeatureToggleProvider(ABC):
    """Read side of the toggle gate"""

    @abstractmethod
    async def is_enabled(self, db: AsyncSession, key: str) -> bool:
        pass

    def invalidate(self) -> None:
        """Drop any cached state after a toggle is written"""


class StaticFeatureToggles(FeatureToggleProvider):
    """Fixed toggle values, for tests and offline tooling"""

    def __init__(self, values: Optional[Dict[str, bool]] = None):
        self.values = dict(values or {})

    async def is_enabled(self, db: AsyncSession, key: str) -> bool:
        return self.values.get(key, True)


class DatabaseFeatureToggles(FeatureToggleProvider):
    """Toggles read from the feature_toggles table, cached for ``ttl_seconds``"""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: Dict[str, bool] = {}
        self._loaded_at: Optional[float] = None
        self._lock = asyncio.Lock()

    def _is_stale(self) -> bool:
        return self._loaded_at is None or self._clock() - self._loaded_at >= self.ttl_seconds

    async def refresh(self, db: AsyncSession) -> None:
        async with storage_errors("feature toggle refresh"):
            result = await db.execute(select(FeatureToggle.key, FeatureToggle.enabled))
            rows = result.all()
        self._cache = {key: bool(enabled) for key, enabled in rows}
        self._loaded_at = self._clock()
        logger.debug(f"Feature toggle cache refreshed ({len(self._cache)} keys)")

    async def is_enabled(self, db: AsyncSession, key: str) -> bool:
        if self._is_stale():
            async with self._lock:
                if self._is_stale():
                    await self.refresh(db)
        return self._cache.get(key, True)

    def invalidate(self) -> None:
        self._loaded_at = None


async def seed_default_toggles(db: AsyncSession) -> int:
    """Insert any missing default toggles; returns how many were created"""
    created = 0
    for spec in DEFAULT_TOGGLES:
        result = await db.execute(select(FeatureToggle).where(FeatureToggle.key == spec["key"]))
        if result.scalar_one_or_none() is None:
            db.add(FeatureToggle(**spec))
            created += 1
    if created:
        await db.flush()
    return created


async def list_toggles(db: AsyncSession) -> List[FeatureToggle]:
    async with storage_errors("feature toggle listing"):
        result = await db.execute(select(FeatureToggle).order_by(FeatureToggle.key))
        return list(result.scalars().all())


async def get_toggle(db: AsyncSession, key: str) -> FeatureToggle:
    async with storage_errors("feature toggle lookup"):
        result = await db.execute(select(FeatureToggle).where(FeatureToggle.key == key))
        toggle = result.scalar_one_or_none()
    if toggle is None:
        raise NotFoundError("Feature", key)
    return toggle


async def set_toggle(
    db: AsyncSession,
    key: str,
    enabled: bool,
    provider: Optional[FeatureToggleProvider] = None,
) -> FeatureToggle:
    toggle = await get_toggle(db, key)
    toggle.enabled = enabled
    toggle.updated_at = utcnow()
    async with storage_errors("feature toggle update"):
        await db.flush()
    if provider is not None:
        provider.invalidate()
    logger.info(f"Feature toggle '{key}' set to {enabled}")
    return toggle


# Default provider for the running app; routes receive it through get_feature_toggles
feature_toggles = DatabaseFeatureToggles(ttl_seconds=settings.FEATURE_TOGGLE_CACHE_SECONDS)


def get_feature_toggles() -> FeatureToggleProvider:
    """Dependency returning the active toggle provider"""
    return feature_toggles
