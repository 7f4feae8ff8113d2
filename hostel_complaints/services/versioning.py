"""
Versioning recorder - append-only snapshot log of tracked complaint fields
"""
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from hostel_complaints.database import storage_errors
from hostel_complaints.exceptions import ConflictError
from hostel_complaints.models.complaint import Complaint, ComplaintVersion, VERSIONED_FIELDS
from hostel_complaints.utils.helpers import utcnow
from hostel_complaints.utils.logger import get_logger

logger = get_logger(__name__)


def _plain(value):
    return getattr(value, "value", value)


class VersionRecorder:
    """
    Bumps a complaint's version and writes the matching ComplaintVersion row.

    Runs inside the caller's transaction. The bump is a compare-and-set on
    (id, version), so two writers that both read version N cannot both
    produce N+1.
    """

    async def snapshot(
        self,
        db: AsyncSession,
        complaint: Complaint,
        actor_id: Optional[int],
        reason: str,
    ) -> ComplaintVersion:
        expected = complaint.version or 1
        new_version = expected + 1
        touched_at = utcnow()

        async with storage_errors("version snapshot"):
            # Field changes go out first so the snapshot and row agree
            await db.flush()
            result = await db.execute(
                update(Complaint)
                .where(Complaint.id == complaint.id, Complaint.version == expected)
                .values(version=new_version, updated_at=touched_at)
                .execution_options(synchronize_session=False)
            )

        if result.rowcount != 1:
            logger.warning(
                f"Version conflict on complaint {complaint.id}: expected v{expected}"
            )
            raise ConflictError("Complaint was modified concurrently; reload and try again")

        set_committed_value(complaint, "version", new_version)
        set_committed_value(complaint, "updated_at", touched_at)

        entry = ComplaintVersion(
            complaint_id=complaint.id,
            version=new_version,
            changed_by=actor_id,
            change_reason=reason or "Status/notes update",
            created_at=utcnow(),
            **{field: _plain(getattr(complaint, field)) for field in VERSIONED_FIELDS},
        )
        db.add(entry)

        async with storage_errors("version snapshot"):
            await db.flush()

        logger.debug(f"Complaint {complaint.id} -> v{new_version} ({entry.change_reason})")
        return entry

    async def history(self, db: AsyncSession, complaint_id: int) -> List[ComplaintVersion]:
        """Versions for a complaint, newest first"""
        async with storage_errors("version history"):
            result = await db.execute(
                select(ComplaintVersion)
                .where(ComplaintVersion.complaint_id == complaint_id)
                .order_by(ComplaintVersion.version.desc())
            )
            return list(result.scalars().all())
