"""
Duplicate complaint detection

A heuristic screen against the same student's recent complaints. Both missed
duplicates and false hits on a shared phrase are possible; callers treat a
match as "probably the same issue", never as proof.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, or_, literal
from sqlalchemy.ext.asyncio import AsyncSession

from hostel_complaints.database import storage_errors
from hostel_complaints.models.complaint import Complaint
from hostel_complaints.utils.db_compat import text_contains
from hostel_complaints.utils.helpers import normalize_text, utcnow


@dataclass
class DuplicateCandidate:
    id: int
    title: str
    status: str
    created_at: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class DuplicateDetector(ABC):
    """Strategy interface; a similarity-based detector can replace the substring one"""

    @abstractmethod
    async def check(
        self,
        db: AsyncSession,
        student_id: int,
        title: str,
        description: str,
        window_days: int,
    ) -> List[DuplicateCandidate]:
        """Return up to ``limit`` candidate matches, newest first"""


class SubstringDuplicateDetector(DuplicateDetector):
    """
    Case-insensitive substring match on truncated, normalized prefixes.

    A stored complaint matches when, within the window and for the same student:
      - its title contains the first ``title_prefix`` chars of the new title, or
      - the new title contains its whole title, or
      - its description contains the first ``description_prefix`` chars of the
        new description (taken from the first ``description_window`` chars).
    """

    def __init__(
        self,
        title_prefix: int = 30,
        description_prefix: int = 50,
        description_window: int = 200,
        limit: int = 3,
    ):
        self.title_prefix = title_prefix
        self.description_prefix = description_prefix
        self.description_window = description_window
        self.limit = limit

    def _prefixes(self, title: str, description: str):
        normalized_title = normalize_text(title or "")
        title_key = normalized_title[: self.title_prefix]
        desc_key = (description or "").strip().lower()[: self.description_window][: self.description_prefix]
        return normalized_title, title_key, desc_key

    async def check(
        self,
        db: AsyncSession,
        student_id: int,
        title: str,
        description: str,
        window_days: int,
    ) -> List[DuplicateCandidate]:
        normalized_title, title_key, desc_key = self._prefixes(title, description)

        clauses = []
        if title_key:
            clauses.append(text_contains(func.lower(Complaint.title), title_key))
            clauses.append(text_contains(literal(normalized_title), func.lower(Complaint.title)))
        if desc_key:
            clauses.append(text_contains(func.lower(Complaint.description), desc_key))
        if not clauses:
            return []

        cutoff = utcnow() - timedelta(days=window_days)
        query = (
            select(Complaint.id, Complaint.title, Complaint.status, Complaint.created_at)
            .where(
                Complaint.student_id == student_id,
                Complaint.deleted_at.is_(None),
                Complaint.created_at >= cutoff,
                or_(*clauses),
            )
            .order_by(Complaint.created_at.desc(), Complaint.id.desc())
            .limit(self.limit)
        )

        async with storage_errors("duplicate check"):
            result = await db.execute(query)
            rows = result.all()

        return [
            DuplicateCandidate(
                id=row.id,
                title=row.title,
                status=getattr(row.status, "value", row.status),
                created_at=row.created_at,
            )
            for row in rows
        ]
