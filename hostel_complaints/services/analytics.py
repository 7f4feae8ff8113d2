"""
Complaint analytics - read-only rollups over live complaints
"""
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from hostel_complaints.database import storage_errors
from hostel_complaints.models.complaint import Complaint, ComplaintStatus, ComplaintPriority
from hostel_complaints.utils.db_compat import days_between
from hostel_complaints.utils.helpers import utcnow

LIVE = Complaint.deleted_at.is_(None)


def _key(value):
    return getattr(value, "value", value)


async def _count(db: AsyncSession, *filters) -> int:
    result = await db.execute(select(func.count(Complaint.id)).where(LIVE, *filters))
    return result.scalar_one()


async def _group_counts(db: AsyncSession, column) -> List[Dict[str, Any]]:
    result = await db.execute(
        select(column, func.count(Complaint.id))
        .where(LIVE)
        .group_by(column)
        .order_by(func.count(Complaint.id).desc())
    )
    return [{"name": _key(value), "value": count} for value, count in result.all()]


async def _average_resolution_days(db: AsyncSession) -> int:
    result = await db.execute(
        select(func.avg(days_between(Complaint.resolved_at, Complaint.created_at)))
        .where(LIVE, Complaint.resolved_at.is_not(None))
    )
    avg_days = result.scalar_one_or_none()
    return round(avg_days) if avg_days is not None else 0


async def get_analytics(db: AsyncSession) -> Dict[str, Any]:
    """Admin dashboard rollup"""
    async with storage_errors("analytics"):
        total = await _count(db)
        resolved = await _count(db, Complaint.status == ComplaintStatus.RESOLVED)
        active = await _count(
            db, Complaint.status.in_([ComplaintStatus.PENDING, ComplaintStatus.IN_PROGRESS])
        )
        high_priority = await _count(
            db,
            Complaint.priority == ComplaintPriority.HIGH,
            Complaint.status != ComplaintStatus.RESOLVED,
        )

        by_category = await _group_counts(db, Complaint.category)
        by_status = await _group_counts(db, Complaint.status)
        by_priority = await _group_counts(db, Complaint.priority)
        avg_resolution_days = await _average_resolution_days(db)

        rating_result = await db.execute(
            select(func.avg(Complaint.resolution_rating)).where(
                LIVE,
                Complaint.status == ComplaintStatus.RESOLVED,
                Complaint.resolution_rating.is_not(None),
            )
        )
        avg_rating = rating_result.scalar_one_or_none()

    return {
        "total_complaints": total,
        "resolved_complaints": resolved,
        "active_complaints": active,
        "high_priority_complaints": high_priority,
        "complaints_by_category": by_category,
        "complaints_by_status": by_status,
        "complaints_by_priority": by_priority,
        "average_resolution_time": avg_resolution_days,
        "average_resolution_rating": round(float(avg_rating), 2) if avg_rating is not None else None,
    }


def _status_trend(rows, today: date, days: int = 7) -> List[Dict[str, Any]]:
    trend = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        statuses = [_key(status) for created_at, status in rows if created_at.date() == day]
        trend.append({
            "date": day.isoformat(),
            "pending": statuses.count(ComplaintStatus.PENDING.value),
            "in_progress": statuses.count(ComplaintStatus.IN_PROGRESS.value),
            "resolved": statuses.count(ComplaintStatus.RESOLVED.value),
            "total": len(statuses),
        })
    return trend


async def get_statistics(db: AsyncSession, today: Optional[date] = None) -> Dict[str, Any]:
    """Status counts, distributions and a 7-day creation trend"""
    today = today or utcnow().date()
    window_start = datetime.combine(today - timedelta(days=6), datetime.min.time())

    async with storage_errors("statistics"):
        status_counts = {row["name"]: row["value"] for row in await _group_counts(db, Complaint.status)}
        category_distribution = await _group_counts(db, Complaint.category)
        priority_distribution = await _group_counts(db, Complaint.priority)
        avg_resolution_days = await _average_resolution_days(db)

        recent = await db.execute(
            select(Complaint.created_at, Complaint.status)
            .where(LIVE, Complaint.created_at >= window_start)
        )
        rows = recent.all()

    return {
        "stats": {
            "total": sum(status_counts.values()),
            "pending": status_counts.get(ComplaintStatus.PENDING.value, 0),
            "in_progress": status_counts.get(ComplaintStatus.IN_PROGRESS.value, 0),
            "resolved": status_counts.get(ComplaintStatus.RESOLVED.value, 0),
        },
        "category_distribution": category_distribution,
        "priority_distribution": priority_distribution,
        "status_trend": _status_trend(rows, today),
        "avg_resolution_time": avg_resolution_days,
    }
