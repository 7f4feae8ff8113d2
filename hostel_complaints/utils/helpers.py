"""
General helper utilities
"""
import math
import re
from datetime import datetime, timezone
from typing import Any, Dict

_WHITESPACE = re.compile(r"\s+")


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_text(text: str) -> str:
    """Trim, lowercase and collapse runs of whitespace"""
    return _WHITESPACE.sub(" ", text.strip().lower())


def format_currency(amount: float, currency: str = "INR") -> str:
    """Format a cost with its currency tag"""
    symbol = "₹" if currency == "INR" else f"{currency} "
    return f"{symbol}{amount:,.2f}"


def build_pagination(total: int, page: int, limit: int) -> Dict[str, Any]:
    """Pagination block returned with every list response"""
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "pages": math.ceil(total / limit) if limit else 0,
    }
