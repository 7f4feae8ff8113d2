"""
Database compatibility helpers for SQLite and PostgreSQL.
"""
from sqlalchemy import func, extract
from hostel_complaints.database import is_sqlite


def days_between(end_column, start_column):
    """Fractional days from start to end (works with both SQLite and PostgreSQL)."""
    if is_sqlite:
        return func.julianday(end_column) - func.julianday(start_column)
    return extract("epoch", end_column - start_column) / 86400.0


def text_contains(haystack, needle):
    """Filter: ``needle`` occurs literally inside ``haystack`` (no LIKE wildcards)."""
    if is_sqlite:
        return func.instr(haystack, needle) > 0
    return func.strpos(haystack, needle) > 0
