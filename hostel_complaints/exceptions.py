"""
Complaint service exception hierarchy.

Services raise these; the API layer renders every subclass as
``{"success": false, "message": ...}`` with the class's status code.

Usage:
    from hostel_complaints.exceptions import NotFoundError, ValidationError

    raise NotFoundError("Complaint", complaint_id)
    raise ValidationError("Title must be between 5 and 100 characters")
"""
from typing import Any, Dict, List, Optional


class ComplaintServiceError(Exception):
    """Base exception for all complaint service errors"""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "message": self.message, **self.details}


class ValidationError(ComplaintServiceError):
    """Malformed or out-of-range input"""

    status_code = 400


class NotFoundError(ComplaintServiceError):
    """Entity absent, or hidden by soft-delete"""

    status_code = 404

    def __init__(self, resource: str, resource_id: Any = None, message: Optional[str] = None):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(message or f"{resource} not found")


class AuthorizationError(ComplaintServiceError):
    """Actor lacks rights over the entity"""

    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message)


class ConflictError(ComplaintServiceError):
    """
    Duplicate-detection hit or a lost concurrent update.

    For duplicates, ``possible_duplicate_id`` is the newest matching complaint and
    ``similar_complaints`` lists up to three candidates.
    """

    status_code = 409

    def __init__(
        self,
        message: str,
        possible_duplicate_id: Optional[int] = None,
        similar_complaints: Optional[List[Dict[str, Any]]] = None,
    ):
        self.possible_duplicate_id = possible_duplicate_id
        self.similar_complaints = similar_complaints or []
        details: Dict[str, Any] = {}
        if possible_duplicate_id is not None:
            details["possible_duplicate_id"] = possible_duplicate_id
            details["similar_complaints"] = self.similar_complaints
        super().__init__(message, details)


class StorageError(ComplaintServiceError):
    """Data store unavailable or timed out. Not retried here."""

    status_code = 500

    def __init__(self, message: str = "Data store unavailable"):
        super().__init__(message)
