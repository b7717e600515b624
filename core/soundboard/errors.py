"""
Soundboard Error Taxonomy

Every failure the soundboard core can surface to a request handler is one of
these classes. The HTTP layer maps them onto status codes through a single
error handler per class family, so handlers never build error responses by hand.

Classes:
    CueboardError: Base class, carries status_code and details
    ValidationError: Missing or malformed field (400)
    NotFoundError: Referenced id absent (400)
    AuthError: Missing or invalid session (401)
    ConflictError: Version mismatch on a CAS write (409)
    PersistenceError: Temp-write or rename failed (500)
"""

from typing import Any, Dict, Optional


class CueboardError(Exception):
    """Base exception for soundboard errors."""
    status_code = 500
    error = "internal error"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message or self.error)
        self.message = message or self.error
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(CueboardError):
    """A required field is missing or malformed. Nothing was written."""
    status_code = 400
    error = "invalid payload"


class NotFoundError(CueboardError):
    """A referenced id does not exist."""
    status_code = 400
    error = "not found"


class AuthError(CueboardError):
    """No valid session for the requested operation."""
    status_code = 401
    error = "unauthorized"


class ConflictError(CueboardError):
    """
    The persisted version differs from the version the caller read.

    The caller must re-read the document and retry; conflicting writes are
    never merged.
    """
    status_code = 409
    error = "conflict"

    def __init__(self, expected_version: int, current_version: int, document: str = ""):
        super().__init__(
            f"version conflict on {document or 'document'}: expected {expected_version}, found {current_version}",
            {"expectedVersion": expected_version, "currentVersion": current_version},
        )
        self.expected_version = expected_version
        self.current_version = current_version


class PersistenceError(CueboardError):
    """Writing the document failed. The previous document is intact."""
    status_code = 500
    error = "persistence failure"
