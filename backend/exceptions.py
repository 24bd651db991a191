"""
Domain errors for the attendance engine.

Every rejection the engine produces is a `PresensiError` carrying a stable
`ErrorCode`, a human message and a `details` dict with whatever the client
needs to correct itself (minutes to wait, distance, available reasons...).
The HTTP layer renders them through a single exception handler.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    # General
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"

    # Auth
    AUTHORIZATION_FAILED = "AUTHORIZATION_FAILED"
    SESSION_ACCESS_DENIED = "SESSION_ACCESS_DENIED"

    # Check-in
    INVALID_QR = "INVALID_QR"
    QR_TOKEN_MISMATCH = "QR_TOKEN_MISMATCH"
    OUTSIDE_GEOFENCE = "OUTSIDE_GEOFENCE"
    SESSION_CONFLICT = "SESSION_CONFLICT"
    NO_ACTIVE_SCHEDULE = "NO_ACTIVE_SCHEDULE"
    TOO_EARLY = "TOO_EARLY"
    SESSION_COMPLETED = "SESSION_COMPLETED"
    ALREADY_CHECKED_OUT = "ALREADY_CHECKED_OUT"

    # Check-out
    SESSION_NOT_ONGOING = "SESSION_NOT_ONGOING"
    CHECKOUT_TOO_EARLY = "CHECKOUT_TOO_EARLY"
    CHECKOUT_REASON_REQUIRED = "CHECKOUT_REASON_REQUIRED"

    # Leave
    INVALID_LEAVE_TYPE = "INVALID_LEAVE_TYPE"


class PresensiError(Exception):
    status_code = 400
    default_code = ErrorCode.VALIDATION_ERROR

    def __init__(
        self,
        message: str,
        error_code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        return {
            "detail": self.message,
            "code": self.error_code.value,
            **self.details,
        }

    def __str__(self) -> str:
        return f"{self.error_code.value}: {self.message}"


class ValidationError(PresensiError):
    status_code = 400
    default_code = ErrorCode.VALIDATION_ERROR


class PolicyRejection(PresensiError):
    """A well-formed request that the attendance rules refuse."""

    status_code = 400
    default_code = ErrorCode.VALIDATION_ERROR


class SessionConflictError(PresensiError):
    status_code = 409
    default_code = ErrorCode.SESSION_CONFLICT

    def __init__(self, message: str, active_session: dict[str, Any]):
        super().__init__(message, details={"active_session": active_session})
        self.active_session = active_session


class NotFoundError(PresensiError):
    status_code = 404
    default_code = ErrorCode.RESOURCE_NOT_FOUND


class AccessDeniedError(PresensiError):
    status_code = 403
    default_code = ErrorCode.AUTHORIZATION_FAILED


class DuplicateEntryError(PresensiError):
    status_code = 409
    default_code = ErrorCode.DUPLICATE_ENTRY
