from __future__ import annotations

from typing import Optional

from .enums import RejectionReason


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class SessionNotFoundError(DomainError):
    """Raised when a session id or broadcast code matches nothing."""


class StudentNotFoundError(DomainError):
    """Raised when a correction names a user that is not a student profile."""


class AdmissionRejected(DomainError):
    """Raised when a check-in attempt is refused by the session policy."""

    def __init__(self, reason: RejectionReason, message: str, *, distance_meters: Optional[float] = None):
        super().__init__(message)
        self.reason = reason
        self.distance_meters = distance_meters


class StoreUnavailableError(DomainError):
    """Raised when the document store cannot be reached or fails mid-operation.

    Unlike policy rejections, retrying after this error is safe.
    """
