from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User roles as stored on roster profiles."""

    STUDENT = "student"
    LECTURER = "lecturer"
    ADMIN = "admin"


class AttendanceStatus(str, Enum):
    """Normalized attendance status persisted on records."""

    PRESENT = "present"
    ABSENT = "absent"


class SessionState(str, Enum):
    """Effective session state derived from the manual flag, end time and clock."""

    ACTIVE = "active"
    LOCKED = "locked"


class RejectionReason(str, Enum):
    """Why a check-in attempt was not admitted."""

    SESSION_LOCKED = "SESSION_LOCKED"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    OUT_OF_GEOFENCE = "OUT_OF_GEOFENCE"
