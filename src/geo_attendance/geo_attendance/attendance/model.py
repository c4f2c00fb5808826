from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..common.datetime_utils import isoformat_or_none
from ..core.enums import AttendanceStatus


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one student's attendance in one session.

    ``timestamp`` is when the status was last set, not when the row was created.
    """

    record_id: str
    session_id: str
    student_id: str
    status: AttendanceStatus
    timestamp: datetime
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "recordId": self.record_id,
            "sessionId": self.session_id,
            "studentId": self.student_id,
            "status": self.status.value,
            "timestamp": isoformat_or_none(self.timestamp),
            "reason": self.reason,
        }
