from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import AttendanceStatus
from .model import AttendanceRecord


class AttendanceRepository(Protocol):
    def get(self, session_id: str, student_id: str) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def list_for_session(self, session_id: str) -> Sequence[AttendanceRecord]:
        """Newest ``timestamp`` first."""

        raise NotImplementedError

    def list_for_student(self, student_id: str, *, limit: int = 50) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def upsert(
        self,
        *,
        record_id: str,
        session_id: str,
        student_id: str,
        status: AttendanceStatus,
        timestamp: datetime,
        reason: Optional[str] = None,
        overwrite: bool = False,
    ) -> AttendanceRecord:
        """Insert-or-update keyed on ``(session_id, student_id)``.

        ``record_id`` is only used when a new row is created. On conflict the
        stored fields are replaced only if ``timestamp`` is not older than the
        stored one (last write wins), unless ``overwrite`` is set. Returns the
        row as persisted.
        """

        raise NotImplementedError
