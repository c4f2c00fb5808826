from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Callable, Optional, Sequence

from ..common.datetime_utils import ensure_aware
from ..common.validators import optional_text, require_non_empty
from ..core.enums import AttendanceStatus
from ..core.exceptions import ValidationError
from .events import LoggingEventSink, RecordEvent, RecordEventSink, RecordEventType
from .model import AttendanceRecord
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


class AttendanceLedger:
    """Owner of the "one record per (session, student)" rule.

    All writes go through ``upsert``; there is no separate create/update path.
    The repository's conditional write keeps the rule under concurrent callers
    and resolves same-pair races by the later ``timestamp``.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        *,
        events: RecordEventSink | None = None,
        id_factory: Callable[[], str] | None = None,
    ):
        self._attendance = attendance
        self._events = events or LoggingEventSink()
        self._new_id = id_factory or (lambda: uuid.uuid4().hex)

    def upsert(
        self,
        session_id: str,
        student_id: str,
        status: AttendanceStatus | str,
        timestamp: datetime,
        reason: Optional[str] = None,
        *,
        overwrite: bool = False,
    ) -> AttendanceRecord:
        """Insert-or-update the pair's record.

        With ``overwrite`` the stored row is replaced even when its timestamp is
        newer; lecturer revisions that carry their own timestamp use it.
        """

        session_id = require_non_empty(session_id, "sessionId")
        student_id = require_non_empty(student_id, "studentId")
        try:
            status = AttendanceStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown attendance status: {status!r}")
        if timestamp is None:
            raise ValidationError("timestamp is required")
        timestamp = ensure_aware(timestamp)
        reason = optional_text(reason, "reason")

        proposed_id = self._new_id()
        record = self._attendance.upsert(
            record_id=proposed_id,
            session_id=session_id,
            student_id=student_id,
            status=status,
            timestamp=timestamp,
            reason=reason,
            overwrite=overwrite,
        )

        if record.record_id == proposed_id:
            self._publish(RecordEvent(type=RecordEventType.CREATED, record=record))
        elif record.timestamp == timestamp:
            self._publish(RecordEvent(type=RecordEventType.UPDATED, record=record))
        else:
            logger.debug(
                "stale write ignored session=%s student=%s (stored %s newer than %s)",
                session_id,
                student_id,
                record.timestamp.isoformat(),
                timestamp.isoformat(),
            )
        return record

    def get(self, session_id: str, student_id: str) -> Optional[AttendanceRecord]:
        return self._attendance.get(session_id, student_id)

    def list_for_session(self, session_id: str) -> Sequence[AttendanceRecord]:
        return self._attendance.list_for_session(session_id)

    def list_for_student(self, student_id: str, *, limit: int = 50) -> Sequence[AttendanceRecord]:
        return self._attendance.list_for_student(student_id, limit=limit)

    def _publish(self, event: RecordEvent) -> None:
        # The record is already committed; a broken channel must not turn that into a failure.
        try:
            self._events.publish(event)
        except Exception:
            logger.exception("failed to publish %s event for record %s", event.type.value, event.record.record_id)
