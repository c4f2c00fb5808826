from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..attendance.ledger import AttendanceLedger
from ..attendance.model import AttendanceRecord
from ..common.datetime_utils import ensure_aware
from ..common.validators import optional_text, require_non_empty
from ..core.constants import BULK_CORRECTION_REASON, MANUAL_CORRECTION_REASON
from ..core.enums import AttendanceStatus, Role
from ..core.exceptions import StoreUnavailableError, StudentNotFoundError, ValidationError
from ..users.model import Profile
from ..users.repository import ProfileRepository
from .model import BulkResult, RosterEntry, RosterSummary

logger = logging.getLogger(__name__)


def build_roster(enrolled_students: Iterable[Profile], records: Iterable[AttendanceRecord]) -> List[RosterEntry]:
    """Pair every enrolled student with their record (or None) in triage order.

    Students with a record come first, newest timestamp first; students
    without one follow alphabetically by name. Ids break every remaining tie,
    so the order is fully determined by the input.
    """

    by_student: Dict[str, AttendanceRecord] = {}
    for r in records:
        current = by_student.get(r.student_id)
        if current is None or r.timestamp > current.timestamp:
            by_student[r.student_id] = r

    entries = [RosterEntry(student=s, record=by_student.get(s.user_id)) for s in enrolled_students]

    def sort_key(entry: RosterEntry) -> Tuple:
        if entry.record is not None:
            return (0, -entry.record.timestamp.timestamp(), "", entry.student.user_id)
        return (1, 0.0, entry.student.name.casefold(), entry.student.user_id)

    return sorted(entries, key=sort_key)


def summarize(entries: Sequence[RosterEntry]) -> RosterSummary:
    present = sum(1 for e in entries if e.record and e.record.status == AttendanceStatus.PRESENT)
    absent = sum(1 for e in entries if e.record and e.record.status == AttendanceStatus.ABSENT)
    return RosterSummary(present=present, absent=absent, unmarked=len(entries) - present - absent)


class RosterReconciler:
    """Lecturer-side view and corrections for one session's attendance."""

    def __init__(self, ledger: AttendanceLedger, profiles: ProfileRepository):
        self._ledger = ledger
        self._profiles = profiles

    def session_roster(self, session_id: str) -> Tuple[List[RosterEntry], RosterSummary]:
        session_id = require_non_empty(session_id, "sessionId")
        students = self._profiles.list_by_role(Role.STUDENT)
        entries = build_roster(students, self._ledger.list_for_session(session_id))
        return entries, summarize(entries)

    def set_status(
        self,
        session_id: str,
        student_id: str,
        target_status: AttendanceStatus | str,
        *,
        now: datetime,
        reason: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> AttendanceRecord:
        """Single manual correction; lecturers may correct locked or expired sessions too.

        Without ``timestamp`` the revision is stamped ``now`` and competes under
        last-write-wins like any other write. An explicit ``timestamp`` (not in
        the future) is the lecturer restating when the status applied: it
        replaces the stored record even if that one is newer.
        """

        student_id = require_non_empty(student_id, "studentId")
        profile = self._profiles.get_by_id(student_id)
        if profile is None or not profile.has_role(Role.STUDENT):
            raise StudentNotFoundError("Student not found")

        reason = optional_text(reason, "reason") or MANUAL_CORRECTION_REASON
        if timestamp is None:
            return self._ledger.upsert(session_id, student_id, target_status, now, reason)

        timestamp = ensure_aware(timestamp)
        if timestamp > ensure_aware(now):
            raise ValidationError("timestamp cannot be in the future")
        return self._ledger.upsert(session_id, student_id, target_status, timestamp, reason, overwrite=True)

    def bulk_apply(
        self,
        session_id: str,
        student_ids: Iterable[str],
        target_status: AttendanceStatus | str,
        reason_label: Optional[str],
        now: datetime,
    ) -> BulkResult:
        """Best-effort batch: each student is written independently, nothing is rolled back.

        A student whose record already has ``target_status`` with the same
        reason is skipped; a different reason still counts as a correction.
        """

        session_id = require_non_empty(session_id, "sessionId")
        try:
            target_status = AttendanceStatus(target_status)
        except ValueError:
            raise ValidationError(f"Unknown attendance status: {target_status!r}")
        reason = optional_text(reason_label, "reason") or BULK_CORRECTION_REASON

        existing = {r.student_id: r for r in self._ledger.list_for_session(session_id)}
        result = BulkResult()
        seen = set()

        for raw_id in student_ids:
            student_id = str(raw_id or "").strip()
            if not student_id or student_id in seen:
                continue
            seen.add(student_id)

            current = existing.get(student_id)
            if current is not None and current.status == target_status and current.reason == reason:
                result.skipped += 1
                continue

            try:
                self._ledger.upsert(session_id, student_id, target_status, now, reason)
            except (StoreUnavailableError, ValidationError):
                logger.warning("bulk update failed for student %s in session %s", student_id, session_id, exc_info=True)
                result.failed.append(student_id)
                continue
            result.succeeded += 1

        logger.info(
            "bulk %s on session %s: %d updated, %d skipped, %d failed",
            target_status.value,
            session_id,
            result.succeeded,
            result.skipped,
            len(result.failed),
        )
        return result
