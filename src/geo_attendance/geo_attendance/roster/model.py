from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from ..attendance.model import AttendanceRecord
from ..users.model import Profile


@dataclass(frozen=True)
class RosterEntry:
    student: Profile
    record: Optional[AttendanceRecord] = None

    def to_dict(self) -> dict:
        return {
            "student": self.student.to_dict(),
            "record": self.record.to_dict() if self.record else None,
        }


@dataclass(frozen=True)
class RosterSummary:
    present: int
    absent: int
    unmarked: int

    @property
    def total(self) -> int:
        return self.present + self.absent + self.unmarked


@dataclass
class BulkResult:
    """Tally of a best-effort batch. ``failed`` lists student ids, ``skipped`` counts no-ops."""

    succeeded: int = 0
    failed: List[str] = field(default_factory=list)
    skipped: int = 0

    def to_dict(self) -> dict:
        return {"succeeded": self.succeeded, "failed": list(self.failed), "skipped": self.skipped}
