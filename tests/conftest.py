from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

import pytest

from src.geo_attendance.geo_attendance.attendance.ledger import AttendanceLedger
from src.geo_attendance.geo_attendance.attendance.model import AttendanceRecord
from src.geo_attendance.geo_attendance.checkin.processor import CheckInProcessor
from src.geo_attendance.geo_attendance.core.enums import AttendanceStatus, Role
from src.geo_attendance.geo_attendance.core.exceptions import StoreUnavailableError
from src.geo_attendance.geo_attendance.roster.reconciler import RosterReconciler
from src.geo_attendance.geo_attendance.sessions.model import Session
from src.geo_attendance.geo_attendance.sessions.policy import SessionPolicy
from src.geo_attendance.geo_attendance.sessions.service import SessionService
from src.geo_attendance.geo_attendance.users.model import Profile

LAGOS_LAT = 6.5244
LAGOS_LON = 3.3792


class InMemorySessions:
    def __init__(self, sessions: Optional[List[Session]] = None):
        self._lock = threading.Lock()
        self.by_id: Dict[str, Session] = {s.session_id: s for s in (sessions or [])}
        self.reads = 0
        self.fail_writes = False

    def get_by_id(self, session_id: str) -> Optional[Session]:
        self.reads += 1
        return self.by_id.get(session_id)

    def get_by_broadcast_code(self, broadcast_code: str) -> Optional[Session]:
        matches = [s for s in self.by_id.values() if s.broadcast_code == broadcast_code]
        matches.sort(key=lambda s: s.lecture_start_time, reverse=True)
        return matches[0] if matches else None

    def create(self, session: Session) -> Session:
        self.by_id[session.session_id] = session
        return session

    def set_active(self, session_id, *, is_active, expected_active=None, end_time=None) -> bool:
        if self.fail_writes:
            raise StoreUnavailableError("sessions store down")
        with self._lock:
            current = self.by_id.get(session_id)
            if current is None:
                return False
            if expected_active is not None and current.is_active != expected_active:
                return False
            updated = replace(current, is_active=is_active)
            if end_time is not None:
                updated = replace(updated, end_time=end_time)
            self.by_id[session_id] = updated
            return True

    def list_flagged_active(self, *, limit: int = 200):
        return [s for s in self.by_id.values() if s.is_active][:limit]

    def deactivate_expired(self, *, now: datetime) -> int:
        count = 0
        for sid, s in list(self.by_id.items()):
            if s.is_active and s.end_time is not None and s.end_time < now:
                self.by_id[sid] = replace(s, is_active=False)
                count += 1
        return count


class InMemoryAttendance:
    """Mimics the unique key + last-write-wins upsert of the MySQL repository."""

    def __init__(self):
        self._lock = threading.Lock()
        self.rows: Dict[Tuple[str, str], AttendanceRecord] = {}
        self.upsert_calls = 0
        self.fail_for: set = set()
        self.down = False

    def get(self, session_id: str, student_id: str) -> Optional[AttendanceRecord]:
        return self.rows.get((session_id, student_id))

    def list_for_session(self, session_id: str):
        items = [r for r in self.rows.values() if r.session_id == session_id]
        items.sort(key=lambda r: (-r.timestamp.timestamp(), r.student_id))
        return items

    def list_for_student(self, student_id: str, *, limit: int = 50):
        items = [r for r in self.rows.values() if r.student_id == student_id]
        items.sort(key=lambda r: r.timestamp, reverse=True)
        return items[:limit]

    def upsert(self, *, record_id, session_id, student_id, status, timestamp, reason=None, overwrite=False) -> AttendanceRecord:
        if self.down or student_id in self.fail_for:
            raise StoreUnavailableError("attendance store down")
        with self._lock:
            self.upsert_calls += 1
            key = (session_id, student_id)
            current = self.rows.get(key)
            if current is None:
                self.rows[key] = AttendanceRecord(
                    record_id=record_id,
                    session_id=session_id,
                    student_id=student_id,
                    status=status,
                    timestamp=timestamp,
                    reason=reason,
                )
            elif overwrite or timestamp >= current.timestamp:
                self.rows[key] = replace(current, status=status, timestamp=timestamp, reason=reason)
            return self.rows[key]


class InMemoryProfiles:
    def __init__(self, profiles: Optional[List[Profile]] = None):
        self.by_id = {p.user_id: p for p in (profiles or [])}

    def get_by_id(self, user_id: str) -> Optional[Profile]:
        return self.by_id.get(user_id)

    def list_by_role(self, role: Role):
        return [p for p in self.by_id.values() if p.has_role(role)]


class RecordingSink:
    def __init__(self):
        self.events = []

    def publish(self, event) -> None:
        self.events.append(event)


def make_session(now: datetime, **overrides) -> Session:
    from datetime import timedelta

    fields = dict(
        session_id="sess-1",
        course_id="CSC401",
        course_name="Distributed Systems",
        lecture_start_time=now,
        end_time=now + timedelta(hours=2),
        venue_lat=LAGOS_LAT,
        venue_lon=LAGOS_LON,
        is_active=True,
        broadcast_code="582934",
    )
    fields.update(overrides)
    return Session(**fields)


def make_student(user_id: str, name: str) -> Profile:
    return Profile(user_id=user_id, name=name, roles=frozenset({Role.STUDENT}))


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 2, 1, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def session_factory():
    return make_session


@pytest.fixture
def student_factory():
    return make_student


@pytest.fixture
def sessions_repo(fixed_now):
    return InMemorySessions([make_session(fixed_now)])


@pytest.fixture
def attendance_repo():
    return InMemoryAttendance()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def policy():
    return SessionPolicy(max_distance_meters=100.0)


@pytest.fixture
def session_service(sessions_repo, policy):
    return SessionService(sessions_repo, policy)


@pytest.fixture
def ledger(attendance_repo, sink):
    return AttendanceLedger(attendance_repo, events=sink)


@pytest.fixture
def processor(sessions_repo, session_service, ledger):
    return CheckInProcessor(sessions_repo, session_service, ledger, max_distance_meters=100.0)


@pytest.fixture
def profiles_repo():
    return InMemoryProfiles(
        [
            make_student("stu-amaka", "Amaka Eze"),
            make_student("stu-bola", "Bola Adeyemi"),
            make_student("stu-chidi", "Chidi Nwosu"),
            Profile(user_id="lect-ade", name="Dr. Ade Okafor", roles=frozenset({Role.LECTURER})),
        ]
    )


@pytest.fixture
def reconciler(ledger, profiles_repo):
    return RosterReconciler(ledger, profiles_repo)


@pytest.fixture
def present():
    return AttendanceStatus.PRESENT


@pytest.fixture
def sessions_repo_factory():
    return InMemorySessions
