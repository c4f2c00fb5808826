from __future__ import annotations

from dataclasses import dataclass

from .attendance.events import LoggingEventSink, RecordEventSink
from .attendance.ledger import AttendanceLedger
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .checkin.processor import CheckInProcessor
from .core.constants import (
    DEFAULT_LOW_ACCURACY_WARNING_METERS,
    DEFAULT_MAX_DISTANCE_METERS,
    DEFAULT_SESSION_DURATION_MINUTES,
)
from .database.connection import DBConfig, DatabaseConnection
from .roster.reconciler import RosterReconciler
from .sessions.mysql_session_repository import MySQLSessionRepository
from .sessions.policy import SessionPolicy
from .sessions.service import SessionService
from .users.mysql_profile_repository import MySQLProfileRepository


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection

    sessions_repo: MySQLSessionRepository
    attendance_repo: MySQLAttendanceRepository
    profiles_repo: MySQLProfileRepository

    policy: SessionPolicy
    session_service: SessionService
    ledger: AttendanceLedger
    checkin_processor: CheckInProcessor
    roster_reconciler: RosterReconciler

    low_accuracy_warning_meters: float


def build_container(
    *,
    db_config: dict,
    max_distance_meters: float = DEFAULT_MAX_DISTANCE_METERS,
    session_duration_minutes: int = DEFAULT_SESSION_DURATION_MINUTES,
    low_accuracy_warning_meters: float = DEFAULT_LOW_ACCURACY_WARNING_METERS,
    events: RecordEventSink | None = None,
) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
        connect_timeout=int(db_config.get("connect_timeout", 5)),
    )
    conn = DatabaseConnection.get_instance(config)

    sessions_repo = MySQLSessionRepository(conn)
    attendance_repo = MySQLAttendanceRepository(conn)
    profiles_repo = MySQLProfileRepository(conn)

    policy = SessionPolicy(max_distance_meters=max_distance_meters)
    session_service = SessionService(sessions_repo, policy, default_duration_minutes=session_duration_minutes)
    ledger = AttendanceLedger(attendance_repo, events=events or LoggingEventSink())
    checkin_processor = CheckInProcessor(
        sessions_repo,
        session_service,
        ledger,
        max_distance_meters=max_distance_meters,
        low_accuracy_warning_meters=low_accuracy_warning_meters,
    )
    roster_reconciler = RosterReconciler(ledger, profiles_repo)

    return Container(
        conn=conn,
        sessions_repo=sessions_repo,
        attendance_repo=attendance_repo,
        profiles_repo=profiles_repo,
        policy=policy,
        session_service=session_service,
        ledger=ledger,
        checkin_processor=checkin_processor,
        roster_reconciler=roster_reconciler,
        low_accuracy_warning_meters=float(low_accuracy_warning_meters),
    )
