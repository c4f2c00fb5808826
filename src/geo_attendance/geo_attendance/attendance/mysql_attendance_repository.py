from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from ..core.enums import AttendanceStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, from_db_datetime, to_db_datetime
from .model import AttendanceRecord
from .repository import AttendanceRepository

_SELECT = """
    SELECT record_id, session_id, student_id, status, recorded_at, reason
    FROM attendance_records
"""

_INSERT = """
    INSERT INTO attendance_records(record_id, session_id, student_id, status, recorded_at, reason)
    VALUES(%s,%s,%s,%s,%s,%s)
    ON DUPLICATE KEY UPDATE
"""

# UNIQUE KEY (session_id, student_id) turns a racing second insert into an update.
# MySQL applies assignments left to right, so recorded_at must be assigned last.
UPSERT_LATEST_WINS = _INSERT + """
        status=IF(VALUES(recorded_at) >= recorded_at, VALUES(status), status),
        reason=IF(VALUES(recorded_at) >= recorded_at, VALUES(reason), reason),
        recorded_at=GREATEST(recorded_at, VALUES(recorded_at))
"""

UPSERT_OVERWRITE = _INSERT + """
        status=VALUES(status),
        reason=VALUES(reason),
        recorded_at=VALUES(recorded_at)
"""


def _to_record(r: Dict[str, Any]) -> AttendanceRecord:
    return AttendanceRecord(
        record_id=str(r["record_id"]),
        session_id=str(r["session_id"]),
        student_id=str(r["student_id"]),
        status=AttendanceStatus(r["status"]),
        timestamp=from_db_datetime(r["recorded_at"]),
        reason=r.get("reason"),
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, session_id: str, student_id: str) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT + " WHERE session_id=%s AND student_id=%s", (session_id, student_id))
            r = fetchone(cur)
            return _to_record(r) if r else None

    def list_for_session(self, session_id: str) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT + " WHERE session_id=%s ORDER BY recorded_at DESC, student_id ASC",
                (session_id,),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def list_for_student(self, student_id: str, *, limit: int = 50) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT + " WHERE student_id=%s ORDER BY recorded_at DESC LIMIT %s",
                (student_id, int(limit)),
            )
            return [_to_record(r) for r in fetchall(cur)]

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                UPSERT_OVERWRITE if overwrite else UPSERT_LATEST_WINS,
                (record_id, session_id, student_id, status.value, to_db_datetime(timestamp), reason),
            )
            cur.execute(_SELECT + " WHERE session_id=%s AND student_id=%s", (session_id, student_id))
            r = fetchone(cur)
            return _to_record(r)
