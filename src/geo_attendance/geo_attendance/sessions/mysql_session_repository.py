from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, from_db_datetime, to_db_datetime
from .model import Session
from .repository import SessionRepository

_COLUMNS = """
    session_id, course_id, course_name, lecture_start_time, end_time,
    venue_lat, venue_lon, is_active, broadcast_code
"""


def _to_session(r: Dict[str, Any]) -> Session:
    return Session(
        session_id=str(r["session_id"]),
        course_id=str(r["course_id"]),
        course_name=r.get("course_name") or "",
        lecture_start_time=from_db_datetime(r["lecture_start_time"]),
        end_time=from_db_datetime(r.get("end_time")),
        venue_lat=float(r["venue_lat"]),
        venue_lon=float(r["venue_lon"]),
        is_active=bool(r["is_active"]),
        broadcast_code=r.get("broadcast_code"),
    )


class MySQLSessionRepository(SessionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, session_id: str) -> Optional[Session]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM sessions WHERE session_id=%s", (session_id,))
            r = fetchone(cur)
            return _to_session(r) if r else None

    def get_by_broadcast_code(self, broadcast_code: str) -> Optional[Session]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM sessions
                WHERE broadcast_code=%s
                ORDER BY lecture_start_time DESC
                LIMIT 1
                """,
                (broadcast_code,),
            )
            r = fetchone(cur)
            return _to_session(r) if r else None

    def create(self, session: Session) -> Session:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO sessions(
                    session_id, course_id, course_name, lecture_start_time, end_time,
                    venue_lat, venue_lon, is_active, broadcast_code
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    session.session_id,
                    session.course_id,
                    session.course_name,
                    to_db_datetime(session.lecture_start_time),
                    to_db_datetime(session.end_time),
                    session.venue_lat,
                    session.venue_lon,
                    int(session.is_active),
                    session.broadcast_code,
                ),
            )
        return session

    def set_active(
        self,
        session_id: str,
        *,
        is_active: bool,
        expected_active: Optional[bool] = None,
        end_time: Optional[datetime] = None,
    ) -> bool:
        assignments = ["is_active=%s"]
        params: list[object] = [int(is_active)]
        if end_time is not None:
            assignments.append("end_time=%s")
            params.append(to_db_datetime(end_time))

        clauses = ["session_id=%s"]
        params.append(session_id)
        if expected_active is not None:
            clauses.append("is_active=%s")
            params.append(int(expected_active))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE sessions SET {', '.join(assignments)} WHERE {' AND '.join(clauses)}",
                tuple(params),
            )
            return cur.rowcount > 0

    def list_flagged_active(self, *, limit: int = 200) -> Sequence[Session]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM sessions
                WHERE is_active=1
                ORDER BY lecture_start_time DESC
                LIMIT %s
                """,
                (int(limit),),
            )
            return [_to_session(r) for r in fetchall(cur)]

    def deactivate_expired(self, *, now: datetime) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE sessions SET is_active=0 WHERE is_active=1 AND end_time IS NOT NULL AND end_time < %s",
                (to_db_datetime(now),),
            )
            return int(cur.rowcount)
