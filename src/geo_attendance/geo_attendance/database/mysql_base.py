from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import mysql.connector

from ..core.exceptions import StoreUnavailableError
from .connection import DatabaseConnection

logger = logging.getLogger(__name__)


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    """Open a short-lived connection + cursor; commit on success, roll back otherwise.

    Driver errors surface as ``StoreUnavailableError`` so services never see
    ``mysql.connector`` types. Nothing is committed when the block raises.
    """

    try:
        conn = conn_factory.connect()
    except mysql.connector.Error as e:
        logger.error("database connect failed: %s", e)
        raise StoreUnavailableError("Attendance store is unavailable") from e

    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except mysql.connector.Error as e:
        _rollback_quietly(conn)
        raise StoreUnavailableError("Attendance store operation failed") from e
    except Exception:
        _rollback_quietly(conn)
        raise
    finally:
        conn.close()


def _rollback_quietly(conn) -> None:
    try:
        conn.rollback()
    except mysql.connector.Error:
        logger.warning("rollback failed on a broken connection", exc_info=True)


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def to_db_datetime(value: Optional[datetime]) -> Optional[datetime]:
    """MySQL DATETIME has no zone: store naive UTC."""

    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def from_db_datetime(value: Any) -> Optional[datetime]:
    """Normalize DATETIME values read back from MySQL to aware UTC.

    mysql-connector can return DATETIME as:
    - datetime.datetime (naive)
    - string (e.g. '2026-02-01 08:30:00.000000') with the pure-python protocol
    """

    if value is None:
        return None

    if isinstance(value, datetime):
        return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)

    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")

    if isinstance(value, str):
        return datetime.fromisoformat(value.strip()).replace(tzinfo=timezone.utc)

    raise TypeError(f"Unsupported MySQL DATETIME value type: {type(value)!r}")
