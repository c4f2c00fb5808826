from __future__ import annotations

from typing import Optional, Sequence

from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Profile, profile_from_document
from .repository import ProfileRepository


class MySQLProfileRepository(ProfileRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, user_id: str) -> Optional[Profile]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT user_id, name, email, roles FROM user_profiles WHERE user_id=%s",
                (user_id,),
            )
            row = fetchone(cur)
            return profile_from_document(row) if row else None

    def list_by_role(self, role: Role) -> Sequence[Profile]:
        # ``roles`` is free-form text in the store; filter after normalizing.
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT user_id, name, email, roles FROM user_profiles WHERE roles LIKE %s ORDER BY name",
                (f"%{role.value}%",),
            )
            profiles = [profile_from_document(r) for r in fetchall(cur)]
        return [p for p in profiles if p.has_role(role)]
