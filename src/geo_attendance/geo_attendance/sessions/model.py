from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Session:
    """Domain entity: an attendance session opened by a lecturer at a venue.

    ``is_active`` is the lecturer's manual flag only; the effective state also
    depends on ``end_time`` and must be read through ``SessionPolicy``.
    """

    session_id: str
    course_id: str
    course_name: str
    lecture_start_time: datetime
    end_time: Optional[datetime]
    venue_lat: float
    venue_lon: float
    is_active: bool
    broadcast_code: Optional[str] = None

    def with_active(self, is_active: bool) -> "Session":
        return replace(self, is_active=is_active)
