from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import Session


class SessionRepository(Protocol):
    """Storage interface for sessions.

    Reads take no locks. ``set_active`` supports compare-and-swap through
    ``expected_active`` so two lecturer devices cannot silently clobber each other.
    """

    def get_by_id(self, session_id: str) -> Optional[Session]:
        raise NotImplementedError

    def get_by_broadcast_code(self, broadcast_code: str) -> Optional[Session]:
        raise NotImplementedError

    def create(self, session: Session) -> Session:
        raise NotImplementedError

    def set_active(
        self,
        session_id: str,
        *,
        is_active: bool,
        expected_active: Optional[bool] = None,
        end_time: Optional[datetime] = None,
    ) -> bool:
        """Write the manual flag (and optionally a new end time).

        Returns False when no row matched, including a failed compare-and-swap.
        """

        raise NotImplementedError

    def list_flagged_active(self, *, limit: int = 200) -> Sequence[Session]:
        """Sessions whose stored flag is true (may include lazily expired ones)."""

        raise NotImplementedError

    def deactivate_expired(self, *, now: datetime) -> int:
        raise NotImplementedError
