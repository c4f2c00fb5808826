from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..common.datetime_utils import ensure_aware
from ..core.constants import DEFAULT_MAX_DISTANCE_METERS
from ..core.enums import RejectionReason, SessionState
from ..geo.distance import distance_meters
from .model import Session


@dataclass(frozen=True)
class AdmissionDecision:
    ok: bool
    reason: Optional[RejectionReason] = None
    distance_meters: Optional[float] = None


class SessionPolicy:
    """Session state machine and the check-in admission rule.

    Every method is pure: ``now`` is always passed in and nothing is persisted.
    Expiry is lazy, re-derived on each call instead of by a timer, so callers
    that observe an expired-but-flagged-active session should persist the flip
    themselves (see ``SessionService``).
    """

    def __init__(self, *, max_distance_meters: float = DEFAULT_MAX_DISTANCE_METERS):
        self._max_distance_meters = float(max_distance_meters)

    @property
    def max_distance_meters(self) -> float:
        return self._max_distance_meters

    @staticmethod
    def is_expired(session: Session, now: datetime) -> bool:
        if session.end_time is None:
            return False
        return ensure_aware(now) > ensure_aware(session.end_time)

    def effective_is_active(self, session: Session, now: datetime) -> bool:
        """The one place that answers "is this session open right now?"."""
        return bool(session.is_active) and not self.is_expired(session, now)

    def state(self, session: Session, now: datetime) -> SessionState:
        return SessionState.ACTIVE if self.effective_is_active(session, now) else SessionState.LOCKED

    def needs_expiry_flip(self, session: Session, now: datetime) -> bool:
        """Stored flag still says active although the window has passed."""
        return bool(session.is_active) and self.is_expired(session, now)

    def seconds_remaining(self, session: Session, now: datetime) -> Optional[int]:
        """Countdown for display; ``None`` when the session has no end time."""
        if session.end_time is None:
            return None
        if not self.effective_is_active(session, now):
            return 0
        delta = ensure_aware(session.end_time) - ensure_aware(now)
        return max(0, int(delta.total_seconds()))

    def is_admissible(
        self,
        session: Session,
        now: datetime,
        attempt_lat: float,
        attempt_lon: float,
        max_distance_meters: Optional[float] = None,
    ) -> AdmissionDecision:
        if not session.is_active:
            return AdmissionDecision(ok=False, reason=RejectionReason.SESSION_LOCKED)

        if self.is_expired(session, now):
            return AdmissionDecision(ok=False, reason=RejectionReason.SESSION_EXPIRED)

        limit = self._max_distance_meters if max_distance_meters is None else float(max_distance_meters)
        distance = distance_meters(attempt_lat, attempt_lon, session.venue_lat, session.venue_lon)
        # Boundary is inclusive: exactly ``limit`` meters away is admitted.
        if not distance <= limit:
            return AdmissionDecision(ok=False, reason=RejectionReason.OUT_OF_GEOFENCE, distance_meters=distance)

        return AdmissionDecision(ok=True, distance_meters=distance)
