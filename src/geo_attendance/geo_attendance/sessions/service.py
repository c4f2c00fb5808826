from __future__ import annotations

import logging
import secrets
import uuid
from datetime import datetime, timedelta
from typing import BinaryIO, Callable, Optional, Sequence

from PIL import UnidentifiedImageError

from ..common.datetime_utils import ensure_aware, isoformat_or_none
from ..common.validators import optional_text, require_non_empty
from ..core.constants import (
    BROADCAST_CODE_ATTEMPTS,
    BROADCAST_CODE_MAX,
    BROADCAST_CODE_MIN,
    DEFAULT_SESSION_DURATION_MINUTES,
)
from ..core.exceptions import DomainError, SessionNotFoundError, StoreUnavailableError, ValidationError
from ..geo.model import GeoFix
from . import qr
from .model import Session
from .policy import SessionPolicy
from .repository import SessionRepository

logger = logging.getLogger(__name__)


def _random_broadcast_code() -> str:
    return str(BROADCAST_CODE_MIN + secrets.randbelow(BROADCAST_CODE_MAX - BROADCAST_CODE_MIN + 1))


class SessionService:
    """Session lifecycle: open, lock, re-open, lookup, lazy expiry persistence."""

    def __init__(
        self,
        sessions: SessionRepository,
        policy: SessionPolicy,
        *,
        default_duration_minutes: int = DEFAULT_SESSION_DURATION_MINUTES,
        code_factory: Callable[[], str] | None = None,
        id_factory: Callable[[], str] | None = None,
    ):
        self._sessions = sessions
        self._policy = policy
        self._default_duration = timedelta(minutes=int(default_duration_minutes))
        self._new_code = code_factory or _random_broadcast_code
        self._new_id = id_factory or (lambda: uuid.uuid4().hex)

    @property
    def policy(self) -> SessionPolicy:
        return self._policy

    def open_session(
        self,
        *,
        course_id: str,
        course_name: Optional[str],
        location: GeoFix,
        now: datetime,
        duration_minutes: Optional[int] = None,
    ) -> Session:
        """Open a session at the lecturer's current location.

        The venue is whatever the lecturer's device reported; there is no
        separate venue registry.
        """

        course_id = require_non_empty(course_id, "courseId")
        now = ensure_aware(now)
        duration = self._default_duration if duration_minutes is None else timedelta(minutes=int(duration_minutes))
        if duration <= timedelta(0):
            raise ValidationError("Session duration must be positive")

        session = Session(
            session_id=self._new_id(),
            course_id=course_id,
            course_name=optional_text(course_name, "courseName") or course_id,
            lecture_start_time=now,
            end_time=now + duration,
            venue_lat=location.latitude,
            venue_lon=location.longitude,
            is_active=True,
            broadcast_code=self._unused_broadcast_code(now),
        )
        created = self._sessions.create(session)
        logger.info(
            "session %s opened for course %s (code %s, ends %s)",
            created.session_id,
            created.course_id,
            created.broadcast_code,
            isoformat_or_none(created.end_time),
        )
        return created

    def get_session(self, session_id: str, *, now: datetime) -> Session:
        session = self._sessions.get_by_id(require_non_empty(session_id, "sessionId"))
        if not session:
            raise SessionNotFoundError("Session not found")
        return self.observe_expiry(session, now=now)

    def find_by_broadcast_code(self, broadcast_code: str, *, now: datetime) -> Session:
        code = require_non_empty(broadcast_code, "broadcastCode")
        session = self._sessions.get_by_broadcast_code(code)
        if not session:
            raise SessionNotFoundError("No session matches this broadcast code")
        return self.observe_expiry(session, now=now)

    def resolve_qr_image(self, stream: BinaryIO, *, now: datetime) -> Session:
        try:
            payload = qr.decode_image(stream)
        except (UnidentifiedImageError, OSError):
            raise ValidationError("Uploaded file is not a readable image")
        if not payload:
            raise ValidationError("No QR code found in the image")
        return self.get_session(payload, now=now)

    def qr_png(self, session: Session) -> bytes:
        return qr.render_png(session.session_id)

    def observe_expiry(self, session: Session, *, now: datetime) -> Session:
        """Persist the lazy flip when a reader sees an expired-but-flagged session.

        The returned view is flipped even if the write fails; the next reader retries it.
        """

        if not self._policy.needs_expiry_flip(session, now):
            return session

        try:
            self._sessions.set_active(session.session_id, is_active=False, expected_active=True)
            logger.info("session %s expired at %s; flag cleared", session.session_id, isoformat_or_none(session.end_time))
        except StoreUnavailableError:
            logger.warning("could not persist expiry of session %s", session.session_id, exc_info=True)
        return session.with_active(False)

    def lock(self, session_id: str) -> Session:
        session_id = require_non_empty(session_id, "sessionId")
        if not self._sessions.set_active(session_id, is_active=False, expected_active=True):
            current = self._sessions.get_by_id(session_id)
            if not current:
                raise SessionNotFoundError("Session not found")
            return current
        logger.info("session %s locked by lecturer", session_id)
        return self._reload(session_id)

    def reopen(self, session_id: str, *, now: datetime, end_time: Optional[datetime] = None) -> Session:
        """Lecturer re-opens a locked session.

        Allowed even after the time window passed; without a new ``end_time``
        such a session stays effectively locked until the caller extends it.
        """

        session_id = require_non_empty(session_id, "sessionId")
        if end_time is not None:
            end_time = ensure_aware(end_time)
            if end_time <= ensure_aware(now):
                raise ValidationError("New end time must be in the future")

        if not self._sessions.set_active(session_id, is_active=True, end_time=end_time):
            raise SessionNotFoundError("Session not found")

        session = self._reload(session_id)
        if self._policy.is_expired(session, now):
            logger.info("session %s re-opened but its window already ended", session_id)
        else:
            logger.info("session %s re-opened until %s", session_id, isoformat_or_none(session.end_time))
        return session

    def list_active(self, *, now: datetime, limit: int = 200) -> Sequence[Session]:
        return [s for s in self._sessions.list_flagged_active(limit=limit) if self._policy.effective_is_active(s, now)]

    def sweep_expired(self, *, now: datetime) -> int:
        """Optional periodic sweep; admission never depends on it."""

        count = self._sessions.deactivate_expired(now=ensure_aware(now))
        if count:
            logger.info("expired %d overdue session(s)", count)
        return count

    def describe(self, session: Session, *, now: datetime) -> dict:
        return {
            "sessionId": session.session_id,
            "courseId": session.course_id,
            "courseName": session.course_name,
            "lectureStartTime": isoformat_or_none(session.lecture_start_time),
            "endTime": isoformat_or_none(session.end_time),
            "venueLat": session.venue_lat,
            "venueLon": session.venue_lon,
            "isActive": self._policy.effective_is_active(session, now),
            "state": self._policy.state(session, now).value,
            "secondsRemaining": self._policy.seconds_remaining(session, now),
            "broadcastCode": session.broadcast_code,
        }

    def _reload(self, session_id: str) -> Session:
        session = self._sessions.get_by_id(session_id)
        if not session:
            raise SessionNotFoundError("Session not found")
        return session

    def _unused_broadcast_code(self, now: datetime) -> str:
        for _ in range(BROADCAST_CODE_ATTEMPTS):
            code = self._new_code()
            holder = self._sessions.get_by_broadcast_code(code)
            if holder is None or not self._policy.effective_is_active(holder, now):
                return code
        raise DomainError("Could not allocate a free broadcast code")
