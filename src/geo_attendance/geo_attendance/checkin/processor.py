from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from ..attendance.ledger import AttendanceLedger
from ..attendance.model import AttendanceRecord
from ..common.datetime_utils import ensure_aware
from ..common.validators import require_latitude, require_longitude
from ..core.constants import DEFAULT_LOW_ACCURACY_WARNING_METERS
from ..core.enums import AttendanceStatus, RejectionReason
from ..core.exceptions import AdmissionRejected, SessionNotFoundError, StoreUnavailableError, ValidationError
from ..sessions.repository import SessionRepository
from ..sessions.service import SessionService

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("sessionId", "studentId", "recordedLat", "recordedLon")

INVALID_PAYLOAD = "INVALID_PAYLOAD"
SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
STORE_UNAVAILABLE = "STORE_UNAVAILABLE"


@dataclass(frozen=True)
class CheckInAttempt:
    """A student's claim to be at the venue right now. Never persisted."""

    session_id: str
    student_id: str
    recorded_lat: float
    recorded_lon: float
    accuracy: Optional[float] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "CheckInAttempt":
        if isinstance(payload, (str, bytes, bytearray)):
            try:
                payload = json.loads(payload or "{}")
            except ValueError:
                payload = {}
        if not isinstance(payload, Mapping):
            payload = {}

        missing = [
            name
            for name in REQUIRED_FIELDS
            if payload.get(name) is None or (isinstance(payload.get(name), str) and not payload[name].strip())
        ]
        if missing:
            raise ValidationError("Missing required parameters: " + ", ".join(REQUIRED_FIELDS))

        accuracy = payload.get("accuracy")
        try:
            accuracy = float(accuracy) if accuracy is not None and not isinstance(accuracy, bool) else None
        except (TypeError, ValueError):
            accuracy = None

        return cls(
            session_id=str(payload["sessionId"]).strip(),
            student_id=str(payload["studentId"]).strip(),
            recorded_lat=require_latitude(payload["recordedLat"], "recordedLat"),
            recorded_lon=require_longitude(payload["recordedLon"], "recordedLon"),
            accuracy=accuracy,
        )


@dataclass(frozen=True)
class CheckInResponse:
    success: bool
    message: str
    status_code: int
    data: Optional[AttendanceRecord] = None
    error_code: Optional[str] = None
    distance_meters: Optional[float] = None
    warning: Optional[str] = None

    def to_dict(self) -> dict:
        body: dict = {"success": self.success, "message": self.message}
        if self.data is not None:
            body["data"] = self.data.to_dict()
        if self.error_code:
            body["error_code"] = self.error_code
        if self.distance_meters is not None:
            body["distance"] = round(self.distance_meters, 1)
        if self.warning:
            body["warning"] = self.warning
        return body


_REJECTION_MESSAGES = {
    RejectionReason.SESSION_LOCKED: "Session is marked as closed by the lecturer.",
    RejectionReason.SESSION_EXPIRED: "Session time has expired.",
}


class CheckInProcessor:
    """Server-side validator invoked once per student check-in attempt.

    Order of checks: payload shape, session existence, admission policy, then a
    single ledger upsert. Every rejection happens before any ledger write.
    """

    def __init__(
        self,
        sessions: SessionRepository,
        session_service: SessionService,
        ledger: AttendanceLedger,
        *,
        max_distance_meters: Optional[float] = None,
        low_accuracy_warning_meters: float = DEFAULT_LOW_ACCURACY_WARNING_METERS,
    ):
        self._sessions = sessions
        self._session_service = session_service
        self._policy = session_service.policy
        self._ledger = ledger
        self._max_distance = max_distance_meters
        self._low_accuracy = float(low_accuracy_warning_meters)

    def check_in(self, attempt: CheckInAttempt, *, now: datetime) -> AttendanceRecord:
        now = ensure_aware(now)

        # Raw read on purpose: flipping the flag first would report LOCKED instead of EXPIRED.
        session = self._sessions.get_by_id(attempt.session_id)
        if not session:
            raise SessionNotFoundError("Session not found.")

        decision = self._policy.is_admissible(
            session, now, attempt.recorded_lat, attempt.recorded_lon, self._max_distance
        )
        if not decision.ok:
            if decision.reason == RejectionReason.SESSION_EXPIRED:
                self._session_service.observe_expiry(session, now=now)
            if decision.reason == RejectionReason.OUT_OF_GEOFENCE:
                message = f"You are too far from the venue. Distance: {round(decision.distance_meters)}m."
            else:
                message = _REJECTION_MESSAGES[decision.reason]
            raise AdmissionRejected(decision.reason, message, distance_meters=decision.distance_meters)

        logger.debug(
            "admitted student=%s session=%s distance=%.1fm",
            attempt.student_id,
            attempt.session_id,
            decision.distance_meters,
        )
        return self._ledger.upsert(
            attempt.session_id,
            attempt.student_id,
            AttendanceStatus.PRESENT,
            now,
            None,
        )

    def handle(self, payload: Any, *, now: datetime) -> CheckInResponse:
        """Validation entry point: raw payload in, response envelope out."""

        try:
            attempt = CheckInAttempt.from_payload(payload)
        except ValidationError as e:
            return CheckInResponse(success=False, message=str(e), status_code=400, error_code=INVALID_PAYLOAD)

        warning = None
        if attempt.accuracy is not None and attempt.accuracy > self._low_accuracy:
            warning = f"Low GPS accuracy ({round(attempt.accuracy)}m); the distance check may be unreliable."

        now = ensure_aware(now)
        try:
            record = self.check_in(attempt, now=now)
        except SessionNotFoundError as e:
            logger.info("check-in rejected: unknown session %s", attempt.session_id)
            return CheckInResponse(success=False, message=str(e), status_code=404, error_code=SESSION_NOT_FOUND)
        except AdmissionRejected as e:
            logger.info(
                "check-in rejected: %s student=%s session=%s", e.reason.value, attempt.student_id, attempt.session_id
            )
            return CheckInResponse(
                success=False,
                message=str(e),
                status_code=403,
                error_code=e.reason.value,
                distance_meters=e.distance_meters,
                warning=warning,
            )
        except StoreUnavailableError:
            logger.exception("failed to record admitted check-in student=%s session=%s", attempt.student_id, attempt.session_id)
            return CheckInResponse(
                success=False,
                message="Could not record attendance right now. Please retry.",
                status_code=500,
                error_code=STORE_UNAVAILABLE,
            )

        message = "Attendance marked successfully"
        if record.timestamp != now:
            # A write stamped later than this attempt (usually a lecturer correction) stays in place.
            logger.info(
                "check-in superseded student=%s session=%s: stored %s record from %s kept",
                attempt.student_id,
                attempt.session_id,
                record.status.value,
                record.timestamp.isoformat(),
            )
            message = f"Check-in accepted, but a newer correction keeps this record as {record.status.value}."

        return CheckInResponse(
            success=True,
            message=message,
            status_code=200,
            data=record,
            warning=warning,
        )
