import json
import threading
from datetime import timedelta

import pytest

from src.geo_attendance.geo_attendance.checkin.processor import CheckInAttempt, CheckInProcessor
from src.geo_attendance.geo_attendance.core.enums import AttendanceStatus, RejectionReason
from src.geo_attendance.geo_attendance.core.exceptions import AdmissionRejected, SessionNotFoundError, ValidationError


def _payload(**overrides):
    body = {"sessionId": "sess-1", "studentId": "stu-amaka", "recordedLat": 6.5244, "recordedLon": 3.3793}
    body.update(overrides)
    return body


class TestCheckInAttempt:
    def test_accepts_json_text(self):
        attempt = CheckInAttempt.from_payload(json.dumps(_payload(accuracy=8)))
        assert attempt.session_id == "sess-1"
        assert attempt.recorded_lon == 3.3793
        assert attempt.accuracy == 8.0

    def test_numeric_strings_are_coerced(self):
        attempt = CheckInAttempt.from_payload(_payload(recordedLat="6.5244", recordedLon="3.3793"))
        assert (attempt.recorded_lat, attempt.recorded_lon) == (6.5244, 3.3793)

    @pytest.mark.parametrize("missing", ["sessionId", "studentId", "recordedLat", "recordedLon"])
    def test_missing_field(self, missing):
        body = _payload()
        del body[missing]
        with pytest.raises(ValidationError, match="Missing required parameters"):
            CheckInAttempt.from_payload(body)

    @pytest.mark.parametrize("payload", [None, "", "{not json", "[]", 42])
    def test_garbage_payload(self, payload):
        with pytest.raises(ValidationError):
            CheckInAttempt.from_payload(payload)

    @pytest.mark.parametrize("lat", ["north", 91, float("nan"), True])
    def test_bad_latitude(self, lat):
        with pytest.raises(ValidationError):
            CheckInAttempt.from_payload(_payload(recordedLat=lat))


def test_student_near_venue_is_marked_present(processor, attendance_repo, sink, fixed_now):
    response = processor.handle(_payload(), now=fixed_now)

    assert response.status_code == 200
    assert response.success
    assert response.message == "Attendance marked successfully"
    record = attendance_repo.get("sess-1", "stu-amaka")
    assert record.status == AttendanceStatus.PRESENT
    assert record.timestamp == fixed_now
    assert record.reason is None
    assert response.to_dict()["data"]["status"] == "present"
    assert len(sink.events) == 1


def test_student_across_town_is_rejected_with_distance(processor, attendance_repo, fixed_now):
    response = processor.handle(_payload(recordedLat=6.6000, recordedLon=3.3792), now=fixed_now)

    assert response.status_code == 403
    assert response.error_code == RejectionReason.OUT_OF_GEOFENCE.value
    assert response.distance_meters == pytest.approx(8400, abs=50)
    assert response.message.startswith("You are too far from the venue. Distance: 8")
    assert response.to_dict()["distance"] == round(response.distance_meters, 1)
    assert attendance_repo.upsert_calls == 0


def test_invalid_payload_does_not_touch_storage(processor, sessions_repo, attendance_repo, fixed_now):
    response = processor.handle({"sessionId": "sess-1"}, now=fixed_now)

    assert response.status_code == 400
    assert response.error_code == "INVALID_PAYLOAD"
    assert response.message == "Missing required parameters: sessionId, studentId, recordedLat, recordedLon"
    assert sessions_repo.reads == 0
    assert attendance_repo.upsert_calls == 0


def test_unknown_session(processor, fixed_now):
    response = processor.handle(_payload(sessionId="ghost"), now=fixed_now)
    assert response.status_code == 404
    assert response.error_code == "SESSION_NOT_FOUND"


def test_locked_session(processor, session_service, attendance_repo, fixed_now):
    session_service.lock("sess-1")
    response = processor.handle(_payload(), now=fixed_now)

    assert response.status_code == 403
    assert response.error_code == "SESSION_LOCKED"
    assert response.message == "Session is marked as closed by the lecturer."
    assert attendance_repo.rows == {}


def test_expired_session_reports_expired_and_persists_flip(processor, sessions_repo, attendance_repo, fixed_now):
    later = fixed_now + timedelta(hours=2, minutes=1)
    assert sessions_repo.by_id["sess-1"].is_active is True

    response = processor.handle(_payload(), now=later)

    assert response.status_code == 403
    assert response.error_code == "SESSION_EXPIRED"
    assert response.message == "Session time has expired."
    assert attendance_repo.upsert_calls == 0
    assert sessions_repo.by_id["sess-1"].is_active is False

    # the flag is now down, so later attempts read as locked
    assert processor.handle(_payload(), now=later).error_code == "SESSION_LOCKED"


def test_repeat_check_in_keeps_one_record(processor, attendance_repo, fixed_now):
    first = processor.handle(_payload(), now=fixed_now)
    second = processor.handle(_payload(), now=fixed_now + timedelta(seconds=30))

    assert first.status_code == second.status_code == 200
    assert len(attendance_repo.rows) == 1
    assert second.data.record_id == first.data.record_id
    assert attendance_repo.get("sess-1", "stu-amaka").timestamp == fixed_now + timedelta(seconds=30)


def test_concurrent_check_ins_for_one_student(processor, attendance_repo, fixed_now):
    n = 16
    barrier = threading.Barrier(n)
    codes = []

    def worker(i):
        barrier.wait()
        codes.append(processor.handle(_payload(), now=fixed_now + timedelta(milliseconds=i)).status_code)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert codes == [200] * n
    assert list(attendance_repo.rows) == [("sess-1", "stu-amaka")]
    assert attendance_repo.get("sess-1", "stu-amaka").status == AttendanceStatus.PRESENT


def test_store_failure_is_distinct_from_rejection(processor, attendance_repo, fixed_now):
    attendance_repo.down = True
    response = processor.handle(_payload(), now=fixed_now)

    assert response.status_code == 500
    assert response.error_code == "STORE_UNAVAILABLE"
    assert response.message == "Could not record attendance right now. Please retry."


def test_low_accuracy_warns_but_admits(processor, fixed_now):
    response = processor.handle(_payload(accuracy=180), now=fixed_now)
    assert response.status_code == 200
    assert "Low GPS accuracy" in response.to_dict()["warning"]


def test_configured_radius(sessions_repo, session_service, ledger, fixed_now):
    strict = CheckInProcessor(sessions_repo, session_service, ledger, max_distance_meters=5)
    with pytest.raises(AdmissionRejected) as excinfo:
        strict.check_in(CheckInAttempt.from_payload(_payload()), now=fixed_now)
    assert excinfo.value.reason == RejectionReason.OUT_OF_GEOFENCE


def test_check_in_raises_for_unknown_session(processor, fixed_now):
    with pytest.raises(SessionNotFoundError):
        processor.check_in(CheckInAttempt.from_payload(_payload(sessionId="ghost")), now=fixed_now)


def test_check_in_older_than_a_correction_reports_the_kept_record(processor, reconciler, attendance_repo, fixed_now):
    reconciler.set_status("sess-1", "stu-amaka", "absent", now=fixed_now + timedelta(minutes=1))

    response = processor.handle(_payload(), now=fixed_now)

    assert response.status_code == 200
    assert response.data.status == AttendanceStatus.ABSENT
    assert response.message == "Check-in accepted, but a newer correction keeps this record as absent."
    assert attendance_repo.get("sess-1", "stu-amaka").timestamp == fixed_now + timedelta(minutes=1)
