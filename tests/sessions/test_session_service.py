import io
from datetime import timedelta

import pytest

from src.geo_attendance.geo_attendance.core.exceptions import (
    DomainError,
    SessionNotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from src.geo_attendance.geo_attendance.geo.model import GeoFix
from src.geo_attendance.geo_attendance.sessions.service import SessionService


def _codes(*values):
    it = iter(values)
    return lambda: next(it)


def test_open_session_uses_lecturer_location_and_default_window(sessions_repo, policy, fixed_now):
    service = SessionService(sessions_repo, policy, code_factory=_codes("123456"), id_factory=lambda: "sess-new")

    session = service.open_session(
        course_id=" CSC402 ",
        course_name="",
        location=GeoFix(6.52, 3.37, accuracy=12.0),
        now=fixed_now,
    )

    assert session.session_id == "sess-new"
    assert session.course_id == "CSC402"
    assert session.course_name == "CSC402"
    assert (session.venue_lat, session.venue_lon) == (6.52, 3.37)
    assert session.end_time - session.lecture_start_time == timedelta(minutes=120)
    assert session.is_active
    assert session.broadcast_code == "123456"
    assert sessions_repo.by_id["sess-new"] == session


def test_open_session_skips_code_held_by_active_session(sessions_repo, policy, fixed_now):
    # "582934" belongs to the open fixture session
    service = SessionService(sessions_repo, policy, code_factory=_codes("582934", "777777"))
    session = service.open_session(
        course_id="CSC402", course_name="Compilers", location=GeoFix(6.5, 3.3), now=fixed_now
    )
    assert session.broadcast_code == "777777"


def test_code_of_expired_session_can_be_reused(sessions_repo, policy, fixed_now):
    service = SessionService(sessions_repo, policy, code_factory=_codes("582934"))
    later = fixed_now + timedelta(hours=3)
    session = service.open_session(course_id="CSC402", course_name="Compilers", location=GeoFix(6.5, 3.3), now=later)
    assert session.broadcast_code == "582934"


def test_code_allocation_gives_up(sessions_repo, policy, fixed_now):
    service = SessionService(sessions_repo, policy, code_factory=lambda: "582934")
    with pytest.raises(DomainError):
        service.open_session(course_id="CSC402", course_name="x", location=GeoFix(6.5, 3.3), now=fixed_now)


def test_open_session_rejects_non_positive_duration(session_service, fixed_now):
    with pytest.raises(ValidationError):
        session_service.open_session(
            course_id="CSC402", course_name="x", location=GeoFix(6.5, 3.3), now=fixed_now, duration_minutes=0
        )


def test_get_session_unknown(session_service, fixed_now):
    with pytest.raises(SessionNotFoundError):
        session_service.get_session("nope", now=fixed_now)


def test_reading_an_overdue_session_persists_the_flip(session_service, sessions_repo, fixed_now):
    later = fixed_now + timedelta(hours=2, seconds=1)
    assert sessions_repo.by_id["sess-1"].is_active

    session = session_service.get_session("sess-1", now=later)

    assert session.is_active is False
    assert sessions_repo.by_id["sess-1"].is_active is False


def test_flip_failure_still_returns_locked_view(session_service, sessions_repo, fixed_now):
    sessions_repo.fail_writes = True
    later = fixed_now + timedelta(hours=3)

    session = session_service.get_session("sess-1", now=later)

    assert session.is_active is False
    assert sessions_repo.by_id["sess-1"].is_active is True


def test_find_by_broadcast_code(session_service, fixed_now):
    assert session_service.find_by_broadcast_code("582934", now=fixed_now).session_id == "sess-1"
    with pytest.raises(SessionNotFoundError):
        session_service.find_by_broadcast_code("000000", now=fixed_now)


def test_lock_is_idempotent(session_service, sessions_repo):
    assert session_service.lock("sess-1").is_active is False
    assert session_service.lock("sess-1").is_active is False
    with pytest.raises(SessionNotFoundError):
        session_service.lock("missing")


def test_reopen_within_window(session_service, policy, fixed_now):
    session_service.lock("sess-1")
    session = session_service.reopen("sess-1", now=fixed_now + timedelta(minutes=5))
    assert policy.effective_is_active(session, fixed_now + timedelta(minutes=5))


def test_reopen_after_window_needs_new_end_time(session_service, policy, fixed_now):
    session_service.lock("sess-1")
    later = fixed_now + timedelta(hours=4)

    session = session_service.reopen("sess-1", now=later)
    assert session.is_active is True
    assert not policy.effective_is_active(session, later)

    extended = session_service.reopen("sess-1", now=later, end_time=later + timedelta(minutes=30))
    assert policy.effective_is_active(extended, later)


def test_reopen_rejects_past_end_time(session_service, fixed_now):
    with pytest.raises(ValidationError):
        session_service.reopen("sess-1", now=fixed_now, end_time=fixed_now - timedelta(minutes=1))


def test_reopen_unknown(session_service, fixed_now):
    with pytest.raises(SessionNotFoundError):
        session_service.reopen("missing", now=fixed_now)


def test_list_active_hides_overdue_sessions(sessions_repo, session_service, session_factory, fixed_now):
    sessions_repo.create(session_factory(fixed_now, session_id="sess-2", end_time=fixed_now + timedelta(minutes=5)))
    sessions_repo.create(session_factory(fixed_now, session_id="sess-3", is_active=False))

    later = fixed_now + timedelta(minutes=10)
    assert [s.session_id for s in session_service.list_active(now=later)] == ["sess-1"]


def test_sweep_expired(sessions_repo, session_service, session_factory, fixed_now):
    sessions_repo.create(session_factory(fixed_now, session_id="sess-2", end_time=fixed_now + timedelta(minutes=5)))
    assert session_service.sweep_expired(now=fixed_now + timedelta(minutes=10)) == 1
    assert sessions_repo.by_id["sess-2"].is_active is False
    assert sessions_repo.by_id["sess-1"].is_active is True


def test_describe(session_service, sessions_repo, fixed_now):
    body = session_service.describe(sessions_repo.by_id["sess-1"], now=fixed_now + timedelta(minutes=1))
    assert body["sessionId"] == "sess-1"
    assert body["isActive"] is True
    assert body["state"] == "active"
    assert body["secondsRemaining"] == 7140
    assert body["broadcastCode"] == "582934"


def test_qr_png_is_a_png(session_service, sessions_repo):
    png = session_service.qr_png(sessions_repo.by_id["sess-1"])
    assert png.startswith(b"\x89PNG\r\n\x1a\n")


def test_qr_image_resolves_back_to_session(session_service, sessions_repo, fixed_now):
    pytest.importorskip("pyzbar.pyzbar")
    png = session_service.qr_png(sessions_repo.by_id["sess-1"])
    assert session_service.resolve_qr_image(io.BytesIO(png), now=fixed_now).session_id == "sess-1"


def test_unreadable_upload_is_a_validation_error(session_service, fixed_now):
    pytest.importorskip("pyzbar.pyzbar")
    with pytest.raises(ValidationError):
        session_service.resolve_qr_image(io.BytesIO(b"not an image"), now=fixed_now)


def test_store_errors_propagate_from_lock(session_service, sessions_repo):
    sessions_repo.fail_writes = True
    with pytest.raises(StoreUnavailableError):
        session_service.lock("sess-1")
