from __future__ import annotations

import io
import logging

from flask import Flask, request, send_file

from ..common.datetime_utils import now_utc, parse_iso_datetime
from ..common.responses import domain_error_response, json_error, json_ok
from ..container import Container
from ..common.validators import json_object
from ..core.exceptions import DomainError, ValidationError
from ..geo.model import GeoFix

logger = logging.getLogger(__name__)


def register(app: Flask, container: Container) -> None:
    service = container.session_service

    @app.route("/api/sessions", methods=["POST"], endpoint="api_session_open")
    def api_session_open():
        """Lecturer opens a session at the device's current location."""
        now = now_utc()
        try:
            data = json_object(request.get_json(silent=True))
            location = GeoFix.from_payload(data)
            duration = data.get("durationMinutes")
            session = service.open_session(
                course_id=data.get("courseId"),
                course_name=data.get("courseName"),
                location=location,
                now=now,
                duration_minutes=int(duration) if duration is not None else None,
            )
        except (TypeError, ValueError):
            return json_error("durationMinutes must be an integer", 400, error_code="INVALID_PAYLOAD")
        except DomainError as e:
            return domain_error_response(e)

        body = service.describe(session, now=now)
        if location.is_low_accuracy(container.low_accuracy_warning_meters):
            body["warning"] = f"Low GPS accuracy ({round(location.accuracy)}m); venue position may be off."
        return json_ok(body, message=f"Session active. Broadcast code: {session.broadcast_code}", status=201)

    @app.route("/api/sessions/active", methods=["GET"], endpoint="api_sessions_active")
    def api_sessions_active():
        now = now_utc()
        try:
            sessions = service.list_active(now=now)
        except DomainError as e:
            return domain_error_response(e)
        return json_ok([service.describe(s, now=now) for s in sessions])

    @app.route("/api/sessions/<session_id>", methods=["GET"], endpoint="api_session_get")
    def api_session_get(session_id: str):
        now = now_utc()
        try:
            session = service.get_session(session_id, now=now)
        except DomainError as e:
            return domain_error_response(e)
        return json_ok(service.describe(session, now=now))

    @app.route("/api/sessions/code/<code>", methods=["GET"], endpoint="api_session_by_code")
    def api_session_by_code(code: str):
        now = now_utc()
        try:
            session = service.find_by_broadcast_code(code, now=now)
        except DomainError as e:
            return domain_error_response(e)
        return json_ok(service.describe(session, now=now))

    @app.route("/api/sessions/<session_id>/lock", methods=["POST"], endpoint="api_session_lock")
    def api_session_lock(session_id: str):
        now = now_utc()
        try:
            session = service.lock(session_id)
        except DomainError as e:
            return domain_error_response(e)
        return json_ok(service.describe(session, now=now), message="Session locked. New entries will be rejected.")

    @app.route("/api/sessions/<session_id>/reopen", methods=["POST"], endpoint="api_session_reopen")
    def api_session_reopen(session_id: str):
        now = now_utc()
        try:
            data = json_object(request.get_json(silent=True))
            end_time = None
            if data.get("endTime"):
                try:
                    end_time = parse_iso_datetime(str(data["endTime"]))
                except ValueError:
                    raise ValidationError("endTime must be an ISO-8601 timestamp")
            session = service.reopen(session_id, now=now, end_time=end_time)
        except DomainError as e:
            return domain_error_response(e)
        return json_ok(service.describe(session, now=now), message="Session re-opened.")

    @app.route("/api/sessions/<session_id>/qr.png", methods=["GET"], endpoint="api_session_qr")
    def api_session_qr(session_id: str):
        """QR image carrying the session id, for students to scan."""
        try:
            session = service.get_session(session_id, now=now_utc())
            png = service.qr_png(session)
        except DomainError as e:
            return domain_error_response(e)
        return send_file(io.BytesIO(png), mimetype="image/png")

    @app.route("/api/sessions/qr/decode", methods=["POST"], endpoint="api_session_qr_decode")
    def api_session_qr_decode():
        """Resolve a session from an uploaded photo of its QR code."""
        if "image" not in request.files:
            return json_error("Missing image file", 400, error_code="INVALID_PAYLOAD")

        now = now_utc()
        try:
            session = service.resolve_qr_image(request.files["image"].stream, now=now)
        except DomainError as e:
            return domain_error_response(e)
        return json_ok(service.describe(session, now=now))
