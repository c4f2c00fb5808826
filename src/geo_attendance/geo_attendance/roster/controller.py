from __future__ import annotations

from flask import Flask, request

from ..common.datetime_utils import now_utc, parse_iso_datetime
from ..common.responses import domain_error_response, json_error, json_ok
from ..common.validators import json_object
from ..container import Container
from ..core.exceptions import DomainError, ValidationError


def register(app: Flask, container: Container) -> None:
    reconciler = container.roster_reconciler

    @app.route("/api/sessions/<session_id>/roster", methods=["GET"], endpoint="api_session_roster")
    def api_session_roster(session_id: str):
        try:
            container.session_service.get_session(session_id, now=now_utc())
            entries, summary = reconciler.session_roster(session_id)
        except DomainError as e:
            return domain_error_response(e)
        return json_ok(
            {
                "entries": [e.to_dict() for e in entries],
                "summary": {
                    "present": summary.present,
                    "absent": summary.absent,
                    "unmarked": summary.unmarked,
                    "total": summary.total,
                },
            }
        )

    @app.route("/api/sessions/<session_id>/records/bulk", methods=["POST"], endpoint="api_records_bulk")
    def api_records_bulk(session_id: str):
        try:
            data = json_object(request.get_json(silent=True))
            student_ids = data.get("studentIds")
            if not isinstance(student_ids, list) or not student_ids:
                return json_error("studentIds must be a non-empty list", 400, error_code="INVALID_PAYLOAD")

            container.session_service.get_session(session_id, now=now_utc())
            result = reconciler.bulk_apply(
                session_id,
                student_ids,
                data.get("status"),
                data.get("reason"),
                now_utc(),
            )
        except DomainError as e:
            return domain_error_response(e)
        return json_ok(result.to_dict(), message=f"Batch done: {result.succeeded} record(s) updated.")

    @app.route("/api/sessions/<session_id>/records/<student_id>", methods=["PUT"], endpoint="api_record_set")
    def api_record_set(session_id: str, student_id: str):
        """Manual revision: status, optional reason and optional ISO ``timestamp``."""
        try:
            data = json_object(request.get_json(silent=True))
            timestamp = None
            if data.get("timestamp") is not None:
                try:
                    timestamp = parse_iso_datetime(str(data["timestamp"]))
                except ValueError:
                    raise ValidationError("timestamp must be an ISO-8601 timestamp")

            now = now_utc()
            container.session_service.get_session(session_id, now=now)
            record = reconciler.set_status(
                session_id,
                student_id,
                data.get("status"),
                now=now,
                reason=data.get("reason"),
                timestamp=timestamp,
            )
        except DomainError as e:
            return domain_error_response(e)
        return json_ok(record.to_dict(), message="Attendance updated.")
