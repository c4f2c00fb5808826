from __future__ import annotations

import logging

from flask import Flask, jsonify, request

from ..common.datetime_utils import now_utc
from ..common.responses import domain_error_response, json_error, json_ok
from ..container import Container
from ..core.exceptions import DomainError

logger = logging.getLogger(__name__)


def register(app: Flask, container: Container) -> None:
    @app.route("/api/attendance/validate", methods=["POST"], endpoint="api_attendance_validate")
    def api_attendance_validate():
        """Check-in validation entry point called by the student app."""
        payload = request.get_json(silent=True)
        if payload is None:
            # Sandbox runtimes sometimes forward the body as a plain JSON string.
            payload = request.get_data(as_text=True)

        try:
            response = container.checkin_processor.handle(payload, now=now_utc())
        except Exception:
            logger.exception("unexpected error while validating attendance")
            return json_error("Internal server error processing attendance.", 500)

        return jsonify(response.to_dict()), response.status_code

    @app.route("/api/students/<student_id>/records", methods=["GET"], endpoint="api_student_records")
    def api_student_records(student_id: str):
        limit = request.args.get("limit", default=50, type=int)
        try:
            records = container.ledger.list_for_student(student_id, limit=max(1, min(limit, 500)))
        except DomainError as e:
            return domain_error_response(e)
        return json_ok([r.to_dict() for r in records])
