from __future__ import annotations

from typing import Optional

from flask import jsonify

from ..core.exceptions import (
    AdmissionRejected,
    DomainError,
    SessionNotFoundError,
    StoreUnavailableError,
    StudentNotFoundError,
    ValidationError,
)


def json_ok(data=None, *, message: str = "OK", status: int = 200):
    body = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    return jsonify(body), status


def json_error(message: str, status: int, *, error_code: Optional[str] = None):
    body = {"success": False, "message": message}
    if error_code:
        body["error_code"] = error_code
    return jsonify(body), status


def domain_error_response(e: DomainError):
    """Map the domain exception hierarchy onto HTTP status codes."""

    if isinstance(e, ValidationError):
        return json_error(str(e), 400, error_code="INVALID_PAYLOAD")
    if isinstance(e, SessionNotFoundError):
        return json_error(str(e), 404, error_code="SESSION_NOT_FOUND")
    if isinstance(e, StudentNotFoundError):
        return json_error(str(e), 404, error_code="STUDENT_NOT_FOUND")
    if isinstance(e, AdmissionRejected):
        return json_error(str(e), 403, error_code=e.reason.value)
    if isinstance(e, StoreUnavailableError):
        return json_error(str(e), 500, error_code="STORE_UNAVAILABLE")
    return json_error(str(e), 409)
