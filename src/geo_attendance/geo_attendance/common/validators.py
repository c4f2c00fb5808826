from __future__ import annotations

import math
from typing import Any, Mapping, Optional

from ..core.exceptions import ValidationError


def require_non_empty(value: Any, field_name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def require_coordinate(value: Any, field_name: str, *, limit: float) -> float:
    """Coerce a latitude/longitude to a finite float within ``[-limit, limit]``."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field_name} is required")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number")
    if not math.isfinite(number) or abs(number) > limit:
        raise ValidationError(f"{field_name} is out of range")
    return number


def require_latitude(value: Any, field_name: str = "latitude") -> float:
    return require_coordinate(value, field_name, limit=90.0)


def require_longitude(value: Any, field_name: str = "longitude") -> float:
    return require_coordinate(value, field_name, limit=180.0)


def optional_text(value: Any, field_name: str) -> Optional[str]:
    """Stripped string, ``None`` when absent or blank; any non-string is rejected."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    return value.strip() or None


def json_object(payload: Any) -> dict:
    """Request body as a dict; a missing body reads as ``{}``."""
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be a JSON object")
    return dict(payload)
