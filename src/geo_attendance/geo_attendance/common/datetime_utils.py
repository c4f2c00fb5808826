from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def now_utc() -> datetime:
    """Current time as an aware UTC datetime.

    Note: Wrapped so tests can patch/mocked easier. Core services never call it
    themselves; callers pass ``now`` explicitly.
    """
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO-8601 timestamp (``Z`` suffix accepted) into an aware datetime."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_aware(datetime.fromisoformat(text))


def isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    return ensure_aware(value).isoformat() if value else None
