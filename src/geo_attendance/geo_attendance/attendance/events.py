from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from .model import AttendanceRecord

logger = logging.getLogger(__name__)


class RecordEventType(str, Enum):
    CREATED = "create"
    UPDATED = "update"


@dataclass(frozen=True)
class RecordEvent:
    """Change notification on the attendance-record collection.

    Viewers subscribe to these and filter by ``record.session_id`` themselves.
    """

    type: RecordEventType
    record: AttendanceRecord


class RecordEventSink(Protocol):
    def publish(self, event: RecordEvent) -> None:
        raise NotImplementedError


class LoggingEventSink(RecordEventSink):
    """Default sink: the real-time channel is an external service, we only log."""

    def publish(self, event: RecordEvent) -> None:
        logger.info(
            "record %s session=%s student=%s status=%s",
            event.type.value,
            event.record.session_id,
            event.record.student_id,
            event.record.status.value,
        )
