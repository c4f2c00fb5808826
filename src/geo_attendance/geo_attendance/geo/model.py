from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..common.validators import require_latitude, require_longitude


@dataclass(frozen=True)
class GeoFix:
    """A location reading from the device geolocation sensor.

    ``accuracy`` (meters) is advisory: it drives UI warnings, never admission.
    """

    latitude: float
    longitude: float
    accuracy: Optional[float] = None

    @classmethod
    def from_payload(cls, payload: dict, *, lat_key: str = "latitude", lon_key: str = "longitude") -> "GeoFix":
        accuracy = payload.get("accuracy")
        return cls(
            latitude=require_latitude(payload.get(lat_key), lat_key),
            longitude=require_longitude(payload.get(lon_key), lon_key),
            accuracy=float(accuracy) if isinstance(accuracy, (int, float)) and not isinstance(accuracy, bool) else None,
        )

    def is_low_accuracy(self, threshold_meters: float) -> bool:
        return self.accuracy is not None and self.accuracy > threshold_meters
