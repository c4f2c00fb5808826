"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

EARTH_RADIUS_METERS = 6_371_000.0

DEFAULT_MAX_DISTANCE_METERS = 100.0
DEFAULT_SESSION_DURATION_MINUTES = 120
DEFAULT_LOW_ACCURACY_WARNING_METERS = 50.0

BROADCAST_CODE_MIN = 100_000
BROADCAST_CODE_MAX = 999_999
BROADCAST_CODE_ATTEMPTS = 10

MANUAL_CORRECTION_REASON = "Manual Correction"
BULK_CORRECTION_REASON = "Bulk Correction"
