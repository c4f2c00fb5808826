"""Settings shared by every environment module."""

import os


def env_bool(name: str, default: str) -> bool:
    return bool(int(os.getenv(name, default)))


def db_config_from_env(*, default_password: str = "") -> dict:
    return {
        "host": os.getenv("DB_HOST", "localhost"),
        "port": int(os.getenv("DB_PORT", "3306")),
        "user": os.getenv("DB_USER", "root"),
        "password": os.getenv("DB_PASSWORD", default_password),
        "database": os.getenv("DB_NAME", "geo_attendance"),
        # Seconds; a check-in must fail cleanly instead of hanging on an unreachable store.
        "connect_timeout": int(os.getenv("DB_CONNECT_TIMEOUT", "5")),
    }


# Geofence radius around the venue; a check-in exactly this far away is accepted.
MAX_DISTANCE_METERS = float(os.getenv("MAX_DISTANCE_METERS", "100"))

SESSION_DURATION_MINUTES = int(os.getenv("SESSION_DURATION_MINUTES", "120"))

# GPS accuracy above this only produces a warning, never a rejection.
LOW_ACCURACY_WARNING_METERS = float(os.getenv("LOW_ACCURACY_WARNING_METERS", "50"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
