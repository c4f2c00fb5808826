import os

from .config import (
    LOW_ACCURACY_WARNING_METERS,
    MAX_DISTANCE_METERS,
    SESSION_DURATION_MINUTES,
    db_config_from_env,
    env_bool,
)

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = db_config_from_env(default_password="root")

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = env_bool("AUTO_INIT_DB", "1")
# Optional: also seed demo profiles on startup
AUTO_SEED_DB = env_bool("AUTO_SEED_DB", "0")
