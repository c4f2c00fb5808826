from .config import (
    LOW_ACCURACY_WARNING_METERS,
    MAX_DISTANCE_METERS,
    SESSION_DURATION_MINUTES,
    db_config_from_env,
)

SECRET_KEY = "test-secret"

DB_CONFIG = db_config_from_env(default_password="test")

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"

AUTO_INIT_DB = False
AUTO_SEED_DB = False
