import os

from .config import (
    LOG_LEVEL,
    LOW_ACCURACY_WARNING_METERS,
    MAX_DISTANCE_METERS,
    SESSION_DURATION_MINUTES,
    db_config_from_env,
    env_bool,
)

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = db_config_from_env()

DEBUG = False

AUTO_INIT_DB = env_bool("AUTO_INIT_DB", "0")
AUTO_SEED_DB = env_bool("AUTO_SEED_DB", "0")
