from __future__ import annotations

import importlib
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .database.bootstrap import apply_schema, apply_seed_sql, list_tables

from .container import Container, build_container
from .checkin.controller import register as register_checkin
from .roster.controller import register as register_roster
from .sessions.controller import register as register_sessions

logger = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[3]


def setup_logging(app: Flask, level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not app.debug and not app.testing:
        log_dir = REPO_ROOT / "logs"
        log_dir.mkdir(exist_ok=True)
        file_handler = logging.FileHandler(log_dir / "app.log")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]")
        )
        file_handler.setLevel(logging.INFO)
        logging.getLogger().addHandler(file_handler)


def create_app(container: Optional[Container] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = getattr(settings, "DB_CONFIG")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    setup_logging(app, getattr(settings, "LOG_LEVEL", "INFO"))

    logger.info(
        "settings=%s db=%s@%s:%s/%s",
        settings_module,
        db_config.get("user"),
        db_config.get("host"),
        db_config.get("port", 3306),
        db_config.get("database"),
    )

    if container is None:
        auto_init_db = bool(getattr(settings, "AUTO_INIT_DB", False))
        auto_seed_db = bool(getattr(settings, "AUTO_SEED_DB", False))
        if auto_init_db:
            apply_schema(db_config, schema_path=REPO_ROOT / "database" / "schema.sql")
            logger.info("schema ready (tables=%d)", len(list_tables(db_config)))
        if auto_seed_db:
            apply_seed_sql(db_config, seed_path=REPO_ROOT / "database" / "seed.sql")
            logger.info("demo seed ready")

        container = build_container(
            db_config=db_config,
            max_distance_meters=float(getattr(settings, "MAX_DISTANCE_METERS", 100.0)),
            session_duration_minutes=int(getattr(settings, "SESSION_DURATION_MINUTES", 120)),
            low_accuracy_warning_meters=float(getattr(settings, "LOW_ACCURACY_WARNING_METERS", 50.0)),
        )

    app.extensions["geo_attendance"] = container

    register_checkin(app, container)
    register_sessions(app, container)
    register_roster(app, container)

    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=int(os.getenv("PORT", "5000")))
