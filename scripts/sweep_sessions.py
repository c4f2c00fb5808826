"""Flip overdue sessions to inactive.

Optional: admission re-derives expiry on every check-in, so this only keeps the
stored flag tidy for dashboards. Run it from cron, e.g. every five minutes.
"""

from __future__ import annotations

import importlib
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv

from config import get_settings_module

from src.geo_attendance.geo_attendance.common.datetime_utils import now_utc
from src.geo_attendance.geo_attendance.container import build_container


def main() -> None:
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    logging.basicConfig(level=getattr(logging, str(getattr(settings, "LOG_LEVEL", "INFO")).upper(), logging.INFO))

    container = build_container(db_config=dict(settings.DB_CONFIG))
    count = container.session_service.sweep_expired(now=now_utc())
    print(f"OK: {count} session(s) expired")


if __name__ == "__main__":
    main()
