"""Example: drive the service layer directly (no Flask).

Opens a session at a venue in Lagos and checks a student in from ~11m away,
then from ~8.4km away.
"""

import importlib

from dotenv import load_dotenv

from config import get_settings_module

from src.geo_attendance.geo_attendance.common.datetime_utils import now_utc
from src.geo_attendance.geo_attendance.container import build_container
from src.geo_attendance.geo_attendance.geo.model import GeoFix


def main():
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    container = build_container(db_config=settings.DB_CONFIG)

    now = now_utc()
    session = container.session_service.open_session(
        course_id="CSC401",
        course_name="Distributed Systems",
        location=GeoFix(latitude=6.5244, longitude=3.3792, accuracy=8.0),
        now=now,
    )
    print("opened", session.session_id, "code", session.broadcast_code)

    for lat, lon in [(6.5244, 3.3793), (6.6000, 3.3792)]:
        response = container.checkin_processor.handle(
            {"sessionId": session.session_id, "studentId": "stu-amaka", "recordedLat": lat, "recordedLon": lon},
            now=now_utc(),
        )
        print(response.status_code, response.to_dict())


if __name__ == "__main__":
    main()
