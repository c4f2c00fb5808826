"""Geo Attendance package.

Location-bound lecture attendance: lecturers open time-boxed sessions at a venue,
students check in only from within the geofence while the session is active.
The package is organized by feature modules (sessions, attendance, checkin,
roster, ...) with a thin Flask controller layer over service/repository layers.
"""
