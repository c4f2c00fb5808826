from __future__ import annotations

import math

from ..core.constants import EARTH_RADIUS_METERS


def distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters between two points given in degrees.

    Haversine formula on a sphere of radius ``EARTH_RADIUS_METERS``. Inputs are
    not validated: NaN in, NaN out.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # Rounding can push ``a`` a hair outside [0, 1] for near-antipodal points.
    if a > 1.0:
        a = 1.0
    elif a < 0.0:
        a = 0.0
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c
