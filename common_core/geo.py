"""
Great-circle distance between two lat/lon points.

Used by the dispatch selector to rank ready stations against a caller's
GPS fix.
"""

from __future__ import annotations

import math

EARTH_RADIUS_KM = 6371.0


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Haversine distance in kilometers.

    Pure and deterministic. Non-finite inputs yield NaN, so callers must
    validate coordinates first (see ``is_valid_coordinate``).
    """
    lat1_r = math.radians(lat1)
    lat2_r = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlon / 2) ** 2
    a = min(1.0, a)  # rounding can push near-antipodal pairs just past 1
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def is_finite_number(value) -> bool:
    # bool is an int subclass; True/False are not coordinates
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def is_valid_coordinate(lat, lon) -> bool:
    if not (is_finite_number(lat) and is_finite_number(lon)):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0
