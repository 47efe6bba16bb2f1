"""
Distance calculation using the Haversine formula.

Every proximity decision in the system goes through ``haversine_km``;
cell-based pre-filters (see ``search.py``) only narrow the candidate set.

Complexity: O(1) per call.
"""

import math

EARTH_RADIUS_KM = 6_371.0


def haversine_km(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the great-circle distance in **km** between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    # clamp: rounding can push a past 1.0 for antipodal points
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(1.0, a)))


def within_radius(
    origin_lat: float,
    origin_lng: float,
    lat: float,
    lng: float,
    radius_km: float,
) -> tuple[bool, float]:
    """Return ``(inside, distance)``; the boundary counts as inside."""
    d = haversine_km(origin_lat, origin_lng, lat, lng)
    return d <= radius_km, d
