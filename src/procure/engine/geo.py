"""Great-circle geometry helpers."""

import math

from procure.engine.models import Coord

EARTH_RADIUS_KM = 6371.0


def haversine_km(a: Coord, b: Coord) -> float:
    """Great-circle distance between two (lat, lng) points in kilometres."""
    lat1, lng1 = a
    lat2, lng2 = b
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))
