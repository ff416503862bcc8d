"""
Distance calculation using the Haversine formula.

Used to annotate station look-ups with the rider's straight-line distance
to each station.  The nearby-station search itself runs in PostGIS; this
only decorates its results.

Complexity: O(1) per call.
"""

import math

from .entities import Location

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
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def distance_to(origin: Location, target: Location) -> float:
    return haversine_km(
        origin.latitude, origin.longitude, target.latitude, target.longitude
    )
