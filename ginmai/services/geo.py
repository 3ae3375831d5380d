# Distance helpers for radius queries without PostGIS

import math
from typing import Tuple

EARTH_RADIUS_M = 6371000
KM_PER_DEG_LAT = 111.32


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Approximate distance in meters between two lat/lng points."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlam = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def bounding_box(lat: float, lng: float, radius_km: float) -> Tuple[float, float, float, float]:
    """
    (min_lat, min_lng, max_lat, max_lng) enclosing the radius circle.
    Used as an index-friendly SQL prefilter, the haversine check refines it.
    """
    lat_delta = radius_km / KM_PER_DEG_LAT
    # clamp cos near the poles so the box stays finite
    lng_delta = radius_km / (KM_PER_DEG_LAT * max(math.cos(math.radians(lat)), 0.01))
    return (lat - lat_delta, lng - lng_delta, lat + lat_delta, lng + lng_delta)
