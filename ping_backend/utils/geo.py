# ping_backend/utils/geo.py
"""
Geographic helpers: great-circle distance and radius predicates
"""

import math
from typing import List, Tuple

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE = 111.32


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two WGS84 points in kilometres"""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def degrees_for_radius_km(radius_km: float, km_per_degree: float = KM_PER_DEGREE) -> float:
    """Approximate radius in degrees (used for the coarse store-side predicate)"""
    return radius_km / km_per_degree


def bounding_box(
    lat: float, lng: float, radius_km: float, km_per_degree: float = 111.0
) -> Tuple[float, float, float, float]:
    """(min_lat, max_lat, min_lng, max_lng) around a point.

    Longitude delta widens with latitude; near the poles it is clamped to the
    whole range.
    """
    lat_delta = degrees_for_radius_km(radius_km, km_per_degree)
    cos_lat = math.cos(math.radians(lat))
    if abs(cos_lat) < 1e-6:
        lng_delta = 180.0
    else:
        lng_delta = min(lat_delta / abs(cos_lat), 180.0)
    return lat - lat_delta, lat + lat_delta, lng - lng_delta, lng + lng_delta


def longitude_ranges(min_lng: float, max_lng: float) -> List[Tuple[float, float]]:
    """Split a longitude span that crosses the antimeridian into in-range pieces"""
    if max_lng - min_lng >= 360.0:
        return [(-180.0, 180.0)]
    if min_lng < -180.0:
        return [(min_lng + 360.0, 180.0), (-180.0, max_lng)]
    if max_lng > 180.0:
        return [(min_lng, 180.0), (-180.0, max_lng - 360.0)]
    return [(min_lng, max_lng)]


def is_valid_coordinate(lat: float, lng: float) -> bool:
    if lat is None or lng is None:
        return False
    if math.isnan(lat) or math.isnan(lng):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0
