"""Great-circle distance between two points (haversine, spherical Earth)."""

import math

from src.core.schemas import GeoPoint

EARTH_RADIUS_KM = 6371.0


def _to_radians(degrees: float) -> float:
    return degrees * (math.pi / 180)


def distance_km(a: GeoPoint, b: GeoPoint) -> float:
    """Return the haversine distance between two points in kilometres.

    Pure and symmetric. Range checking is left to the caller.
    """
    d_lat = _to_radians(b.lat - a.lat)
    d_lng = _to_radians(b.lng - a.lng)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(_to_radians(a.lat)) * math.cos(_to_radians(b.lat)) * math.sin(d_lng / 2) ** 2
    )
    # Rounding can push h a hair past 1 for antipodal points.
    h = min(1.0, max(0.0, h))
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


def is_valid_point(lat: float, lng: float) -> bool:
    """True when lat is in [-90, 90] and lng in [-180, 180]."""
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0
