"""Great-circle helpers for radius search."""

import math

EARTH_RADIUS_METERS = 6_371_000.0


def haversine_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Great-circle distance between two points in meters.

    Example:
        >>> round(haversine_meters(25.2048, 55.2708, 25.2048, 55.2708))
        0
    """
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(a)))


def bounding_box(
    latitude: float, longitude: float, radius_meters: float
) -> tuple[float, float, float, float] | tuple[float, float, None, None]:
    """
    Lat/lng box enclosing a radius, used as a cheap SQL prefilter.

    Uses the same sphere as haversine_meters, so every point the exact
    distance check accepts lies inside the box.

    Returns:
        (min_lat, max_lat, min_lng, max_lng); the longitude bounds are None
        when the circle reaches a pole or crosses the antimeridian
    """
    angular = radius_meters / EARTH_RADIUS_METERS
    lat_delta = math.degrees(angular)
    min_lat, max_lat = latitude - lat_delta, latitude + lat_delta
    if min_lat <= -90 or max_lat >= 90:
        return max(min_lat, -90.0), min(max_lat, 90.0), None, None

    ratio = math.sin(angular) / math.cos(math.radians(latitude))
    if ratio >= 1:
        return min_lat, max_lat, None, None
    lng_delta = math.degrees(math.asin(ratio))
    min_lng, max_lng = longitude - lng_delta, longitude + lng_delta
    if min_lng < -180 or max_lng > 180:
        return min_lat, max_lat, None, None
    return min_lat, max_lat, min_lng, max_lng
