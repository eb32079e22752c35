"""
Great-circle distance and proximity validation.

Pure functions: identical inputs always give identical outputs, so results
are safe to cache. Coordinates are assumed to be well-formed decimal degrees.
"""

import math

from .models import DistanceValidationResult, DEFAULT_MAX_DISTANCE_METERS

EARTH_RADIUS_METERS = 6371000


def calculate_haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the distance between two coordinates using the haversine formula.

    Args:
        lat1: Latitude of the first point
        lon1: Longitude of the first point
        lat2: Latitude of the second point
        lon2: Longitude of the second point

    Returns:
        float: Distance in meters
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    # Float error can push a slightly past 1 for antipodal points
    a = min(max(a, 0.0), 1.0)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


def validate_distance(
    user_lat: float,
    user_lng: float,
    venue_lat: float,
    venue_lng: float,
    max_distance_meters: float = DEFAULT_MAX_DISTANCE_METERS
) -> DistanceValidationResult:
    """
    Check whether a user is within the allowed radius of a venue.

    The comparison uses the raw distance; only the reported distance is
    rounded to the nearest meter.

    Args:
        user_lat: User's latitude
        user_lng: User's longitude
        venue_lat: Venue's latitude
        venue_lng: Venue's longitude
        max_distance_meters: Maximum allowed distance (default: 100)

    Returns:
        DistanceValidationResult: validity and rounded distance
    """
    distance = calculate_haversine_distance(user_lat, user_lng, venue_lat, venue_lng)

    return DistanceValidationResult(
        is_valid=distance <= max_distance_meters,
        distance=int(math.floor(distance + 0.5)),
    )


def format_distance(meters: int) -> str:
    """Format a distance for display: meters below 1 km, kilometers above."""
    if meters < 1000:
        return f"{meters} m"
    return f"{meters / 1000:.1f} km"
