"""
Geographic utility functions.

This is the SINGLE SOURCE OF TRUTH for geographic calculations.
DO NOT duplicate these functions elsewhere.

All distances are in meters. Points are any objects exposing
``lat``, ``lon`` and ``elevation`` (None when unknown).
"""
import math
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

# Mean Earth radius in meters
EARTH_RADIUS_M = 6_371_000.0


class Coordinate(Protocol):
    lat: float
    lon: float
    elevation: Optional[float]


@dataclass(frozen=True)
class RouteStats:
    """Totals accumulated along a point sequence."""
    distance_m: float = 0.0
    elevation_gain_m: float = 0.0
    elevation_loss_m: float = 0.0


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    min_lon: float
    max_lat: float
    max_lon: float


def haversine_m(
    lat1: float, lon1: float,
    lat2: float, lon2: float
) -> float:
    """
    Calculate great-circle distance between two points.

    Args:
        lat1, lon1: First point coordinates (degrees)
        lat2, lon2: Second point coordinates (degrees)

    Returns:
        Distance in meters
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_lat / 2) ** 2 +
        math.cos(lat1_rad) * math.cos(lat2_rad) *
        math.sin(delta_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def distance_meters(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two points."""
    return haversine_m(a.lat, a.lon, b.lat, b.lon)


def accumulate(points: Sequence[Coordinate]) -> RouteStats:
    """
    Accumulate distance and elevation gain/loss in a single pass.

    A segment contributes to gain/loss only when both of its endpoints
    carry an elevation; missing elevations are never inferred.
    """
    distance = 0.0
    gain = 0.0
    loss = 0.0

    for i in range(1, len(points)):
        prev = points[i - 1]
        curr = points[i]
        distance += distance_meters(prev, curr)

        if prev.elevation is not None and curr.elevation is not None:
            diff = curr.elevation - prev.elevation
            gain += max(0.0, diff)
            loss += max(0.0, -diff)

    return RouteStats(
        distance_m=distance,
        elevation_gain_m=gain,
        elevation_loss_m=loss
    )


def cumulative_distances(points: Sequence[Coordinate]) -> list[float]:
    """Distance from the first point to every point; first entry is 0."""
    if not points:
        return []

    distances = [0.0]
    total = 0.0
    for i in range(1, len(points)):
        total += distance_meters(points[i - 1], points[i])
        distances.append(total)
    return distances


def bounding_box(points: Sequence[Coordinate]) -> BoundingBox:
    """
    Min/max latitude and longitude over all points.

    Raises:
        ValueError: If points is empty
    """
    if not points:
        raise ValueError("Cannot compute bounding box of an empty point sequence")

    lats = [p.lat for p in points]
    lons = [p.lon for p in points]
    return BoundingBox(
        min_lat=min(lats),
        min_lon=min(lons),
        max_lat=max(lats),
        max_lon=max(lons)
    )
