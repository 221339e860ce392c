"""
Canonical route model.

Every route source (GPX, BRouter GeoJSON, Mapy.cz export) is normalized
into a Route before conversion. Routes are immutable: derived totals are
computed from ``points`` at construction and can never drift from them.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

from course_sync.shared.constants import GENERIC_ROUTE_NAMES, UNNAMED_ROUTE
from course_sync.shared.geo import accumulate


@dataclass(frozen=True)
class GeoPoint:
    """
    Single track point.

    Raises:
        ValueError: If coordinates are not finite or out of range
    """
    lat: float
    lon: float
    elevation: Optional[float] = None
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        if not (math.isfinite(self.lat) and math.isfinite(self.lon)):
            raise ValueError(f"Non-finite coordinate: {self.lat}, {self.lon}")
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Latitude out of range: {self.lat}")
        if not -180.0 <= self.lon <= 180.0:
            raise ValueError(f"Longitude out of range: {self.lon}")


@dataclass(frozen=True)
class Waypoint(GeoPoint):
    """Point of interest shown alongside the track."""
    name: str = "Waypoint"
    description: Optional[str] = None
    type: Optional[str] = None


@dataclass(frozen=True)
class Route:
    """Format-agnostic route: ordered track points plus waypoints."""

    name: str
    points: tuple[GeoPoint, ...]
    waypoints: tuple[Waypoint, ...] = ()
    description: Optional[str] = None

    # Derived from points
    total_distance_m: float = field(init=False)
    total_elevation_gain_m: float = field(init=False)
    total_elevation_loss_m: float = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "points", tuple(self.points))
        object.__setattr__(self, "waypoints", tuple(self.waypoints))

        stats = accumulate(self.points)
        object.__setattr__(self, "total_distance_m", stats.distance_m)
        object.__setattr__(self, "total_elevation_gain_m", stats.elevation_gain_m)
        object.__setattr__(self, "total_elevation_loss_m", stats.elevation_loss_m)

    @property
    def is_empty(self) -> bool:
        return not self.points

    @property
    def has_generic_name(self) -> bool:
        return not self.name or self.name in GENERIC_ROUTE_NAMES

    def with_name(self, name: str) -> "Route":
        return replace(self, name=name or UNNAMED_ROUTE)

    def with_name_override(self, name: Optional[str]) -> "Route":
        """Use ``name`` only if the route still carries a placeholder name."""
        if name and self.has_generic_name:
            return self.with_name(name)
        return self
