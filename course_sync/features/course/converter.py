"""
Route -> Garmin Course conversion.

Everything numeric in the course is computed from the route's points;
only the name is carried over. The remaining fields are constants the
course service still expects.
"""

import logging
from typing import Sequence

from course_sync.features.routes.models import GeoPoint, Route, Waypoint
from course_sync.shared.constants import (
    ActivityType,
    DEFAULT_ACTIVITY_TYPE,
    GARMIN_ACTIVITY_TYPE_PK,
)
from course_sync.shared.errors import ErrorCode, ParseError
from course_sync.shared.geo import accumulate, bounding_box, cumulative_distances, haversine_m
from .schemas import (
    Course,
    CourseBoundingBox,
    CourseGeoPoint,
    CourseLine,
    CoursePoint,
    LatLon,
)

logger = logging.getLogger(__name__)


def get_activity_type_pk(activity_type: ActivityType | str) -> int:
    """Garmin activityTypePk for an activity type (10 cycling, 17 hiking)."""
    return GARMIN_ACTIVITY_TYPE_PK[ActivityType(activity_type)]


def _nearest_point_index(points: Sequence[GeoPoint], waypoint: Waypoint) -> int:
    return min(
        range(len(points)),
        key=lambda i: haversine_m(points[i].lat, points[i].lon, waypoint.lat, waypoint.lon)
    )


def convert_route_to_course(
    route: Route,
    activity_type: ActivityType | str = DEFAULT_ACTIVITY_TYPE
) -> Course:
    """
    Convert a Route into a Garmin Course document.

    Args:
        route: Non-empty route
        activity_type: cycling or hiking

    Returns:
        Course ready for upload

    Raises:
        ParseError: If the route has no points
    """
    if route.is_empty:
        raise ParseError("No points in route", ErrorCode.EMPTY_ROUTE)

    points = route.points
    distances = cumulative_distances(points)

    # Missing elevation is reported as 0 in the document; totals skip it
    geo_points = [
        CourseGeoPoint(
            latitude=point.lat,
            longitude=point.lon,
            elevation=point.elevation if point.elevation is not None else 0.0,
            distance=distance,
            timestamp=0 if i == 0 else None,
        )
        for i, (point, distance) in enumerate(zip(points, distances))
    ]
    total_distance = distances[-1]

    stats = accumulate(points)
    box = bounding_box(points)

    course_points = []
    for waypoint in route.waypoints:
        nearest = _nearest_point_index(points, waypoint)
        course_points.append(CoursePoint(
            name=waypoint.name,
            lat=waypoint.lat,
            lon=waypoint.lon,
            distance=distances[nearest],
            elevation=waypoint.elevation if waypoint.elevation is not None else 0.0,
        ))

    first = points[0]
    course = Course(
        activity_type_pk=get_activity_type_pk(activity_type),
        geo_points=geo_points,
        course_lines=[
            CourseLine(
                distance_in_meters=total_distance,
                number_of_points=len(points),
            )
        ],
        bounding_box=CourseBoundingBox(
            lower_left=LatLon(latitude=box.min_lat, longitude=box.min_lon),
            upper_right=LatLon(latitude=box.max_lat, longitude=box.max_lon),
        ),
        course_points=course_points,
        distance_meter=total_distance,
        elevation_gain_meter=round(stats.elevation_gain_m, 2),
        elevation_loss_meter=round(stats.elevation_loss_m, 2),
        start_point=CourseGeoPoint(
            latitude=first.lat,
            longitude=first.lon,
            elevation=first.elevation if first.elevation is not None else 0.0,
            distance=0.0,
            timestamp=None,
        ),
        course_name=route.name,
    )

    logger.info(
        f"Converted '{route.name}' to course: {len(points)} points, "
        f"{total_distance:.0f} m, +{course.elevation_gain_meter} m"
    )
    return course
