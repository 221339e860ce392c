"""
Garmin course module.

Components:
- convert_route_to_course: Route -> Course document
- Course and sub-schemas: course-service JSON contract
"""

from .converter import convert_route_to_course, get_activity_type_pk
from .schemas import (
    Course,
    CourseBoundingBox,
    CourseGeoPoint,
    CourseLine,
    CoursePoint,
    LatLon,
)

__all__ = [
    "convert_route_to_course",
    "get_activity_type_pk",
    "Course",
    "CourseBoundingBox",
    "CourseGeoPoint",
    "CourseLine",
    "CoursePoint",
    "LatLon",
]
