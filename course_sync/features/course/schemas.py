"""
Garmin Connect Course schemas.

Pydantic models for the course-service JSON contract. Field names are
snake_case in Python and serialized with their camelCase API aliases.
Field declaration order is the serialization order.
"""

import json
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from course_sync.shared.constants import (
    COORDINATE_SYSTEM,
    COURSE_POINT_TYPE_GENERIC,
    COURSE_RULE_PK,
    COURSE_SOURCE_TYPE_ID,
)


class CourseModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CourseGeoPoint(CourseModel):
    """Single track point with cumulative distance."""

    latitude: float
    longitude: float
    elevation: float
    distance: float
    timestamp: Optional[int] = None


class CourseLine(CourseModel):
    points: None = None
    distance_in_meters: float = Field(alias="distanceInMeters")
    course_id: None = Field(default=None, alias="courseId")
    sort_order: int = Field(default=1, alias="sortOrder")
    number_of_points: int = Field(alias="numberOfPoints")
    bearing: int = 0
    coordinate_system: str = Field(default=COORDINATE_SYSTEM, alias="coordinateSystem")


class LatLon(CourseModel):
    latitude: float
    longitude: float


class CourseBoundingBox(CourseModel):
    lower_left: LatLon = Field(alias="lowerLeft")
    upper_right: LatLon = Field(alias="upperRight")
    lower_left_lat_is_set: bool = Field(default=True, alias="lowerLeftLatIsSet")
    lower_left_long_is_set: bool = Field(default=True, alias="lowerLeftLongIsSet")
    upper_right_lat_is_set: bool = Field(default=True, alias="upperRightLatIsSet")
    upper_right_long_is_set: bool = Field(default=True, alias="upperRightLongIsSet")


class CoursePoint(CourseModel):
    """Waypoint shown along the course."""

    name: str
    course_point_type: str = Field(default=COURSE_POINT_TYPE_GENERIC, alias="coursePointType")
    lat: float
    lon: float
    distance: float
    elevation: float
    timestamp: None = None
    course_point_id: None = Field(default=None, alias="coursePointId")


class Course(CourseModel):
    """Course document posted to the course service."""

    activity_type_pk: int = Field(alias="activityTypePk")
    has_turn_detection_disabled: bool = Field(default=False, alias="hasTurnDetectionDisabled")
    geo_points: list[CourseGeoPoint] = Field(alias="geoPoints")
    course_lines: list[CourseLine] = Field(alias="courseLines")
    bounding_box: CourseBoundingBox = Field(alias="boundingBox")
    course_points: list[CoursePoint] = Field(default_factory=list, alias="coursePoints")
    distance_meter: float = Field(alias="distanceMeter")
    elevation_gain_meter: float = Field(alias="elevationGainMeter")
    elevation_loss_meter: float = Field(alias="elevationLossMeter")
    start_point: CourseGeoPoint = Field(alias="startPoint")
    elapsed_seconds: None = Field(default=None, alias="elapsedSeconds")
    open_street_map: bool = Field(default=False, alias="openStreetMap")
    coordinate_system: str = Field(default=COORDINATE_SYSTEM, alias="coordinateSystem")
    rule_pk: int = Field(default=COURSE_RULE_PK, alias="rulePK")
    course_name: str = Field(alias="courseName")
    matched_to_segments: bool = Field(default=False, alias="matchedToSegments")
    include_laps: bool = Field(default=False, alias="includeLaps")
    has_pace_band: bool = Field(default=False, alias="hasPaceBand")
    has_power_guide: bool = Field(default=False, alias="hasPowerGuide")
    favorite: bool = False
    speed_meter_per_second: None = Field(default=None, alias="speedMeterPerSecond")
    source_type_id: int = Field(default=COURSE_SOURCE_TYPE_ID, alias="sourceTypeId")

    def to_payload(self) -> dict:
        """JSON-ready dict with API field names."""
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self) -> str:
        return json.dumps(self.to_payload())
