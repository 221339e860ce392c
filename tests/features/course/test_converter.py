"""
Tests for Route -> Garmin Course conversion.
"""

import pytest

from course_sync.features.course import convert_route_to_course, get_activity_type_pk
from course_sync.features.routes import GeoPoint, Route, Waypoint
from course_sync.shared.constants import ActivityType
from course_sync.shared.errors import ErrorCode, ParseError


# =============================================================================
# Test Data
# =============================================================================

def _route(elevations=(100, 150, 140, 160), waypoints=(), name="Ridge ride") -> Route:
    points = [
        GeoPoint(lat=50.0 + i * 0.001, lon=14.0 + i * 0.0005, elevation=e)
        for i, e in enumerate(elevations)
    ]
    return Route(name=name, points=points, waypoints=waypoints)


TOP_LEVEL_FIELDS = [
    "activityTypePk", "hasTurnDetectionDisabled", "geoPoints", "courseLines",
    "boundingBox", "coursePoints", "distanceMeter", "elevationGainMeter",
    "elevationLossMeter", "startPoint", "elapsedSeconds", "openStreetMap",
    "coordinateSystem", "rulePK", "courseName", "matchedToSegments", "includeLaps",
    "hasPaceBand", "hasPowerGuide", "favorite", "speedMeterPerSecond", "sourceTypeId",
]


# =============================================================================
# Test Conversion
# =============================================================================

class TestConvertRouteToCourse:
    """Tests for convert_route_to_course."""

    def test_payload_field_set(self):
        payload = convert_route_to_course(_route()).to_payload()
        assert list(payload) == TOP_LEVEL_FIELDS

    def test_constants(self):
        payload = convert_route_to_course(_route()).to_payload()
        assert payload["hasTurnDetectionDisabled"] is False
        assert payload["elapsedSeconds"] is None
        assert payload["openStreetMap"] is False
        assert payload["coordinateSystem"] == "WGS84"
        assert payload["rulePK"] == 2
        assert payload["sourceTypeId"] == 3
        assert payload["speedMeterPerSecond"] is None
        assert payload["courseName"] == "Ridge ride"

    def test_activity_type(self):
        assert convert_route_to_course(_route(), ActivityType.CYCLING).activity_type_pk == 10
        assert convert_route_to_course(_route(), "hiking").activity_type_pk == 17

    def test_elevation_totals(self):
        course = convert_route_to_course(_route())
        assert course.elevation_gain_meter == pytest.approx(70.0)
        assert course.elevation_loss_meter == pytest.approx(10.0)

    def test_geo_points(self):
        course = convert_route_to_course(_route())
        geo = course.geo_points
        assert len(geo) == 4
        assert geo[0].distance == 0.0
        assert geo[0].timestamp == 0
        assert all(p.timestamp is None for p in geo[1:])
        assert [p.distance for p in geo] == sorted(p.distance for p in geo)
        assert geo[-1].distance == pytest.approx(course.distance_meter)

    def test_distance_matches_route(self):
        route = _route()
        course = convert_route_to_course(route)
        assert course.distance_meter == pytest.approx(route.total_distance_m)

    def test_missing_elevation_defaults_to_zero(self):
        course = convert_route_to_course(_route(elevations=(None, 100, 120)))
        assert course.geo_points[0].elevation == 0.0
        assert course.start_point.elevation == 0.0
        # Segment into the unknown point does not count as a climb
        assert course.elevation_gain_meter == pytest.approx(20.0)

    def test_course_line(self):
        course = convert_route_to_course(_route())
        assert len(course.course_lines) == 1
        line = course.to_payload()["courseLines"][0]
        assert line == {
            "points": None,
            "distanceInMeters": course.distance_meter,
            "courseId": None,
            "sortOrder": 1,
            "numberOfPoints": 4,
            "bearing": 0,
            "coordinateSystem": "WGS84",
        }

    def test_bounding_box(self):
        box = convert_route_to_course(_route()).to_payload()["boundingBox"]
        assert box["lowerLeft"] == {"latitude": 50.0, "longitude": 14.0}
        assert box["upperRight"]["latitude"] == pytest.approx(50.003)
        assert box["upperRight"]["longitude"] == pytest.approx(14.0015)
        assert box["lowerLeftLatIsSet"] is True
        assert box["upperRightLongIsSet"] is True

    def test_start_point(self):
        start = convert_route_to_course(_route()).to_payload()["startPoint"]
        assert start == {
            "latitude": 50.0, "longitude": 14.0, "elevation": 100.0,
            "distance": 0.0, "timestamp": None,
        }

    def test_course_points_from_waypoints(self):
        waypoints = [Waypoint(lat=50.0021, lon=14.001, elevation=145.0, name="Viewpoint")]
        course = convert_route_to_course(_route(waypoints=waypoints))
        point = course.to_payload()["coursePoints"][0]
        assert point["name"] == "Viewpoint"
        assert point["coursePointType"] == "GENERIC"
        assert point["lat"] == 50.0021
        assert point["elevation"] == 145.0
        # Nearest track point is the third one
        assert point["distance"] == pytest.approx(course.geo_points[2].distance)

    def test_no_waypoints(self):
        assert convert_route_to_course(_route()).course_points == []

    def test_single_point_route(self):
        course = convert_route_to_course(_route(elevations=(300,)))
        assert course.distance_meter == 0.0
        assert course.elevation_gain_meter == 0.0

    def test_deterministic(self):
        """Same route and activity type give an identical document."""
        route = _route()
        assert convert_route_to_course(route).to_json() == convert_route_to_course(route).to_json()

    def test_empty_route(self):
        with pytest.raises(ParseError) as exc_info:
            convert_route_to_course(Route(name="Empty", points=[]))
        assert exc_info.value.code == ErrorCode.EMPTY_ROUTE


class TestActivityTypePk:

    def test_known(self):
        assert get_activity_type_pk("cycling") == 10
        assert get_activity_type_pk(ActivityType.HIKING) == 17

    def test_unknown(self):
        with pytest.raises(ValueError):
            get_activity_type_pk("swimming")
