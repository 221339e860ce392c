"""
Tests for the GPX parser.

Covers name resolution order, track/route point fallback, waypoint
collection and tolerant handling of invalid points.
"""

import pytest

from course_sync.features.routes import parse_gpx
from course_sync.shared.errors import ErrorCode, ErrorKind, ParseError


# =============================================================================
# Test Data
# =============================================================================

GPX_TRACK = """<?xml version="1.0" encoding="UTF-8"?>
<gpx version="1.1" creator="test" xmlns="http://www.topografix.com/GPX/1/1">
  <metadata><name>Sněžka loop</name><desc>Krkonoše day hike</desc></metadata>
  <wpt lat="50.7360" lon="15.7400"><ele>1603</ele><name>Summit</name><desc>Top</desc></wpt>
  <wpt lat="50.7300" lon="15.7300"></wpt>
  <trk>
    <name>Track name</name>
    <trkseg>
      <trkpt lat="50.7000" lon="15.7000"><ele>100</ele><time>2024-05-01T08:00:00Z</time></trkpt>
      <trkpt lat="50.7010" lon="15.7000"><ele>150</ele></trkpt>
      <trkpt lat="50.7020" lon="15.7000"><ele>140</ele></trkpt>
      <trkpt lat="50.7030" lon="15.7000"><ele>160</ele></trkpt>
    </trkseg>
  </trk>
</gpx>
"""

GPX_ROUTE_ONLY = """<?xml version="1.0"?>
<gpx version="1.1" xmlns="http://www.topografix.com/GPX/1/1">
  <rte>
    <name>Route title</name>
    <rtept lat="49.0" lon="16.0"><ele>200</ele></rtept>
    <rtept lat="49.001" lon="16.0"><ele>210</ele></rtept>
  </rte>
</gpx>
"""


def _gpx(body: str, namespace: str = ' xmlns="http://www.topografix.com/GPX/1/1"') -> str:
    return f'<?xml version="1.0"?><gpx version="1.1"{namespace}>{body}</gpx>'


# =============================================================================
# Test Parsing
# =============================================================================

class TestParseGpx:
    """Tests for parse_gpx."""

    def test_track_points(self):
        route = parse_gpx(GPX_TRACK)
        assert len(route.points) == 4
        assert route.points[0].lat == 50.7
        assert route.points[0].elevation == 100.0
        assert route.points[0].timestamp is not None
        assert route.points[1].timestamp is None

    def test_derived_totals(self):
        """Elevation [100, 150, 140, 160] gains 70 m and loses 10 m."""
        route = parse_gpx(GPX_TRACK)
        assert route.total_elevation_gain_m == pytest.approx(70.0)
        assert route.total_elevation_loss_m == pytest.approx(10.0)
        assert 300 < route.total_distance_m < 350

    def test_metadata_name_wins(self):
        route = parse_gpx(GPX_TRACK)
        assert route.name == "Sněžka loop"
        assert route.description == "Krkonoše day hike"

    def test_track_name_when_no_metadata(self):
        gpx = _gpx(
            '<trk><name>Track name</name><trkseg>'
            '<trkpt lat="50" lon="14"/></trkseg></trk>'
            '<rte><name>Route name</name></rte>'
        )
        assert parse_gpx(gpx).name == "Track name"

    def test_empty_metadata_name_falls_through(self):
        gpx = _gpx(
            '<metadata><name>  </name></metadata>'
            '<trk><name>Track name</name><trkseg><trkpt lat="50" lon="14"/></trkseg></trk>'
        )
        assert parse_gpx(gpx).name == "Track name"

    def test_gpx_10_root_name(self):
        gpx = _gpx(
            '<name>Old style</name><trk><trkseg><trkpt lat="50" lon="14"/></trkseg></trk>',
            namespace=' xmlns="http://www.topografix.com/GPX/1/0"'
        )
        assert parse_gpx(gpx).name == "Old style"

    def test_unnamed_fallback(self):
        gpx = _gpx('<trk><trkseg><trkpt lat="50" lon="14"/></trkseg></trk>')
        assert parse_gpx(gpx).name == "Unnamed Route"

    def test_route_points_used_without_track(self):
        route = parse_gpx(GPX_ROUTE_ONLY)
        assert route.name == "Route title"
        assert [p.elevation for p in route.points] == [200.0, 210.0]

    def test_track_points_win_over_route_points(self):
        gpx = _gpx(
            '<rte><rtept lat="1" lon="1"/><rtept lat="2" lon="2"/></rte>'
            '<trk><trkseg><trkpt lat="50" lon="14"/></trkseg></trk>'
        )
        route = parse_gpx(gpx)
        assert len(route.points) == 1
        assert route.points[0].lat == 50.0

    def test_no_namespace(self):
        gpx = _gpx('<trk><trkseg><trkpt lat="50" lon="14"/></trkseg></trk>', namespace="")
        assert len(parse_gpx(gpx).points) == 1

    def test_bytes_input(self):
        assert len(parse_gpx(GPX_TRACK.encode("utf-8")).points) == 4


class TestWaypoints:
    """Waypoints are collected independently of track points."""

    def test_waypoints(self):
        route = parse_gpx(GPX_TRACK)
        assert len(route.waypoints) == 2
        summit = route.waypoints[0]
        assert summit.name == "Summit"
        assert summit.description == "Top"
        assert summit.elevation == 1603.0

    def test_default_waypoint_name(self):
        route = parse_gpx(GPX_TRACK)
        assert route.waypoints[1].name == "Waypoint"

    def test_waypoints_without_track(self):
        route = parse_gpx(_gpx('<wpt lat="50" lon="14"><name>Hut</name></wpt>'))
        assert route.is_empty
        assert route.waypoints[0].name == "Hut"


class TestInvalidInput:
    """Malformed documents raise; malformed points are skipped."""

    def test_invalid_points_skipped(self):
        gpx = _gpx(
            '<trk><trkseg>'
            '<trkpt lat="50" lon="14"/>'
            '<trkpt lat="abc" lon="14"/>'
            '<trkpt lon="14"/>'
            '<trkpt lat="95" lon="14"/>'
            '<trkpt lat="NaN" lon="14"/>'
            '<trkpt lat="50.001" lon="14"><ele>not-a-number</ele></trkpt>'
            '</trkseg></trk>'
        )
        route = parse_gpx(gpx)
        assert len(route.points) == 2
        assert route.points[1].elevation is None

    def test_malformed_xml(self):
        with pytest.raises(ParseError) as exc_info:
            parse_gpx("<gpx><trk>")
        assert exc_info.value.code == ErrorCode.GPX_PARSE_ERROR
        assert exc_info.value.kind == ErrorKind.PARSE

    def test_non_gpx_root(self):
        with pytest.raises(ParseError, match="expected <gpx> root"):
            parse_gpx('<?xml version="1.0"?><kml><Document/></kml>')
