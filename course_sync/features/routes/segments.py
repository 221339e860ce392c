"""
BRouter GeoJSON segment parsing and stitching.

BRouter returns one FeatureCollection per leg of a planned route. Each
leg starts at the waypoint where the previous one ended, so stitching
drops the first point of every segment after the first.
"""

import json
import logging
from typing import Any, Optional, Sequence

from course_sync.shared.constants import BROUTER_ROUTE
from course_sync.shared.errors import ErrorCode, ParseError
from .models import GeoPoint, Route

logger = logging.getLogger(__name__)


def _invalid(index: int, reason: str) -> ParseError:
    return ParseError(
        f"Invalid GeoJSON in segment {index}: {reason}",
        ErrorCode.GEOJSON_PARSE_ERROR
    )


def _coordinate_to_point(coord: Any) -> Optional[GeoPoint]:
    """[lon, lat] or [lon, lat, ele] -> GeoPoint, None if unusable."""
    if not isinstance(coord, (list, tuple)) or len(coord) < 2:
        return None

    values = []
    for value in coord[:3]:
        # bool is an int subclass; never a coordinate
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        values.append(float(value))

    try:
        return GeoPoint(
            lon=values[0],
            lat=values[1],
            elevation=values[2] if len(values) > 2 else None
        )
    except ValueError:
        return None


def parse_segment_points(geojson_string: str, index: int = 0) -> list[GeoPoint]:
    """
    Parse one BRouter FeatureCollection into its LineString points.

    Raises:
        ParseError: Naming the guard that failed
    """
    try:
        geojson = json.loads(geojson_string)
    except (TypeError, ValueError) as e:
        raise _invalid(index, "failed to parse JSON") from e

    if not isinstance(geojson, dict) or geojson.get("type") != "FeatureCollection":
        raise _invalid(index, "expected FeatureCollection")

    features = geojson.get("features")
    if not isinstance(features, list) or not features:
        raise _invalid(index, "no features found")

    feature = features[0]
    geometry = feature.get("geometry") if isinstance(feature, dict) else None
    if not isinstance(geometry, dict) or geometry.get("type") != "LineString":
        raise _invalid(index, "expected LineString geometry")

    coordinates = geometry.get("coordinates")
    if not isinstance(coordinates, list) or not coordinates:
        raise _invalid(index, "LineString has no coordinates")

    points = []
    for coord in coordinates:
        point = _coordinate_to_point(coord)
        if point is None:
            logger.debug(f"Segment {index}: skipping invalid coordinate {coord!r}")
            continue
        points.append(point)
    return points


def parse_geojson_segment(
    geojson_string: str,
    index: int = 0,
    route_name: str = BROUTER_ROUTE
) -> Route:
    """Parse a single BRouter GeoJSON response into a Route."""
    return Route(name=route_name, points=parse_segment_points(geojson_string, index))


def stitch_segments(
    segment_json_strings: Sequence[str],
    route_name: str = BROUTER_ROUTE
) -> Route:
    """
    Stitch BRouter segments into one Route.

    The first segment contributes all of its points; every later one
    contributes all but its first point. The rule is positional: segments
    must be supplied in traversal order.

    Raises:
        ParseError: If any segment is malformed or nothing is left
    """
    if not segment_json_strings:
        raise ParseError("No segments to stitch", ErrorCode.GEOJSON_PARSE_ERROR)

    all_points: list[GeoPoint] = []

    for i, segment_json in enumerate(segment_json_strings):
        points = parse_segment_points(segment_json, index=i)
        if not points:
            continue

        if i == 0:
            all_points.extend(points)
        else:
            all_points.extend(points[1:])

    if not all_points:
        raise ParseError("Stitched route has no points", ErrorCode.GEOJSON_PARSE_ERROR)

    logger.info(
        f"Stitched {len(segment_json_strings)} segments into {len(all_points)} points"
    )
    return Route(name=route_name, points=all_points)
