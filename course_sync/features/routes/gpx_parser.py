"""
GPX Parser

Parses GPX documents into the canonical Route.
"""

import logging
import xml.etree.ElementTree as ET
from datetime import datetime
from typing import Iterable, Optional

from course_sync.shared.constants import DEFAULT_WAYPOINT_NAME, UNNAMED_ROUTE
from course_sync.shared.errors import ErrorCode, ParseError
from .models import GeoPoint, Route, Waypoint
from .xml_tree import XmlNode, parse_float

logger = logging.getLogger(__name__)


def parse_gpx(content: str | bytes) -> Route:
    """
    Parse GPX content into a Route.

    Track points are preferred; route points are read only when the
    document has no track points. Waypoints are always collected.
    Points with invalid coordinates are skipped.

    Args:
        content: GPX XML document

    Returns:
        Route with derived distance/elevation totals

    Raises:
        ParseError: If the XML is malformed or the root is not <gpx>
    """
    try:
        root = XmlNode.from_string(content)
    except ET.ParseError as e:
        logger.error(f"Failed to parse GPX: {e}")
        raise ParseError(f"Invalid GPX XML: {e}", ErrorCode.GPX_PARSE_ERROR) from e

    if root.tag != "gpx":
        raise ParseError(
            f"Invalid GPX: expected <gpx> root element, found <{root.tag}>",
            ErrorCode.GPX_PARSE_ERROR
        )

    name = _resolve_text(root, "name") or UNNAMED_ROUTE
    description = _resolve_text(root, "desc")

    points = _parse_points(root.descendants("trkpt"))
    if not points:
        points = _parse_points(root.descendants("rtept"))

    waypoints = [
        waypoint for waypoint in map(_parse_waypoint, root.descendants("wpt"))
        if waypoint is not None
    ]

    logger.debug(
        f"Parsed GPX '{name}': {len(points)} points, {len(waypoints)} waypoints"
    )

    return Route(
        name=name,
        description=description,
        points=points,
        waypoints=waypoints
    )


def _resolve_text(root: XmlNode, tag: str) -> Optional[str]:
    """
    First non-empty ``tag`` text from metadata, the root (GPX 1.0),
    the first track, then the first route.
    """
    candidates = (
        root.first("metadata"),
        root,
        root.first_descendant("trk"),
        root.first_descendant("rte"),
    )
    for node in candidates:
        if node is None:
            continue
        value = node.text(tag)
        if value:
            return value
    return None


def _parse_points(elements: Iterable[XmlNode]) -> list[GeoPoint]:
    points = []
    for element in elements:
        point = _parse_point(element)
        if point is not None:
            points.append(point)
    return points


def _parse_point(element: XmlNode) -> Optional[GeoPoint]:
    lat = element.attr_float("lat")
    lon = element.attr_float("lon")
    if lat is None or lon is None:
        return None

    try:
        return GeoPoint(
            lat=lat,
            lon=lon,
            elevation=parse_float(element.text("ele")),
            timestamp=_parse_time(element.text("time"))
        )
    except ValueError:
        logger.debug(f"Skipping out-of-range point {lat}, {lon}")
        return None


def _parse_waypoint(element: XmlNode) -> Optional[Waypoint]:
    point = _parse_point(element)
    if point is None:
        return None

    return Waypoint(
        lat=point.lat,
        lon=point.lon,
        elevation=point.elevation,
        timestamp=point.timestamp,
        name=element.text("name") or DEFAULT_WAYPOINT_NAME,
        description=element.text("desc"),
        type=element.text("type")
    )


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None
