"""
Route parsing module.

Usage:
    from course_sync.features.routes import parse_gpx, stitch_segments

Components:
- Route / GeoPoint / Waypoint: canonical in-memory route model
- parse_gpx: GPX document -> Route
- stitch_segments: BRouter GeoJSON segments -> Route
- XmlNode: namespace-agnostic XML accessor used by the GPX parser
"""

from .models import GeoPoint, Route, Waypoint
from .gpx_parser import parse_gpx
from .segments import parse_geojson_segment, parse_segment_points, stitch_segments
from .xml_tree import XmlNode

__all__ = [
    # Models
    "GeoPoint",
    "Route",
    "Waypoint",
    # Parsers
    "parse_gpx",
    "parse_geojson_segment",
    "parse_segment_points",
    "stitch_segments",
    "XmlNode",
]
