"""
Mapy.cz integration module.

Components:
- RouteParams / parse_route_url / build_export_url: route URL codec
- MapyExportClient: GPX export for planned routes and folders
- validate_folder_gpx: single-route check for folder exports
"""

from .url_params import (
    RouteParams,
    RG_CHUNK_WIDTH,
    build_export_url,
    has_route_params,
    parse_profile_id,
    parse_route_url,
    split_coordinate_blob,
)
from .client import FolderGpxInfo, MapyExportClient, validate_folder_gpx

__all__ = [
    "RouteParams",
    "RG_CHUNK_WIDTH",
    "build_export_url",
    "has_route_params",
    "parse_profile_id",
    "parse_route_url",
    "split_coordinate_blob",
    "FolderGpxInfo",
    "MapyExportClient",
    "validate_folder_gpx",
]
