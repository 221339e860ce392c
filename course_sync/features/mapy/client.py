"""
Mapy.cz export API client.

Fetches route GPX directly from the planner export endpoint instead of
scraping the page, and exports single-route folders.
"""

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import gpxpy
import gpxpy.gpx
import httpx

from course_sync.config import Settings, settings as default_settings
from course_sync.shared.errors import ErrorCode, RouteSourceError
from .url_params import RouteParams, build_export_url

logger = logging.getLogger(__name__)


@dataclass
class FolderGpxInfo:
    track_count: int
    waypoint_count: int


def validate_folder_gpx(content: str) -> FolderGpxInfo:
    """
    Check that a folder export holds exactly one route.

    Raises:
        RouteSourceError: FOLDER_EXPORT_FAILED, FOLDER_EMPTY or
            FOLDER_MULTIPLE_ROUTES
    """
    try:
        gpx = gpxpy.parse(content)
    except gpxpy.gpx.GPXException as e:
        logger.error(f"Failed to parse folder GPX: {e}")
        raise RouteSourceError(
            "Invalid GPX XML in folder export", ErrorCode.FOLDER_EXPORT_FAILED
        ) from e

    track_count = len(gpx.tracks)
    if track_count == 0:
        raise RouteSourceError(
            "This folder contains no routes. Add a route to the folder before syncing.",
            ErrorCode.FOLDER_EMPTY
        )
    if track_count > 1:
        raise RouteSourceError(
            f"This folder contains {track_count} routes. "
            "Please sync individual routes instead.",
            ErrorCode.FOLDER_MULTIPLE_ROUTES
        )

    return FolderGpxInfo(track_count=track_count, waypoint_count=len(gpx.waypoints))


class MapyExportClient:
    """
    Async client for Mapy.cz export endpoints.

    Usage:
        client = MapyExportClient()
        gpx = await client.fetch_route_gpx(parse_route_url(url))
    """

    HEADERS = {
        "Accept": "*/*",
        "Accept-Language": "en-US,en;q=0.9",
    }

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None
    ):
        self.settings = settings or default_settings
        self._http = http_client

    async def _get(self, url: str) -> httpx.Response:
        if self._http is not None:
            return await self._http.get(url, headers=self.HEADERS)
        async with httpx.AsyncClient(
            timeout=self.settings.http_timeout_seconds, follow_redirects=True
        ) as client:
            return await client.get(url, headers=self.HEADERS)

    def export_url(self, params: RouteParams) -> str:
        return build_export_url(
            params,
            base_url=self.settings.mapy_export_url,
            lang=self.settings.mapy_export_lang
        )

    def folder_export_url(self, folder_id: str) -> str:
        query = urlencode({
            "id": folder_id,
            "export": "gpx",
            "shrink": "false",
            "single": "true",
            "tponly": "true",
        })
        return f"{self.settings.mapy_folder_export_url}?{query}"

    async def fetch_route_gpx(self, params: RouteParams) -> str:
        """
        Fetch GPX for a planned route.

        Raises:
            RouteSourceError: ROUTE_EXTRACTION_FAILED on any failure
        """
        if not params.has_coordinates:
            raise RouteSourceError(
                "No route coordinates found in URL", ErrorCode.ROUTE_EXTRACTION_FAILED
            )

        url = self.export_url(params)
        logger.info(f"Fetching GPX from Mapy.cz API: {url[:100]}...")

        try:
            response = await self._get(url)
        except httpx.HTTPError as e:
            raise RouteSourceError(
                f"Failed to fetch GPX from Mapy.cz: {e}",
                ErrorCode.ROUTE_EXTRACTION_FAILED
            ) from e

        if not response.is_success:
            raise RouteSourceError(
                f"Mapy.cz API returned HTTP {response.status_code}: {response.reason_phrase}",
                ErrorCode.ROUTE_EXTRACTION_FAILED
            )

        return self._checked_gpx(response.text, ErrorCode.ROUTE_EXTRACTION_FAILED, "API")

    async def fetch_folder_gpx(self, folder_id: str) -> str:
        """
        Fetch the GPX export of a folder.

        Raises:
            RouteSourceError: FOLDER_NOT_FOUND or FOLDER_EXPORT_FAILED
        """
        if not folder_id or not folder_id.strip():
            raise RouteSourceError("No folder ID provided", ErrorCode.FOLDER_NOT_FOUND)

        logger.info(f"Fetching GPX from Mapy.cz folder API: {folder_id}")

        try:
            response = await self._get(self.folder_export_url(folder_id))
        except httpx.HTTPError as e:
            raise RouteSourceError(
                f"Failed to fetch folder from Mapy.cz: {e}",
                ErrorCode.FOLDER_EXPORT_FAILED
            ) from e

        if response.status_code == 404:
            raise RouteSourceError(
                "Folder not found. Make sure the folder is public or you are logged in.",
                ErrorCode.FOLDER_NOT_FOUND
            )
        if not response.is_success:
            raise RouteSourceError(
                f"Mapy.cz folder API returned HTTP {response.status_code}: "
                f"{response.reason_phrase}",
                ErrorCode.FOLDER_EXPORT_FAILED
            )

        return self._checked_gpx(response.text, ErrorCode.FOLDER_EXPORT_FAILED, "folder API")

    @staticmethod
    def _checked_gpx(content: str, code: ErrorCode, source: str) -> str:
        if not content or not content.strip():
            raise RouteSourceError(f"Mapy.cz {source} returned empty response", code)
        if "<gpx" not in content:
            raise RouteSourceError(
                f"Mapy.cz {source} response does not contain GPX data", code
            )
        return content
