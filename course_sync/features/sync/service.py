"""
Sync orchestration.

One sync request = one attempt at route -> Course -> upload. The attempt
always ends in a SyncResult, one persisted history entry and one status
notification, whatever went wrong along the way. Nothing is retried;
a failed sync is repeated by sending a new request.

Usage:
    orchestrator = SyncOrchestrator(store, auth)
    result = await orchestrator.sync(SyncRequest(GpxSource(gpx_text)))
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol, Sequence, Union

import httpx

from course_sync.config import Settings, settings as default_settings
from course_sync.features.course import convert_route_to_course
from course_sync.features.garmin import (
    AuthSessionEngine,
    GarminCourseClient,
    SessionStore,
    SyncHistoryEntry,
    now_ms,
)
from course_sync.features.mapy import (
    MapyExportClient,
    RouteParams,
    parse_route_url,
    validate_folder_gpx,
)
from course_sync.features.routes import Route, parse_gpx, stitch_segments
from course_sync.shared.constants import ActivityType, DEFAULT_ACTIVITY_TYPE
from course_sync.shared.errors import (
    CourseSyncError,
    ErrorCode,
    ErrorKind,
    ParseError,
    RouteSourceError,
    StorageError,
)

logger = logging.getLogger(__name__)

SegmentProvider = Callable[[], Awaitable[Sequence[str]]]


# =============================================================================
# Route sources
# =============================================================================

@dataclass
class GpxSource:
    """GPX document text."""
    content: str


@dataclass
class SegmentSource:
    """
    BRouter GeoJSON segments, in traversal order.

    ``segments`` is either the list itself or an async callable producing
    it; the callable is bounded by the segment export timeout.
    """
    segments: Union[Sequence[str], SegmentProvider]


@dataclass
class UrlRouteSource:
    """Mapy.cz planner URL or already-parsed route parameters."""
    route: Union[str, RouteParams]


@dataclass
class FolderSource:
    """Mapy.cz folder holding exactly one route."""
    folder_id: str


RouteSource = Union[GpxSource, SegmentSource, UrlRouteSource, FolderSource]


# =============================================================================
# Request / result
# =============================================================================

@dataclass
class SyncRequest:
    source: RouteSource
    route_name: Optional[str] = None
    activity_type: Optional[ActivityType] = None


class SyncState(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class SyncStatus:
    """Terminal status pushed to notifiers."""
    state: SyncState
    message: str
    error_code: Optional[str] = None


@dataclass
class SyncResult:
    success: bool
    entry: SyncHistoryEntry
    course_id: Optional[str] = None
    course_url: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    error_kind: Optional[ErrorKind] = None


class StatusNotifier(Protocol):
    async def notify(self, status: SyncStatus) -> None:
        ...


class LoggingNotifier:
    """Reports sync status to the log."""

    async def notify(self, status: SyncStatus) -> None:
        if status.state is SyncState.SUCCESS:
            logger.info(f"Sync succeeded: {status.message}")
        else:
            logger.warning(f"Sync failed ({status.error_code}): {status.message}")


# =============================================================================
# Orchestrator
# =============================================================================

class SyncOrchestrator:
    """
    Runs sync requests: load route -> convert -> CSRF token -> upload.

    Components:
    - store: history and default activity type
    - auth: session cookies and CSRF token
    - mapy: GPX export for URL and folder sources
    """

    def __init__(
        self,
        store: SessionStore,
        auth: AuthSessionEngine,
        mapy_client: Optional[MapyExportClient] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        notifiers: Sequence[StatusNotifier] = (),
        settings: Optional[Settings] = None,
        clock: Callable[[], int] = now_ms
    ):
        self.store = store
        self.auth = auth
        self.settings = settings or default_settings
        self.mapy = mapy_client or MapyExportClient(http_client, settings=self.settings)
        self.notifiers = list(notifiers)
        self._http = http_client
        self._clock = clock

    async def load_route(self, source: RouteSource) -> Route:
        """
        Turn raw route material into a Route.

        Raises:
            ParseError, RouteSourceError
        """
        if isinstance(source, GpxSource):
            return parse_gpx(source.content)

        if isinstance(source, SegmentSource):
            return stitch_segments(await self._resolve_segments(source))

        if isinstance(source, UrlRouteSource):
            params = source.route
            if isinstance(params, str):
                params = parse_route_url(params)
            return parse_gpx(await self.mapy.fetch_route_gpx(params))

        if isinstance(source, FolderSource):
            content = await self.mapy.fetch_folder_gpx(source.folder_id)
            info = validate_folder_gpx(content)
            logger.info(f"Folder export has {info.waypoint_count} waypoints")
            return parse_gpx(content)

        raise TypeError(f"Unsupported route source: {type(source).__name__}")

    async def _resolve_segments(self, source: SegmentSource) -> Sequence[str]:
        if not callable(source.segments):
            return source.segments

        try:
            return await asyncio.wait_for(
                source.segments(),
                timeout=self.settings.segment_export_timeout_seconds
            )
        except asyncio.TimeoutError:
            raise RouteSourceError(
                "Timed out waiting for route segments", ErrorCode.ROUTE_EXTRACTION_FAILED
            ) from None

    async def _resolve_activity_type(self, requested: Optional[ActivityType]) -> ActivityType:
        if requested is not None:
            try:
                return ActivityType(requested)
            except ValueError:
                raise ParseError(
                    f"Unsupported activity type: {requested}", ErrorCode.INVALID_ACTIVITY_TYPE
                ) from None
        try:
            return (await self.store.get_settings()).default_activity_type
        except StorageError as e:
            logger.warning(f"Cannot read settings, using default activity type: {e}")
            return DEFAULT_ACTIVITY_TYPE

    async def sync(self, request: SyncRequest) -> SyncResult:
        """Run one sync attempt. Never raises for pipeline failures."""
        entry = SyncHistoryEntry(
            route_name=request.route_name or "",
            activity_type=DEFAULT_ACTIVITY_TYPE,
            synced_at_epoch_ms=self._clock(),
            success=False,
        )

        error: Optional[CourseSyncError] = None
        course_id: Optional[str] = None
        course_url: Optional[str] = None

        try:
            activity_type = await self._resolve_activity_type(request.activity_type)
            entry.activity_type = activity_type

            route = (await self.load_route(request.source)).with_name_override(
                request.route_name
            )
            entry.route_name = route.name
            logger.info(
                f"Syncing '{route.name}': {len(route.points)} points, "
                f"{route.total_distance_m / 1000:.1f} km"
            )

            course = convert_route_to_course(route, activity_type)
            csrf_token = await self.auth.get_csrf_token()
            client = GarminCourseClient(
                await self.auth.get_session_cookies(),
                http_client=self._http,
                settings=self.settings
            )
            uploaded = await client.upload_course(course, csrf_token)

            course_id = uploaded.course_id
            course_url = client.course_url(course_id)
            entry.success = True
            entry.remote_course_id = course_id
        except CourseSyncError as e:
            logger.warning(f"Sync failed [{e.code.value}]: {e.message}")
            error = e
        except Exception as e:
            logger.exception(f"Unexpected sync failure: {e}")
            error = CourseSyncError(str(e) or None, ErrorCode.UNKNOWN_ERROR)

        if error is not None:
            entry.error_message = error.message
            entry.error_code = error.code.value
            if not entry.route_name:
                entry.route_name = request.route_name or "Unknown route"

        await self._record(entry)

        if error is None:
            status = SyncStatus(SyncState.SUCCESS, course_url or "")
        else:
            status = SyncStatus(SyncState.ERROR, error.message, error.code.value)
        await self._notify(status)

        return SyncResult(
            success=error is None,
            entry=entry,
            course_id=course_id,
            course_url=course_url,
            error=error.message if error else None,
            error_code=error.code if error else None,
            error_kind=error.kind if error else None,
        )

    async def _record(self, entry: SyncHistoryEntry) -> None:
        try:
            await self.store.add_sync_history_entry(entry)
        except StorageError as e:
            logger.error(f"Failed to save sync history entry {entry.id}: {e}")

    async def _notify(self, status: SyncStatus) -> None:
        for notifier in self.notifiers:
            try:
                await notifier.notify(status)
            except Exception as e:
                logger.warning(f"Status notifier {type(notifier).__name__} failed: {e}")
