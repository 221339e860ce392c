"""
Command line interface.

The Garmin session is read from a Netscape cookie file exported from the
browser (``--cookies``, default COURSE_SYNC_COOKIE_FILE).

Usage:
    course-sync convert route.gpx --output course.json
    course-sync export-url "https://mapy.com/en/turisticka?rc=...&rs=..."
    course-sync login --cookies cookies.txt
    course-sync sync --url "https://mapy.com/en/turisticka?rc=..." --activity hiking
    course-sync history
"""

import asyncio
import json
import logging
import sys
import webbrowser
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator, Optional

import click
import httpx

from course_sync.config import settings
from course_sync.features.course import convert_route_to_course
from course_sync.features.garmin import (
    AuthSessionEngine,
    AuthStatus,
    CookieStore,
    FileCookieStore,
    SessionStore,
    has_session_cookie,
)
from course_sync.features.mapy import MapyExportClient, parse_route_url
from course_sync.features.routes import parse_gpx, stitch_segments
from course_sync.features.sync import (
    FolderSource,
    GpxSource,
    LoggingNotifier,
    SegmentSource,
    SyncOrchestrator,
    SyncRequest,
    UrlRouteSource,
)
from course_sync.shared.constants import ActivityType
from course_sync.shared.errors import CourseSyncError, ErrorCode, RouteSourceError
from course_sync.shared.security import validate_url

logger = logging.getLogger(__name__)

ACTIVITY_CHOICES = [a.value for a in ActivityType]


# =============================================================================
# Login surface backed by the cookie file
# =============================================================================

class CookieFileLoginHandle:
    """Reports Connect as reached once the cookie file holds a session."""

    def __init__(self, cookie_store: CookieStore, domain: str, authenticated_url: str):
        self.cookie_store = cookie_store
        self.domain = domain
        self.authenticated_url = authenticated_url

    async def current_url(self) -> Optional[str]:
        cookies = await self.cookie_store.get_all(self.domain)
        return self.authenticated_url if has_session_cookie(cookies) else None

    async def close(self) -> None:
        return None


class CookieFileLoginSurface:
    """Opens the sign-in page in the system browser and watches the cookie file."""

    def __init__(self, cookie_store: FileCookieStore):
        self.cookie_store = cookie_store

    async def open(self, url: str) -> CookieFileLoginHandle:
        click.echo(f"Sign in to Garmin Connect at: {url}")
        click.echo(f"Then export your browser cookies to {self.cookie_store.path}")
        webbrowser.open(url)
        return CookieFileLoginHandle(
            self.cookie_store,
            settings.garmin_cookie_domain,
            f"{settings.garmin_connect_url}/modern"
        )


# =============================================================================
# Helpers
# =============================================================================

def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper())
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stderr)]
    )


def _run(coro):
    """Run a command coroutine, turning pipeline errors into CLI errors."""
    try:
        return asyncio.run(coro)
    except CourseSyncError as e:
        raise click.ClickException(f"{e.message} [{e.code.value}]") from e


def _http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.http_timeout_seconds)


@asynccontextmanager
async def _session(
    cookie_file: Optional[str],
    interactive: bool = False
) -> AsyncIterator[tuple[SessionStore, AuthSessionEngine, httpx.AsyncClient]]:
    store = await SessionStore.open()
    http = _http_client()
    try:
        cookie_store = FileCookieStore(cookie_file or settings.cookie_file)
        surface = CookieFileLoginSurface(cookie_store) if interactive else None
        engine = AuthSessionEngine(
            store, cookie_store, surface, http_client=http, prefetch_profile=False
        )
        yield store, engine, http
    finally:
        await http.aclose()
        await store.close()


def _format_ms(epoch_ms: Optional[int]) -> str:
    if not epoch_ms:
        return "-"
    return datetime.fromtimestamp(epoch_ms / 1000).strftime("%Y-%m-%d %H:%M")


def _echo_status(status: AuthStatus) -> None:
    if not status.is_authenticated:
        click.echo("Not connected to Garmin Connect.")
        return
    click.echo(f"Connected as {status.username}")
    click.echo(f"Session expires: {_format_ms(status.expires_at_epoch_ms)}")


def _read_text(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


cookies_option = click.option(
    "--cookies", "cookie_file", default=None, type=click.Path(dir_okay=False),
    help="Netscape cookie file exported from the browser"
)


# =============================================================================
# Commands
# =============================================================================

@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
def cli(verbose):
    """Sync Mapy.cz, BRouter and GPX routes to Garmin Connect courses."""
    _configure_logging(verbose)


@cli.command()
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--geojson", is_flag=True,
    help="Files are BRouter GeoJSON segments, stitched in the given order"
)
@click.option("--name", default=None, help="Course name for routes without one")
@click.option("--activity", default=None, type=click.Choice(ACTIVITY_CHOICES))
@click.option("--output", "-o", default=None, type=click.Path(dir_okay=False), help="Output file")
def convert(files, geojson, name, activity, output):
    """Convert a GPX file (or GeoJSON segments) to Garmin Course JSON."""
    try:
        if geojson:
            route = stitch_segments([_read_text(f) for f in files])
        else:
            if len(files) > 1:
                raise click.UsageError("Only one GPX file can be converted at a time")
            route = parse_gpx(_read_text(files[0]))
        course = convert_route_to_course(
            route.with_name_override(name),
            activity or ActivityType.CYCLING
        )
    except CourseSyncError as e:
        raise click.ClickException(f"{e.message} [{e.code.value}]") from e

    payload = json.dumps(course.to_payload(), indent=2)
    if output:
        Path(output).write_text(payload, encoding="utf-8")
        click.echo(
            f"Saved '{course.course_name}': {len(course.geo_points)} points, "
            f"{course.distance_meter / 1000:.1f} km -> {output}"
        )
    else:
        click.echo(payload)


@cli.command("export-url")
@click.argument("url")
def export_url(url):
    """Print the Mapy.cz GPX export URL for a planner URL."""
    try:
        params = parse_route_url(validate_url(url, settings.mapy_domains))
        if not params.has_coordinates:
            raise RouteSourceError(
                "No route coordinates found in URL", ErrorCode.ROUTE_EXTRACTION_FAILED
            )
    except CourseSyncError as e:
        raise click.ClickException(f"{e.message} [{e.code.value}]") from e

    click.echo(MapyExportClient().export_url(params))


@cli.command()
@cookies_option
def login(cookie_file):
    """Connect to Garmin using the browser session."""
    _run(_login(cookie_file))


async def _login(cookie_file: Optional[str]):
    async with _session(cookie_file, interactive=True) as (store, engine, http):
        await engine.login()
        try:
            status = await engine.refresh_profile()
        except CourseSyncError as e:
            logger.info(f"Profile not available: {e.message}")
            status = await engine.check_auth()
        _echo_status(status)


@cli.command()
@cookies_option
def logout(cookie_file):
    """Forget the Garmin session and clear Garmin cookies."""
    _run(_logout(cookie_file))


async def _logout(cookie_file: Optional[str]):
    async with _session(cookie_file) as (store, engine, http):
        await engine.logout()
    click.echo("Logged out.")


@cli.command()
@cookies_option
def status(cookie_file):
    """Show the Garmin connection status."""
    _run(_status(cookie_file))


async def _status(cookie_file: Optional[str]):
    async with _session(cookie_file) as (store, engine, http):
        _echo_status(await engine.check_auth())


@cli.command()
@click.option("--gpx", "gpx_file", default=None, type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--segments", "segment_files", multiple=True, type=click.Path(exists=True, dir_okay=False),
    help="BRouter GeoJSON segment, repeat in route order"
)
@click.option("--url", default=None, help="Mapy.cz planner URL")
@click.option("--folder", default=None, help="Mapy.cz folder ID")
@click.option("--name", default=None, help="Course name for routes without one")
@click.option("--activity", default=None, type=click.Choice(ACTIVITY_CHOICES))
@cookies_option
def sync(gpx_file, segment_files, url, folder, name, activity, cookie_file):
    """Upload a route to Garmin Connect as a course."""
    chosen = [s for s in (gpx_file, segment_files, url, folder) if s]
    if len(chosen) != 1:
        raise click.UsageError("Give exactly one of --gpx, --segments, --url or --folder")

    if gpx_file:
        source = GpxSource(_read_text(gpx_file))
    elif segment_files:
        source = SegmentSource([_read_text(f) for f in segment_files])
    elif url:
        try:
            source = UrlRouteSource(validate_url(url, settings.mapy_domains))
        except CourseSyncError as e:
            raise click.ClickException(f"{e.message} [{e.code.value}]") from e
    else:
        source = FolderSource(folder)

    request = SyncRequest(
        source=source,
        route_name=name,
        activity_type=ActivityType(activity) if activity else None
    )
    _run(_sync(request, cookie_file))


async def _sync(request: SyncRequest, cookie_file: Optional[str]):
    async with _session(cookie_file) as (store, engine, http):
        # Pick up a fresh browser export before uploading
        await engine.check_auth()
        orchestrator = SyncOrchestrator(
            store, engine, http_client=http, notifiers=[LoggingNotifier()]
        )
        result = await orchestrator.sync(request)

    if not result.success:
        raise click.ClickException(f"{result.error} [{result.error_code.value}]")
    click.echo(f"Course '{result.entry.route_name}' created: {result.course_url}")


@cli.command()
@click.option("--clear", is_flag=True, help="Delete the sync history")
@click.option("--limit", default=20, type=int, help="Number of entries to show")
def history(clear, limit):
    """Show recent syncs, newest first."""
    _run(_history(clear, limit))


async def _history(clear: bool, limit: int):
    store = await SessionStore.open()
    try:
        if clear:
            await store.clear_sync_history()
            click.echo("Sync history cleared.")
            return
        entries = await store.get_sync_history()
    finally:
        await store.close()

    if not entries:
        click.echo("No syncs yet.")
        return

    click.echo(f"{'Date':16} | {'Type':8} | {'Result':10} | Route")
    click.echo("-" * 70)
    for entry in entries[:limit]:
        result = entry.remote_course_id if entry.success else "failed"
        click.echo(
            f"{_format_ms(entry.synced_at_epoch_ms):16} | {entry.activity_type.value:8} | "
            f"{result:10} | {entry.route_name[:40]}"
        )
        if entry.error_message:
            click.echo(f"{'':16}   {entry.error_message}")


@cli.command("settings")
@click.option(
    "--activity", default=None, type=click.Choice(ACTIVITY_CHOICES),
    help="Default activity type for synced courses"
)
def settings_command(activity):
    """Show or change user settings."""
    _run(_settings(activity))


async def _settings(activity: Optional[str]):
    store = await SessionStore.open()
    try:
        if activity:
            current = await store.save_settings(default_activity_type=activity)
        else:
            current = await store.get_settings()
    finally:
        await store.close()

    click.echo(f"Default activity type: {current.default_activity_type.value}")


if __name__ == "__main__":
    cli()
