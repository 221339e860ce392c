"""
Sync pipeline module.

Usage:
    from course_sync.features.sync import SyncOrchestrator, SyncRequest, GpxSource

Components:
- SyncOrchestrator: route source -> Course -> upload, with history
- Route sources: GpxSource, SegmentSource, UrlRouteSource, FolderSource
- StatusNotifier / LoggingNotifier: terminal status listeners
"""

from .service import (
    FolderSource,
    GpxSource,
    LoggingNotifier,
    RouteSource,
    SegmentSource,
    StatusNotifier,
    SyncOrchestrator,
    SyncRequest,
    SyncResult,
    SyncState,
    SyncStatus,
    UrlRouteSource,
)

__all__ = [
    "FolderSource",
    "GpxSource",
    "LoggingNotifier",
    "RouteSource",
    "SegmentSource",
    "StatusNotifier",
    "SyncOrchestrator",
    "SyncRequest",
    "SyncResult",
    "SyncState",
    "SyncStatus",
    "UrlRouteSource",
]
