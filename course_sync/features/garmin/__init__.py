"""
Garmin Connect integration.

Components:
- AuthSessionEngine: browser-cookie login, session verification, CSRF token
- GarminCourseClient: course upload
- SessionStore: encrypted token, sync history and settings
- Cookie stores and login surface protocols
"""

from .auth import (
    AuthSessionEngine,
    AuthState,
    AuthStatus,
    SocialProfile,
    extract_csrf_token,
    extract_social_profile,
    has_session_cookie,
)
from .client import GarminCourseClient, UploadedCourse
from .cookies import (
    Cookie,
    CookieStore,
    FileCookieStore,
    LoginHandle,
    LoginSurface,
    MemoryCookieStore,
)
from .storage import (
    AuthToken,
    SessionStore,
    SyncHistoryEntry,
    TokenCipher,
    UserSettings,
    now_ms,
)

__all__ = [
    "AuthSessionEngine",
    "AuthState",
    "AuthStatus",
    "SocialProfile",
    "extract_csrf_token",
    "extract_social_profile",
    "has_session_cookie",
    "GarminCourseClient",
    "UploadedCourse",
    "Cookie",
    "CookieStore",
    "FileCookieStore",
    "LoginHandle",
    "LoginSurface",
    "MemoryCookieStore",
    "AuthToken",
    "SessionStore",
    "SyncHistoryEntry",
    "TokenCipher",
    "UserSettings",
    "now_ms",
]
