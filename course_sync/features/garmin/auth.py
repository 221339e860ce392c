"""
Garmin Connect session handling.

Login is browser based: the user signs in on a regular Garmin page and
the engine watches the page location until it lands on Garmin Connect
proper, then captures the session cookies. Upload requests additionally
need a CSRF token, scraped from the <meta name="csrf-token"> tag of an
authenticated Connect page.

States:
    LOGGED_OUT -> LOGIN_IN_FLIGHT -> LOGGED_IN -> LOGGED_OUT

Expiry is checked on read: SessionStore drops an expired token the first
time it is read, which reports the engine as logged out.
"""

import asyncio
import json
import logging
import re
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Callable, Iterable, Optional, Sequence
from urllib.parse import urlsplit

import httpx

from course_sync.config import Settings, settings as default_settings
from course_sync.shared.constants import SESSION_COOKIE_NAMES, SESSION_COOKIE_SUBSTRINGS
from course_sync.shared.errors import (
    AuthExpiredError,
    AuthNetworkError,
    CsrfTokenNotFoundError,
    ErrorCode,
    UrlValidationError,
)
from course_sync.shared.security import validate_image_url
from .cookies import Cookie, CookieStore, LoginHandle, LoginSurface
from .storage import AuthToken, SessionStore, now_ms

logger = logging.getLogger(__name__)

DEFAULT_USERNAME = "Garmin User"
MS_PER_DAY = 24 * 60 * 60 * 1000


# =============================================================================
# HTML extraction
# =============================================================================

# Tried in order; first match wins
CSRF_TOKEN_PATTERNS = [
    re.compile(r'<meta\s+name="csrf-token"\s+content="([^"]+)"', re.IGNORECASE),
    re.compile(r'<meta\s+content="([^"]+)"\s+name="csrf-token"', re.IGNORECASE),
    re.compile(r"<meta\s+name='csrf-token'\s+content='([^']+)'", re.IGNORECASE),
    re.compile(r"<meta\s+content='([^']+)'\s+name='csrf-token'", re.IGNORECASE),
    re.compile(r"""csrf-token["']\s*content\s*=\s*["']([^"']+)""", re.IGNORECASE),
    re.compile(
        r"""content\s*=\s*["']([^"']+)["']\s+name\s*=\s*["']csrf-token""",
        re.IGNORECASE
    ),
]

SOCIAL_PROFILE_PATTERN = re.compile(
    r"window\.VIEWER_SOCIAL_PROFILE\s*=\s*(\{.*?\})\s*;", re.DOTALL
)


@dataclass
class SocialProfile:
    display_name: str
    profile_image_url: Optional[str] = None


def extract_csrf_token(html: str) -> str:
    """
    Extract the CSRF token from a Connect page.

    Raises:
        CsrfTokenNotFoundError: If no pattern matches
    """
    for pattern in CSRF_TOKEN_PATTERNS:
        match = pattern.search(html)
        if match and match.group(1):
            logger.debug(f"[Garmin Auth] Token found with pattern: {pattern.pattern}")
            return match.group(1)

    lowered = html.lower()
    logger.error(
        "[Garmin Auth] CSRF token patterns not matched "
        f"(page mentions csrf: {'csrf' in lowered}, token: {'token' in lowered})"
    )
    raise CsrfTokenNotFoundError("CSRF token not found in page")


def extract_social_profile(
    html: str,
    allowed_image_domains: Sequence[str] = ("garmin.com", "amazonaws.com")
) -> Optional[SocialProfile]:
    """
    Extract the viewer's display name and avatar from a Connect page.

    Looks for ``window.VIEWER_SOCIAL_PROFILE = {...};``. Returns None on
    any failure; profile data is cosmetic.
    """
    match = SOCIAL_PROFILE_PATTERN.search(html)
    if not match:
        if "VIEWER_SOCIAL_PROFILE" in html:
            logger.debug("[Garmin Auth] VIEWER_SOCIAL_PROFILE present but not matched")
        return None

    try:
        profile = json.loads(match.group(1))
    except ValueError as e:
        logger.debug(f"[Garmin Auth] VIEWER_SOCIAL_PROFILE is not valid JSON: {e}")
        return None

    if not isinstance(profile, dict) or not profile.get("fullName"):
        logger.debug("[Garmin Auth] Profile missing fullName field")
        return None

    image_url = profile.get("profileImageUrlSmall") or profile.get("profileImageUrlMedium")
    if image_url:
        try:
            image_url = validate_image_url(str(image_url), allowed_image_domains)
        except UrlValidationError:
            logger.warning("[Garmin Auth] Invalid profile image URL from page, discarding")
            image_url = None

    return SocialProfile(display_name=str(profile["fullName"]), profile_image_url=image_url)


def has_session_cookie(cookies: Iterable[Cookie]) -> bool:
    """True if any cookie name marks an authenticated session (case-insensitive)."""
    for cookie in cookies:
        name = cookie.name.lower()
        if name in SESSION_COOKIE_NAMES:
            return True
        if any(part in name for part in SESSION_COOKIE_SUBSTRINGS):
            return True
    return False


def build_cookie_header(cookies: Iterable[Cookie]) -> str:
    return "; ".join(f"{c.name}={c.value}" for c in cookies)


# =============================================================================
# Session engine
# =============================================================================

class AuthState(str, Enum):
    LOGGED_OUT = "logged_out"
    LOGIN_IN_FLIGHT = "login_in_flight"
    LOGGED_IN = "logged_in"


@dataclass
class AuthStatus:
    is_authenticated: bool
    username: Optional[str] = None
    expires_at_epoch_ms: Optional[int] = None
    display_name: Optional[str] = None
    profile_image_url: Optional[str] = None

    @classmethod
    def from_token(cls, token: Optional[AuthToken]) -> "AuthStatus":
        if token is None:
            return cls(is_authenticated=False)
        return cls(
            is_authenticated=True,
            username=token.display_name or token.username,
            expires_at_epoch_ms=token.expires_at_epoch_ms,
            display_name=token.display_name,
            profile_image_url=token.profile_image_url,
        )


class AuthSessionEngine:
    """
    Owns the Garmin session: login, verification, CSRF token, logout.

    At most one login runs at a time; a second login() while one is in
    flight awaits the same attempt.

    Usage:
        engine = AuthSessionEngine(store, cookie_store, login_surface)
        await engine.login()
        csrf = await engine.get_csrf_token()
    """

    HTML_HEADERS = {
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
    }

    def __init__(
        self,
        store: SessionStore,
        cookie_store: CookieStore,
        login_surface: Optional[LoginSurface] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], int] = now_ms,
        prefetch_profile: bool = True
    ):
        self.store = store
        self.cookie_store = cookie_store
        self.login_surface = login_surface
        self.settings = settings or default_settings
        self.prefetch_profile = prefetch_profile
        self._http = http_client
        self._clock = clock
        self._state = AuthState.LOGGED_OUT
        self._login_task: Optional[asyncio.Task] = None
        self._background_tasks: set[asyncio.Task] = set()

    @property
    def state(self) -> AuthState:
        if self._login_task is not None and not self._login_task.done():
            return AuthState.LOGIN_IN_FLIGHT
        return self._state

    @property
    def connect_host(self) -> str:
        return urlsplit(self.settings.garmin_connect_url).hostname or ""

    # -------------------------------------------------------------------------
    # Session capture
    # -------------------------------------------------------------------------

    async def verify_session(self) -> bool:
        """Check the cookie store for session cookies."""
        try:
            cookies = await self.cookie_store.get_all(self.settings.garmin_cookie_domain)
        except Exception as e:
            logger.error(f"[Garmin Auth] verify_session() error: {e}")
            return False

        is_valid = has_session_cookie(cookies)
        logger.debug(f"[Garmin Auth] {len(cookies)} cookies, session valid: {is_valid}")
        return is_valid

    async def check_existing_session(self) -> Optional[AuthToken]:
        """Capture the session if the cookie store already holds one."""
        try:
            cookies = await self.cookie_store.get_all(self.settings.garmin_cookie_domain)
        except Exception as e:
            logger.error(f"[Garmin Auth] Error checking existing session: {e}")
            return None

        if not cookies:
            logger.info("[Garmin Auth] No cookies found")
            return None

        if not has_session_cookie(cookies):
            logger.info("[Garmin Auth] Session invalid")
            return None

        logger.info("[Garmin Auth] Valid session found")
        return await self.capture_session(cookies)

    async def capture_session(self, cookies: Optional[list[Cookie]] = None) -> AuthToken:
        """
        Store all Garmin cookies as the session, valid for the configured
        lifetime. Display name and avatar of a previous token are kept.
        """
        if cookies is None:
            cookies = await self.cookie_store.get_all(self.settings.garmin_cookie_domain)

        existing = await self.store.get_auth_token()
        username = DEFAULT_USERNAME
        if existing is not None:
            username = existing.display_name or existing.username or DEFAULT_USERNAME

        token = AuthToken(
            session_cookie_header=build_cookie_header(cookies),
            username=username,
            expires_at_epoch_ms=self._clock() + self.settings.session_lifetime_days * MS_PER_DAY,
            display_name=existing.display_name if existing else None,
            profile_image_url=existing.profile_image_url if existing else None,
        )
        await self.store.save_auth_token(token)

        logger.info(
            f"[Garmin Auth] Captured {len(cookies)} cookies, "
            f"profile preserved: {bool(token.display_name)}"
        )
        return token

    # -------------------------------------------------------------------------
    # Interactive login
    # -------------------------------------------------------------------------

    def is_authenticated_url(self, url: str) -> bool:
        """True once the login page has moved on to Garmin Connect proper."""
        host = (urlsplit(url).hostname or "").lower()
        return (
            host == self.connect_host.lower()
            and "signin" not in url
            and self.settings.garmin_sso_domain not in url
            and "/embed/" not in url
        )

    async def login(self) -> AuthToken:
        """
        Log in, reusing an existing browser session if there is one.

        Raises:
            AuthNetworkError: AUTH_LOGIN_TIMEOUT, AUTH_LOGIN_CANCELLED or
                AUTH_NETWORK_ERROR
        """
        if self._login_task is None or self._login_task.done():
            self._login_task = asyncio.create_task(self._login())
        else:
            logger.info("[Garmin Auth] Login already in flight, joining it")
        return await asyncio.shield(self._login_task)

    async def _login(self) -> AuthToken:
        self._state = AuthState.LOGIN_IN_FLIGHT
        try:
            existing = await self.check_existing_session()
            if existing is not None:
                logger.info("[Garmin Auth] Already authenticated")
                self._state = AuthState.LOGGED_IN
                return existing

            token = await self._interactive_login()
            self._state = AuthState.LOGGED_IN
            return token
        finally:
            if self._state is AuthState.LOGIN_IN_FLIGHT:
                self._state = AuthState.LOGGED_OUT

    async def _interactive_login(self) -> AuthToken:
        if self.login_surface is None:
            raise AuthNetworkError(
                "No interactive login available, sign in with your browser first",
                ErrorCode.AUTH_LOGIN_CANCELLED
            )

        signin_url = f"{self.settings.garmin_connect_url}/signin"
        logger.info(f"[Garmin Auth] Opening login page {signin_url}")
        try:
            handle = await self.login_surface.open(signin_url)
        except Exception as e:
            raise AuthNetworkError("Failed to open login page", ErrorCode.AUTH_NETWORK_ERROR) from e

        try:
            try:
                await asyncio.wait_for(
                    self._wait_for_login(handle),
                    timeout=self.settings.login_timeout_seconds
                )
            except asyncio.TimeoutError:
                logger.warning("[Garmin Auth] Login timed out")
                raise AuthNetworkError(
                    "Login timeout - please try again", ErrorCode.AUTH_LOGIN_TIMEOUT
                ) from None

            logger.info("[Garmin Auth] Login detected")
            token = await self.capture_session()
        finally:
            await self._close_quietly(handle)

        if self.prefetch_profile:
            self._schedule_profile_refresh()
        return token

    async def _wait_for_login(self, handle: LoginHandle) -> str:
        """Poll the login page until it reaches an authenticated URL."""
        while True:
            await asyncio.sleep(self.settings.login_poll_interval_seconds)
            try:
                url = await handle.current_url()
            except Exception as e:
                logger.info(f"[Garmin Auth] Login page unavailable: {e}")
                raise AuthNetworkError(
                    "Login cancelled or tab closed", ErrorCode.AUTH_LOGIN_CANCELLED
                ) from e

            if not url:
                logger.debug("[Garmin Auth] Tab URL not available yet")
                continue

            if self.is_authenticated_url(url):
                return url

    @staticmethod
    async def _close_quietly(handle: LoginHandle) -> None:
        try:
            await handle.close()
        except Exception as e:
            logger.debug(f"[Garmin Auth] Login page already closed: {e}")

    def _schedule_profile_refresh(self) -> None:
        task = asyncio.create_task(self.get_csrf_token())
        self._background_tasks.add(task)
        task.add_done_callback(self._on_profile_refresh_done)

    def _on_profile_refresh_done(self, task: asyncio.Task) -> None:
        self._background_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.info(f"[Garmin Auth] Profile prefetch failed: {task.exception()}")

    # -------------------------------------------------------------------------
    # Status / logout
    # -------------------------------------------------------------------------

    async def check_auth(self) -> AuthStatus:
        """Authentication status, preferring live browser cookies."""
        session = await self.check_existing_session()
        if session is not None:
            self._state = AuthState.LOGGED_IN
            return AuthStatus.from_token(session)

        token = await self.store.get_auth_token()
        self._state = AuthState.LOGGED_IN if token else AuthState.LOGGED_OUT
        return AuthStatus.from_token(token)

    async def get_session_cookies(self) -> Optional[str]:
        token = await self.store.get_auth_token()
        return token.session_cookie_header if token else None

    async def logout(self) -> None:
        """Forget the stored session and clear Garmin cookies (best effort)."""
        logger.info("[Garmin Auth] Logging out")
        try:
            await self.store.clear_auth_token()
        finally:
            self._state = AuthState.LOGGED_OUT
            await self._clear_cookies()

    async def _clear_cookies(self) -> None:
        for domain in self.settings.garmin_logout_domains:
            try:
                cookies = await self.cookie_store.get_all(domain)
            except Exception as e:
                logger.warning(f"[Garmin Auth] Cannot list cookies for {domain}: {e}")
                continue

            removed = 0
            for cookie in cookies:
                try:
                    await self.cookie_store.remove(cookie)
                    removed += 1
                except Exception as e:
                    logger.warning(f"[Garmin Auth] Cannot remove cookie {cookie.name}: {e}")
            logger.info(f"[Garmin Auth] Cleared {removed} cookies for {domain}")

    # -------------------------------------------------------------------------
    # CSRF token
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http is not None:
            yield self._http
            return
        async with httpx.AsyncClient(
            timeout=self.settings.http_timeout_seconds, follow_redirects=True
        ) as client:
            yield client

    async def get_csrf_token(self) -> str:
        """
        Fetch an authenticated Connect page and extract its CSRF token.

        Profile data found on the same page is saved to the stored token.

        Raises:
            AuthExpiredError: 401 or redirected to sign-in
            AuthNetworkError: Transport failure or other non-2xx status
            CsrfTokenNotFoundError: Page has no CSRF meta tag
        """
        cookies = await self.get_session_cookies()
        if not cookies:
            raise AuthExpiredError("Not authenticated with Garmin Connect")

        headers = {
            **self.HTML_HEADERS,
            "User-Agent": self.settings.user_agent,
            "Cookie": cookies,
        }
        url = f"{self.settings.garmin_connect_url}/modern"

        try:
            async with self._client() as client:
                response = await client.get(url, headers=headers, follow_redirects=True)
        except httpx.HTTPError as e:
            logger.error(f"[Garmin Auth] Error fetching CSRF token: {e}")
            raise AuthNetworkError(f"Failed to fetch CSRF token: {e}") from e

        final_url = str(response.url)
        logger.debug(f"[Garmin Auth] Final URL: {final_url}, status {response.status_code}")

        if response.status_code == 401:
            raise AuthExpiredError("Not authenticated with Garmin Connect")

        if self.settings.garmin_sso_domain in final_url or "/signin" in final_url:
            raise AuthExpiredError("Session expired - redirected to login")

        if not response.is_success:
            raise AuthNetworkError(f"Failed to fetch CSRF token: HTTP {response.status_code}")

        html = response.text
        await self._save_profile_from_html(html)

        token = extract_csrf_token(html)
        logger.info(f"[Garmin Auth] CSRF token extracted: {token[:10]}...")
        return token

    async def _save_profile_from_html(self, html: str) -> None:
        profile = extract_social_profile(html, self.settings.profile_image_domains)
        if profile is None:
            return

        try:
            updated = await self.store.update_profile(
                profile.display_name, profile.profile_image_url
            )
        except Exception as e:
            logger.warning(f"[Garmin Auth] Failed to save profile data: {e}")
            return

        if updated is None:
            logger.info("[Garmin Auth] No stored token found to save profile data to")
        else:
            logger.info(f"[Garmin Auth] Profile saved for {profile.display_name}")

    async def refresh_profile(self) -> AuthStatus:
        """Re-read profile data from Connect and return the new status."""
        await self.get_csrf_token()
        return AuthStatus.from_token(await self.store.get_auth_token())
