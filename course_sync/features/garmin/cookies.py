"""
Cookie stores and the interactive login surface.

The session engine never talks to a browser directly; it reads cookies
through a CookieStore and drives login through a LoginSurface. Two
stores are provided: an in-memory one and one backed by a Netscape
``cookies.txt`` file exported from a browser.
"""

import asyncio
import logging
from dataclasses import dataclass
from http.cookiejar import LoadError, MozillaCookieJar
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Cookie:
    name: str
    value: str
    domain: str
    path: str = "/"


def domain_matches(cookie_domain: str, domain: str) -> bool:
    """
    True if a cookie set for ``cookie_domain`` belongs to ``domain``.

    A leading dot on either side means "this domain and its subdomains".
    """
    cookie_host = cookie_domain.lstrip(".").lower()
    host = domain.lstrip(".").lower()
    return cookie_host == host or cookie_host.endswith("." + host)


class CookieStore(Protocol):
    async def get_all(self, domain: str) -> list[Cookie]:
        """All cookies for ``domain`` and its subdomains."""
        ...

    async def remove(self, cookie: Cookie) -> None:
        ...


class MemoryCookieStore:
    """Cookie store kept in process memory."""

    def __init__(self, cookies: Optional[list[Cookie]] = None):
        self._cookies: list[Cookie] = list(cookies or [])

    def set(self, cookie: Cookie) -> None:
        self._cookies = [
            c for c in self._cookies
            if (c.name, c.domain, c.path) != (cookie.name, cookie.domain, cookie.path)
        ]
        self._cookies.append(cookie)

    async def get_all(self, domain: str) -> list[Cookie]:
        return [c for c in self._cookies if domain_matches(c.domain, domain)]

    async def remove(self, cookie: Cookie) -> None:
        self._cookies = [c for c in self._cookies if c != cookie]


class FileCookieStore:
    """
    Cookie store backed by a Netscape-format cookie file.

    The file is re-read on every call so a fresh browser export is picked
    up without restarting; removals are written back immediately.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _load(self) -> MozillaCookieJar:
        jar = MozillaCookieJar(str(self.path))
        if self.path.exists():
            try:
                jar.load(ignore_discard=True, ignore_expires=True)
            except LoadError as e:
                logger.warning(f"Cannot read cookie file {self.path}: {e}")
        return jar

    def _get_all(self, domain: str) -> list[Cookie]:
        return [
            Cookie(name=c.name, value=c.value or "", domain=c.domain, path=c.path)
            for c in self._load()
            if domain_matches(c.domain, domain)
        ]

    def _remove(self, cookie: Cookie) -> None:
        jar = self._load()
        try:
            jar.clear(cookie.domain, cookie.path, cookie.name)
        except KeyError:
            return
        jar.save(ignore_discard=True, ignore_expires=True)

    async def get_all(self, domain: str) -> list[Cookie]:
        return await asyncio.to_thread(self._get_all, domain)

    async def remove(self, cookie: Cookie) -> None:
        await asyncio.to_thread(self._remove, cookie)


class LoginHandle(Protocol):
    """An open interactive login page (e.g. a browser tab)."""

    async def current_url(self) -> Optional[str]:
        """
        Current location, None while not yet known.

        Raises an exception once the page is gone (closed by the user).
        """
        ...

    async def close(self) -> None:
        ...


class LoginSurface(Protocol):
    async def open(self, url: str) -> LoginHandle:
        ...
