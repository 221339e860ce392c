"""
URL validation.

Rejects javascript:, data:, file:, vbscript:, about: and blob: URLs
(including percent-encoded and mixed-case variants) before a URL taken
from a third-party page is stored or followed.
"""

import re
from typing import Optional, Sequence
from urllib.parse import unquote, urlsplit

from .errors import UrlValidationError

SAFE_URL_SCHEMES = ("https", "http")
UNSAFE_URL_SCHEMES = ("javascript:", "data:", "file:", "vbscript:", "about:", "blob:")

_WHITESPACE = re.compile(r"\s")


def is_safe_url_scheme(url: str) -> bool:
    """Check that the URL uses http(s) and no encoded unsafe scheme."""
    normalized = unquote(url).strip().lower()
    if normalized.startswith(UNSAFE_URL_SCHEMES):
        return False

    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme.lower() in SAFE_URL_SCHEMES and bool(parts.netloc)


def is_domain_allowed(domain: str, allowed_domain: str) -> bool:
    """Exact match or subdomain of the allowed domain."""
    domain = domain.lower()
    allowed_domain = allowed_domain.lower()
    return domain == allowed_domain or domain.endswith("." + allowed_domain)


def validate_url(url: str, allowed_domains: Optional[Sequence[str]] = None) -> str:
    """
    Validate URL scheme, credentials and (optionally) domain.

    Args:
        url: URL to validate
        allowed_domains: If given, host must equal or be a subdomain of one

    Returns:
        The URL unchanged

    Raises:
        UrlValidationError: If the URL is empty, malformed or unsafe
    """
    if not url or not url.strip():
        raise UrlValidationError("Invalid URL: empty or contains whitespace")

    if _WHITESPACE.search(url):
        raise UrlValidationError("Invalid URL: contains whitespace")

    if not is_safe_url_scheme(url):
        raise UrlValidationError(
            "Invalid URL: unsafe URL scheme (only https:// and http:// are allowed)"
        )

    try:
        parts = urlsplit(url)
        hostname = parts.hostname
        # Accessing .port validates the port component
        parts.port
    except ValueError as e:
        raise UrlValidationError(f"Invalid URL: malformed URL ({e})") from e

    if parts.username or parts.password:
        raise UrlValidationError("Invalid URL: embedded credentials are not allowed")

    if not hostname:
        raise UrlValidationError("Invalid URL: could not extract domain")

    if allowed_domains:
        if not any(is_domain_allowed(hostname, allowed) for allowed in allowed_domains):
            raise UrlValidationError(
                f'Invalid URL: domain "{hostname}" is not in allowed domains '
                f"[{', '.join(allowed_domains)}]"
            )

    return url


def validate_image_url(url: str, allowed_domains: Optional[Sequence[str]] = None) -> str:
    """Validate a URL destined for an image source."""
    return validate_url(url, allowed_domains)
