"""
Mapy.cz route URL parameters.

A planned route on mapy.cz is described entirely by query parameters:

    rc   - coordinate blob (opaque, may contain abbreviated coordinates)
    rs   - stop types, repeated (e.g. 'muni', 'ward', 'coor')
    ri   - stop ids, repeated, parallel to rs
    mrp  - JSON routing profile; only ``c`` (profile id) is used
    rwp  - waypoint path, forwarded to the export API as rp_aw
    rut  - route update token, present on some routes

The export API accepts the same blob back as ``rc`` or, in older form,
split into fixed-width ``rg`` chunks.
"""

import json
import logging
import random
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import parse_qs, unquote, urlencode, urlsplit

logger = logging.getLogger(__name__)

# Width of one rg chunk
RG_CHUNK_WIDTH = 10


@dataclass
class RouteParams:
    """Route parameters needed by the Mapy.cz export API."""
    rc: Optional[str] = None
    rg: list[str] = field(default_factory=list)
    rs: list[str] = field(default_factory=list)
    ri: list[str] = field(default_factory=list)
    rp_c: Optional[str] = None
    rp_aw: Optional[str] = None
    rut: Optional[str] = None

    @property
    def has_coordinates(self) -> bool:
        return bool(self.rc or self.rg)


def split_coordinate_blob(rc: Optional[str], width: int = RG_CHUNK_WIDTH) -> list[str]:
    """
    Split the rc blob into fixed-width rg chunks.

    Purely textual: the last chunk keeps whatever remains, no padding.
    Only valid for encodings where every coordinate is exactly ``width``
    characters; abbreviated coordinates are split at the wrong place,
    which is why ``rc`` is preferred whenever it is available.

    Example:
        '9hChxxXvtO95rPhx1qo5' -> ['9hChxxXvtO', '95rPhx1qo5']
    """
    if not rc:
        return []
    return [rc[i:i + width] for i in range(0, len(rc), width)]


def _first(query: dict[str, list[str]], key: str) -> Optional[str]:
    values = query.get(key)
    return values[0] if values and values[0] else None


def parse_profile_id(mrp: Optional[str]) -> Optional[str]:
    """
    Extract the profile id (``c``) from the mrp JSON blob.

    Malformed JSON yields None instead of failing the whole parse.
    """
    if not mrp:
        return None
    try:
        profile = json.loads(unquote(mrp))
    except ValueError as e:
        logger.warning(f"Failed to parse mrp: {e}")
        return None

    if not isinstance(profile, dict):
        logger.warning("Failed to parse mrp: not a JSON object")
        return None

    profile_id = profile.get("c")
    return str(profile_id) if profile_id else None


def parse_route_url(url: str) -> RouteParams:
    """
    Parse a Mapy.cz URL into route parameters.

    ``rg`` is derived from ``rc`` when present, otherwise taken from
    the URL's own rg values. Blank ``rs``/``ri`` entries are kept so the
    two arrays stay aligned (coordinate stops carry an empty ``ri``).
    """
    query = parse_qs(urlsplit(url).query, keep_blank_values=True)

    rc = _first(query, "rc")
    return RouteParams(
        rc=rc,
        rg=split_coordinate_blob(rc) if rc else [v for v in query.get("rg", []) if v],
        rs=list(query.get("rs", [])),
        ri=list(query.get("ri", [])),
        rp_c=parse_profile_id(_first(query, "mrp")),
        rp_aw=_first(query, "rwp"),
        rut=_first(query, "rut"),
    )


def has_route_params(url: str) -> bool:
    """True if the URL carries route coordinates (rc or rg)."""
    try:
        query = parse_qs(urlsplit(url).query, keep_blank_values=True)
    except ValueError:
        return False
    return bool(_first(query, "rc") or any(query.get("rg", [])))


def _cache_buster() -> str:
    return f"{random.random():.16f}"[2:]


def build_export_url(
    params: RouteParams,
    base_url: str,
    lang: str = "en,cs",
    cache_buster: Optional[str] = None
) -> str:
    """
    Build the GPX export URL for a route.

    Parameter order: export, lang, rp_c, rc | rg..., rs..., ri...,
    rp_aw, rut, rand. ``rc`` wins over ``rg`` when both exist.
    """
    query: list[tuple[str, str]] = [("export", "gpx"), ("lang", lang)]

    if params.rp_c:
        query.append(("rp_c", params.rp_c))

    if params.rc:
        query.append(("rc", params.rc))
    else:
        query.extend(("rg", chunk) for chunk in params.rg)

    query.extend(("rs", value) for value in params.rs)
    query.extend(("ri", value) for value in params.ri)

    if params.rp_aw:
        query.append(("rp_aw", params.rp_aw))

    if params.rut:
        query.append(("rut", params.rut))

    query.append(("rand", cache_buster if cache_buster is not None else _cache_buster()))

    return f"{base_url}?{urlencode(query)}"
