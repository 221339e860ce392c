"""
Tests for the Mapy.cz route URL codec.
"""

from urllib.parse import parse_qsl, urlsplit

import pytest

from course_sync.features.mapy import (
    RouteParams,
    build_export_url,
    has_route_params,
    parse_profile_id,
    parse_route_url,
    split_coordinate_blob,
)

# Planner URL with two municipality stops and a hiking profile
PLANNER_URL = (
    "https://mapy.com/en/turisticka?planovani-trasy&rc=9hChxxXvtO95rPhx1qo5"
    "&rs=muni&rs=muni&ri=3468&ri=1818"
    "&mrp=%7B%22c%22%3A121%2C%22dt%22%3A%22%22%2C%22d%22%3Atrue%7D"
    "&xc=%5B%5D&rwp=1%3B9hSCBxYCBz9hje0xYNZD"
)

EXPORT_BASE = "https://mapy.com/api/tplannerexport"


# =============================================================================
# Test Coordinate Blob Splitting
# =============================================================================

class TestSplitCoordinateBlob:
    """Tests for split_coordinate_blob."""

    def test_two_chunks(self):
        """20 characters split into two 10-character chunks."""
        assert split_coordinate_blob("9hChxxXvtO95rPhx1qo5") == ["9hChxxXvtO", "95rPhx1qo5"]

    def test_remainder_kept_unpadded(self):
        """17 characters split into 10 + 7."""
        assert split_coordinate_blob("9hChxxXvtO95rPhx1") == ["9hChxxXvtO", "95rPhx1"]

    def test_short_blob(self):
        assert split_coordinate_blob("9hChx") == ["9hChx"]

    @pytest.mark.parametrize("rc", ["", None])
    def test_empty(self, rc):
        assert split_coordinate_blob(rc) == []

    def test_chunks_concatenate_to_blob(self):
        rc = "9nTCQxXNc69nOAQxX2b29nMUQxWuoD9n8TQxW5wB9n-AQxWlSI"
        chunks = split_coordinate_blob(rc)
        assert len(chunks) == 5
        assert "".join(chunks) == rc


# =============================================================================
# Test URL Parsing
# =============================================================================

class TestParseRouteUrl:
    """Tests for parse_route_url."""

    def test_planner_url(self):
        params = parse_route_url(PLANNER_URL)
        assert params.rc == "9hChxxXvtO95rPhx1qo5"
        assert params.rg == ["9hChxxXvtO", "95rPhx1qo5"]
        assert params.rs == ["muni", "muni"]
        assert params.ri == ["3468", "1818"]
        assert params.rp_c == "121"
        assert params.rp_aw == "1;9hSCBxYCBz9hje0xYNZD"
        assert params.rut is None

    def test_rut(self):
        params = parse_route_url("https://mapy.com?rc=9gVJ8x1uBMhaqWi&rs=stre&ri=85610&rut=1")
        assert params.rut == "1"

    def test_minimal(self):
        params = parse_route_url("https://mapy.com?rc=testcoords")
        assert params.rg == ["testcoords"]
        assert params.rs == []
        assert params.ri == []
        assert params.rp_c is None
        assert params.rp_aw is None

    def test_invalid_mrp_ignored(self):
        params = parse_route_url("https://mapy.com?rc=test&mrp=invalid-json")
        assert params.rp_c is None
        assert params.rc == "test"

    def test_rg_without_rc(self):
        params = parse_route_url("https://mapy.cz?rg=aaaaaaaaaa&rg=bbbbbbbbbb")
        assert params.rc is None
        assert params.rg == ["aaaaaaaaaa", "bbbbbbbbbb"]
        assert params.has_coordinates

    def test_no_route(self):
        params = parse_route_url("https://mapy.com/en/turisticka?x=14.4&y=50.0&z=12")
        assert not params.has_coordinates

    def test_blank_stop_ids_kept_in_order(self):
        params = parse_route_url("https://mapy.com?rc=abc&rs=coor&rs=muni&ri=&ri=123")
        assert params.rs == ["coor", "muni"]
        assert params.ri == ["", "123"]

    def test_blank_scalar_params_are_absent(self):
        params = parse_route_url("https://mapy.com?rc=abc&mrp=&rwp=&rut=")
        assert params.rp_c is None
        assert params.rp_aw is None
        assert params.rut is None

    def test_blank_rc_falls_back_to_rg(self):
        params = parse_route_url("https://mapy.cz?rc=&rg=aaaaaaaaaa&rg=")
        assert params.rc is None
        assert params.rg == ["aaaaaaaaaa"]


class TestProfileId:

    def test_numeric_id(self):
        assert parse_profile_id('{"c":121}') == "121"

    def test_missing_id(self):
        assert parse_profile_id('{"d":true}') is None

    def test_not_an_object(self):
        assert parse_profile_id("[1,2]") is None

    def test_none(self):
        assert parse_profile_id(None) is None


class TestHasRouteParams:

    def test_with_rc(self):
        assert has_route_params(PLANNER_URL)

    def test_without_route(self):
        assert not has_route_params("https://mapy.com/en/turisticka?x=14.4&y=50.0")

    def test_blank_coordinates(self):
        assert not has_route_params("https://mapy.com/en/turisticka?rc=&rg=")


# =============================================================================
# Test Export URL
# =============================================================================

class TestBuildExportUrl:
    """Tests for build_export_url."""

    def test_parameter_order(self):
        url = build_export_url(parse_route_url(PLANNER_URL), EXPORT_BASE, cache_buster="42")
        keys = [k for k, _ in parse_qsl(urlsplit(url).query)]
        assert keys == ["export", "lang", "rp_c", "rc", "rs", "rs", "ri", "ri", "rp_aw", "rand"]

    def test_values(self):
        url = build_export_url(parse_route_url(PLANNER_URL), EXPORT_BASE, cache_buster="42")
        assert url.startswith(EXPORT_BASE + "?export=gpx&lang=en%2Ccs&rp_c=121&rc=9hChxxXvtO95rPhx1qo5")
        query = dict(parse_qsl(urlsplit(url).query))
        assert query["rp_aw"] == "1;9hSCBxYCBz9hje0xYNZD"
        assert query["rand"] == "42"

    def test_rg_used_without_rc(self):
        params = RouteParams(rg=["aaaaaaaaaa", "bbbbbbbbbb"], rs=["coor", "coor"])
        url = build_export_url(params, EXPORT_BASE, cache_buster="1")
        pairs = parse_qsl(urlsplit(url).query)
        assert [v for k, v in pairs if k == "rg"] == ["aaaaaaaaaa", "bbbbbbbbbb"]
        assert "rc" not in dict(pairs)

    def test_rc_wins_over_rg(self):
        params = RouteParams(rc="abc", rg=["zzz"])
        pairs = parse_qsl(urlsplit(build_export_url(params, EXPORT_BASE, cache_buster="1")).query)
        assert ("rc", "abc") in pairs
        assert "rg" not in dict(pairs)

    def test_optional_params_omitted(self):
        url = build_export_url(RouteParams(rc="abc"), EXPORT_BASE, cache_buster="1")
        query = dict(parse_qsl(urlsplit(url).query))
        assert set(query) == {"export", "lang", "rc", "rand"}

    def test_rut_before_rand(self):
        url = build_export_url(RouteParams(rc="abc", rut="1"), EXPORT_BASE, cache_buster="9")
        assert url.endswith("&rut=1&rand=9")

    def test_blank_stop_ids_exported(self):
        params = parse_route_url("https://mapy.com?rc=abc&rs=coor&rs=muni&ri=&ri=123")
        url = build_export_url(params, EXPORT_BASE, cache_buster="1")
        pairs = parse_qsl(urlsplit(url).query, keep_blank_values=True)
        assert [p for p in pairs if p[0] in ("rs", "ri")] == [
            ("rs", "coor"), ("rs", "muni"), ("ri", ""), ("ri", "123")
        ]

    def test_random_cache_buster(self):
        url = build_export_url(RouteParams(rc="abc"), EXPORT_BASE)
        assert dict(parse_qsl(urlsplit(url).query))["rand"].isdigit()
