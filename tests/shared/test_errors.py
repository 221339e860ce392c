"""
Tests for the error taxonomy.
"""

from course_sync.shared.errors import (
    ERROR_KINDS,
    AuthExpiredError,
    CourseSyncError,
    CsrfTokenNotFoundError,
    ErrorCode,
    ErrorKind,
    ParseError,
    UploadRejectedError,
    get_error_message,
)


class TestErrorKinds:
    """Every code belongs to exactly one kind."""

    def test_all_codes_mapped(self):
        assert set(ERROR_KINDS) == set(ErrorCode)

    def test_kind_follows_code(self):
        error = UploadRejectedError(code=ErrorCode.UPLOAD_DUPLICATE)
        assert error.kind is ErrorKind.UPLOAD_REJECTED

    def test_csrf_rejected_is_auth_expired(self):
        error = AuthExpiredError("rejected", ErrorCode.AUTH_CSRF_INVALID)
        assert error.kind is ErrorKind.AUTH_EXPIRED

    def test_csrf_missing_is_parse(self):
        assert CsrfTokenNotFoundError().kind is ErrorKind.PARSE


class TestMessages:
    """Default messages come from the code."""

    def test_default_message(self):
        error = ParseError(code=ErrorCode.EMPTY_ROUTE)
        assert error.message == "Route has no points"
        assert str(error) == "Route has no points"

    def test_explicit_message_wins(self):
        error = ParseError("Segment 2: geometry is not a LineString", ErrorCode.GEOJSON_PARSE_ERROR)
        assert error.message == "Segment 2: geometry is not a LineString"
        assert error.code is ErrorCode.GEOJSON_PARSE_ERROR

    def test_base_defaults_to_unknown(self):
        error = CourseSyncError()
        assert error.code is ErrorCode.UNKNOWN_ERROR
        assert error.kind is ErrorKind.UNKNOWN
        assert error.message == get_error_message(ErrorCode.UNKNOWN_ERROR)
