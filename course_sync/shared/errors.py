"""
Error taxonomy.

Every failure in the pipeline is raised as a CourseSyncError subclass
carrying an ErrorCode. The code maps to exactly one ErrorKind, which is
what callers branch on (e.g. AUTH_EXPIRED -> trigger a new login).
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Coarse failure category."""
    PARSE = "parse"
    ROUTE_SOURCE = "route_source"
    AUTH_EXPIRED = "auth_expired"
    AUTH_NETWORK = "auth_network"
    UPLOAD_REJECTED = "upload_rejected"
    UPLOAD_FAILED = "upload_failed"
    STORAGE = "storage"
    UNKNOWN = "unknown"


class ErrorCode(str, Enum):
    """Machine-readable error code."""

    # Authentication
    AUTH_SESSION_EXPIRED = "AUTH_SESSION_EXPIRED"
    AUTH_CSRF_INVALID = "AUTH_CSRF_INVALID"
    AUTH_CSRF_NOT_FOUND = "AUTH_CSRF_NOT_FOUND"
    AUTH_NETWORK_ERROR = "AUTH_NETWORK_ERROR"
    AUTH_LOGIN_TIMEOUT = "AUTH_LOGIN_TIMEOUT"
    AUTH_LOGIN_CANCELLED = "AUTH_LOGIN_CANCELLED"

    # Route extraction
    ROUTE_EXTRACTION_FAILED = "ROUTE_EXTRACTION_FAILED"
    GPX_PARSE_ERROR = "GPX_PARSE_ERROR"
    GEOJSON_PARSE_ERROR = "GEOJSON_PARSE_ERROR"
    EMPTY_ROUTE = "EMPTY_ROUTE"
    INVALID_ACTIVITY_TYPE = "INVALID_ACTIVITY_TYPE"

    # Folders
    FOLDER_NOT_FOUND = "FOLDER_NOT_FOUND"
    FOLDER_EXPORT_FAILED = "FOLDER_EXPORT_FAILED"
    FOLDER_EMPTY = "FOLDER_EMPTY"
    FOLDER_MULTIPLE_ROUTES = "FOLDER_MULTIPLE_ROUTES"

    # Upload
    UPLOAD_FAILED = "UPLOAD_FAILED"
    UPLOAD_INVALID_PAYLOAD = "UPLOAD_INVALID_PAYLOAD"
    UPLOAD_QUOTA_EXCEEDED = "UPLOAD_QUOTA_EXCEEDED"
    UPLOAD_DUPLICATE = "UPLOAD_DUPLICATE"

    # Storage
    STORAGE_ERROR = "STORAGE_ERROR"
    ENCRYPTION_ERROR = "ENCRYPTION_ERROR"

    # Security
    URL_VALIDATION = "URL_VALIDATION"

    UNKNOWN_ERROR = "UNKNOWN_ERROR"


ERROR_KINDS: dict[ErrorCode, ErrorKind] = {
    ErrorCode.AUTH_SESSION_EXPIRED: ErrorKind.AUTH_EXPIRED,
    ErrorCode.AUTH_CSRF_INVALID: ErrorKind.AUTH_EXPIRED,
    ErrorCode.AUTH_CSRF_NOT_FOUND: ErrorKind.PARSE,
    ErrorCode.AUTH_NETWORK_ERROR: ErrorKind.AUTH_NETWORK,
    ErrorCode.AUTH_LOGIN_TIMEOUT: ErrorKind.AUTH_NETWORK,
    ErrorCode.AUTH_LOGIN_CANCELLED: ErrorKind.AUTH_NETWORK,
    ErrorCode.ROUTE_EXTRACTION_FAILED: ErrorKind.ROUTE_SOURCE,
    ErrorCode.GPX_PARSE_ERROR: ErrorKind.PARSE,
    ErrorCode.GEOJSON_PARSE_ERROR: ErrorKind.PARSE,
    ErrorCode.EMPTY_ROUTE: ErrorKind.PARSE,
    ErrorCode.INVALID_ACTIVITY_TYPE: ErrorKind.PARSE,
    ErrorCode.FOLDER_NOT_FOUND: ErrorKind.ROUTE_SOURCE,
    ErrorCode.FOLDER_EXPORT_FAILED: ErrorKind.ROUTE_SOURCE,
    ErrorCode.FOLDER_EMPTY: ErrorKind.ROUTE_SOURCE,
    ErrorCode.FOLDER_MULTIPLE_ROUTES: ErrorKind.ROUTE_SOURCE,
    ErrorCode.UPLOAD_FAILED: ErrorKind.UPLOAD_FAILED,
    ErrorCode.UPLOAD_INVALID_PAYLOAD: ErrorKind.UPLOAD_REJECTED,
    ErrorCode.UPLOAD_QUOTA_EXCEEDED: ErrorKind.UPLOAD_REJECTED,
    ErrorCode.UPLOAD_DUPLICATE: ErrorKind.UPLOAD_REJECTED,
    ErrorCode.STORAGE_ERROR: ErrorKind.STORAGE,
    ErrorCode.ENCRYPTION_ERROR: ErrorKind.STORAGE,
    ErrorCode.URL_VALIDATION: ErrorKind.PARSE,
    ErrorCode.UNKNOWN_ERROR: ErrorKind.UNKNOWN,
}


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.AUTH_SESSION_EXPIRED: "Session expired, please log in again",
    ErrorCode.AUTH_CSRF_INVALID: "CSRF token invalid or expired, please try again",
    ErrorCode.AUTH_CSRF_NOT_FOUND: "CSRF token not found in page",
    ErrorCode.AUTH_NETWORK_ERROR: "Network error during authentication",
    ErrorCode.AUTH_LOGIN_TIMEOUT: "Login timeout - please try again",
    ErrorCode.AUTH_LOGIN_CANCELLED: "Login cancelled or tab closed",
    ErrorCode.ROUTE_EXTRACTION_FAILED: "Failed to extract route data",
    ErrorCode.GPX_PARSE_ERROR: "Failed to parse GPX data",
    ErrorCode.GEOJSON_PARSE_ERROR: "Failed to parse GeoJSON data",
    ErrorCode.EMPTY_ROUTE: "Route has no points",
    ErrorCode.INVALID_ACTIVITY_TYPE: "Unsupported activity type",
    ErrorCode.FOLDER_NOT_FOUND: "Folder not found or not accessible",
    ErrorCode.FOLDER_EXPORT_FAILED: "Failed to export folder from Mapy.cz",
    ErrorCode.FOLDER_EMPTY: "This folder contains no routes",
    ErrorCode.FOLDER_MULTIPLE_ROUTES: (
        "This folder contains multiple routes. Please sync individual routes instead."
    ),
    ErrorCode.UPLOAD_FAILED: "Failed to upload course to Garmin Connect",
    ErrorCode.UPLOAD_INVALID_PAYLOAD: "Garmin Connect rejected the course data",
    ErrorCode.UPLOAD_QUOTA_EXCEEDED: "Garmin Connect upload quota exceeded",
    ErrorCode.UPLOAD_DUPLICATE: "This course already exists in Garmin Connect",
    ErrorCode.STORAGE_ERROR: "Failed to access local storage",
    ErrorCode.ENCRYPTION_ERROR: "Failed to encrypt/decrypt data",
    ErrorCode.URL_VALIDATION: "Invalid or unsafe URL",
    ErrorCode.UNKNOWN_ERROR: "An unexpected error occurred",
}


def get_error_message(code: ErrorCode) -> str:
    """Human-readable default message for an error code."""
    return ERROR_MESSAGES.get(code, ERROR_MESSAGES[ErrorCode.UNKNOWN_ERROR])


class CourseSyncError(Exception):
    """Base error for the route -> course -> upload pipeline."""

    default_code = ErrorCode.UNKNOWN_ERROR

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[ErrorCode] = None
    ):
        self.code = code or self.default_code
        self.message = message or get_error_message(self.code)
        super().__init__(self.message)

    @property
    def kind(self) -> ErrorKind:
        return ERROR_KINDS.get(self.code, ErrorKind.UNKNOWN)


class ParseError(CourseSyncError):
    """Malformed GPX / GeoJSON / coordinate input."""
    default_code = ErrorCode.GPX_PARSE_ERROR


class RouteSourceError(CourseSyncError):
    """Route material could not be fetched from the mapping site."""
    default_code = ErrorCode.ROUTE_EXTRACTION_FAILED


class AuthExpiredError(CourseSyncError):
    """Session or CSRF token is stale; a new login is needed."""
    default_code = ErrorCode.AUTH_SESSION_EXPIRED


class AuthNetworkError(CourseSyncError):
    """Transport failure or aborted login while authenticating."""
    default_code = ErrorCode.AUTH_NETWORK_ERROR


class CsrfTokenNotFoundError(CourseSyncError):
    """Authenticated page was fetched but carries no CSRF meta tag."""
    default_code = ErrorCode.AUTH_CSRF_NOT_FOUND


class UploadRejectedError(CourseSyncError):
    """Platform refused a well-formed request (duplicate, quota, payload)."""
    default_code = ErrorCode.UPLOAD_INVALID_PAYLOAD


class UploadFailedError(CourseSyncError):
    """Generic non-2xx or malformed success response."""
    default_code = ErrorCode.UPLOAD_FAILED


class StorageError(CourseSyncError):
    """Encryption or persistence failure."""
    default_code = ErrorCode.STORAGE_ERROR


class UrlValidationError(CourseSyncError):
    """URL failed the scheme / domain / credential checks."""
    default_code = ErrorCode.URL_VALIDATION
