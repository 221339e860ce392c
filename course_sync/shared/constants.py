"""
Unified constants for activity types and the Garmin course contract.

This module provides a single source of truth for activity type naming
across the entire application.
"""

from enum import Enum


class ActivityType(str, Enum):
    """
    Activity types a course can be created for.

    Used in:
    - User settings (defaultActivityType)
    - Sync requests
    - Sync history entries
    """
    CYCLING = "cycling"
    HIKING = "hiking"


# Mapping: our ActivityType -> Garmin activityTypePk
GARMIN_ACTIVITY_TYPE_PK: dict[ActivityType, int] = {
    ActivityType.CYCLING: 10,
    ActivityType.HIKING: 17,
}

DEFAULT_ACTIVITY_TYPE = ActivityType.CYCLING

# Course document constants
COORDINATE_SYSTEM = "WGS84"
COURSE_RULE_PK = 2
COURSE_SOURCE_TYPE_ID = 3
COURSE_POINT_TYPE_GENERIC = "GENERIC"

# Placeholder names that a caller-supplied route name may replace
UNNAMED_ROUTE = "Unnamed Route"
BROUTER_ROUTE = "BRouter Route"
GENERIC_ROUTE_NAMES = frozenset({UNNAMED_ROUTE, BROUTER_ROUTE})
DEFAULT_WAYPOINT_NAME = "Waypoint"

# Cookie names that indicate an authenticated Garmin session (lowercase)
SESSION_COOKIE_NAMES = frozenset({"session", "sessionid", "castgc"})
SESSION_COOKIE_SUBSTRINGS = ("jwt",)
