"""Feature modules: routes, mapy, course, garmin, sync."""
