"""
Shared test fixtures.
"""

import pytest

from course_sync.config import Settings


class FakeClock:
    """Settable epoch-millisecond clock."""

    def __init__(self, now_ms: int = 1_700_000_000_000):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance_days(self, days: float) -> None:
        self.now_ms += int(days * 24 * 60 * 60 * 1000)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_url(tmp_path):
    """SQLite file database in a per-test directory."""
    return f"sqlite:///{tmp_path / 'state.db'}"


@pytest.fixture
def test_settings(db_url):
    """Settings with fast login polling and an isolated database."""
    return Settings(
        database_url=db_url,
        encryption_key=None,
        login_poll_interval_seconds=0.01,
        login_timeout_seconds=0.2,
        segment_export_timeout_seconds=0.2,
    )
