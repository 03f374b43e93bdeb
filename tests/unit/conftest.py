"""
Pytest configuration and shared fixtures for unit tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from vdi_usage_report.config import clear_settings_cache
from vdi_usage_report.schemas import SessionInterval, TimeWindow

# Fixed reference time: 2024-01-16 12:00 UTC
NOW = datetime(2024, 1, 16, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    """Fixed 'current' time used across window tests."""
    return NOW


@pytest.fixture
def window() -> TimeWindow:
    """Yesterday relative to NOW: 2024-01-15 00:00:00 - 23:59:59 UTC."""
    return TimeWindow(
        start=datetime(2024, 1, 15, 0, 0, 0, tzinfo=timezone.utc),
        end=datetime(2024, 1, 15, 23, 59, 59, tzinfo=timezone.utc),
    )


@pytest.fixture
def make_session(window):
    """
    Factory for session intervals at minute offsets from the window start.

    make_session("dg-1", 10, 20) logs in at +10min and off at +20min;
    pass end=None for a session still open.
    """

    def _make(group_id, start_min, end_min=None):
        login = window.start + timedelta(minutes=start_min)
        logoff = None if end_min is None else window.start + timedelta(minutes=end_min)
        return SessionInterval(
            delivery_group_id=group_id, login_time=login, logoff_time=logoff
        )

    return _make


@pytest.fixture(autouse=True)
def _clean_settings_cache():
    """Settings are cached per process; reset around every test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
