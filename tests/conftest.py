"""Shared fixtures for interview scheduling tests.

The doubles themselves live in tests/doubles.py so test modules can import
them directly.
"""

from __future__ import annotations

import pytest

from src.app.config import get_settings
from src.app.interviews.errors import CalendarSyncError, ProviderError, ProviderErrorKind
from src.app.interviews.schemas import MeetingProviderId
from tests.doubles import FakeCalendarMirror, Harness, StaticProvider


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Settings are cached process-wide; tests that patch env need a fresh copy."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def zoom_provider() -> StaticProvider:
    return StaticProvider(MeetingProviderId.ZOOM)


@pytest.fixture
def harness(zoom_provider) -> Harness:
    """Orchestrator and lifecycle manager wired to a working Zoom provider, no calendar."""
    return Harness(providers=[zoom_provider])


@pytest.fixture
def failing_calendar() -> FakeCalendarMirror:
    return FakeCalendarMirror(error=CalendarSyncError("calendar API returned 500"))


@pytest.fixture
def unauthenticated_zoom() -> StaticProvider:
    return StaticProvider(
        MeetingProviderId.ZOOM,
        error=ProviderError(ProviderErrorKind.UNAUTHENTICATED, "zoom", "token expired"),
    )
