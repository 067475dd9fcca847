"""Shared fixtures for happenings tests."""

from collections.abc import Generator
from typing import Any, Callable

import pytest

from happenings.calendar.models import EventDefinition, OccurrenceOverride
from happenings.calendar.occurrence_expander import DateWindow

HAPPENINGS_ENV_VARS = (
    "HAPPENINGS_TIMEZONE",
    "HAPPENINGS_TEST_TIME",
    "HAPPENINGS_MAX_EVENTS",
    "HAPPENINGS_MAX_PER_EVENT",
    "HAPPENINGS_WINDOW_DAYS",
    "HAPPENINGS_UNKNOWN_POLICY",
    "HAPPENINGS_DEBUG",
    "HAPPENINGS_LOG_LEVEL",
)


def pytest_configure(config: Any) -> None:
    """Register test markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "integration: End-to-end timeline scenarios")


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Clear HAPPENINGS_* variables so host settings never leak into tests."""
    for name in HAPPENINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def make_event() -> Callable[..., EventDefinition]:
    """Factory for event definitions with a title and sensible id."""
    counter = {"n": 0}

    def _make(**fields: Any) -> EventDefinition:
        counter["n"] += 1
        fields.setdefault("id", f"evt-{counter['n']}")
        fields.setdefault("title", f"Event {fields['id']}")
        return EventDefinition.model_validate(fields)

    return _make


@pytest.fixture
def make_override() -> Callable[..., OccurrenceOverride]:
    """Factory for override rows."""

    def _make(event_id: str, date_key: str, **fields: Any) -> OccurrenceOverride:
        return OccurrenceOverride.model_validate({"event_id": event_id, "date_key": date_key, **fields})

    return _make


@pytest.fixture
def january_2025_window() -> DateWindow:
    """2025-01-15 through 2025-02-14."""
    return DateWindow("2025-01-15", "2025-02-14")
