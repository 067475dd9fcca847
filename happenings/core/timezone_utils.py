"""Civil calendar utilities for the happenings engine.

Every date the engine reasons about is a *date key*: a ``YYYY-MM-DD`` calendar
date in one fixed civil timezone (the organization's local zone). Instants are
mapped into that zone exactly once, in :func:`date_key_from_instant`; all
other arithmetic works on calendar dates and never on UTC-shifted wall-clock
time, so a late-night UTC instant that is still "yesterday" locally is never
misclassified.
"""

from __future__ import annotations

import datetime
import logging
import os
import re
import zoneinfo
from typing import ClassVar, Union

from dateutil import parser as date_parser

from .exceptions import InvalidDateKeyError

logger = logging.getLogger(__name__)

# Default civil timezone for all date key computation
DEFAULT_CIVIL_TIMEZONE = "America/Denver"

# Sunday-first, matching weekday_index()
WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
WEEKDAY_ABBREVS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

Instant = Union[datetime.datetime, str]


def parse_date_key(date_key: str) -> datetime.date:
    """Parse a strict ``YYYY-MM-DD`` date key into a calendar date.

    Args:
        date_key: Date key string

    Returns:
        The calendar date

    Raises:
        InvalidDateKeyError: If the key is not a string, not zero-padded
            YYYY-MM-DD, or not a real date
    """
    if not isinstance(date_key, str) or not _DATE_KEY_RE.match(date_key):
        raise InvalidDateKeyError(f"Invalid date key {date_key!r}; expected YYYY-MM-DD")
    try:
        return datetime.date.fromisoformat(date_key)
    except ValueError as e:
        raise InvalidDateKeyError(f"Invalid date key {date_key!r}: {e}") from e


def is_valid_date_key(date_key: object) -> bool:
    """Return True if ``date_key`` is a real calendar date in YYYY-MM-DD form."""
    try:
        parse_date_key(date_key)  # type: ignore[arg-type]
    except InvalidDateKeyError:
        return False
    return True


def get_civil_timezone() -> str:
    """Return the configured civil timezone as an IANA identifier.

    Reads ``HAPPENINGS_TIMEZONE``; an unknown zone is logged and replaced by
    :data:`DEFAULT_CIVIL_TIMEZONE`.
    """
    tz_name = os.environ.get("HAPPENINGS_TIMEZONE", "").strip()
    if not tz_name:
        return DEFAULT_CIVIL_TIMEZONE
    try:
        zoneinfo.ZoneInfo(tz_name)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        logger.warning(
            "Unknown HAPPENINGS_TIMEZONE=%r, falling back to %s", tz_name, DEFAULT_CIVIL_TIMEZONE
        )
        return DEFAULT_CIVIL_TIMEZONE
    return tz_name


class TimeProvider:
    """Provides the current instant with test time override support."""

    ENV_VAR: ClassVar[str] = "HAPPENINGS_TEST_TIME"

    def now_utc(self) -> datetime.datetime:
        """Return current UTC time with tzinfo.

        Can be overridden via the HAPPENINGS_TEST_TIME environment variable
        (ISO 8601, e.g. "2025-01-15T23:30:00-07:00"). A naive override is
        taken to be UTC.
        """
        test_time = os.environ.get(self.ENV_VAR)
        if test_time:
            try:
                dt = date_parser.isoparse(test_time)
            except (ValueError, OverflowError) as e:
                logger.warning("Failed to parse %s=%r: %s", self.ENV_VAR, test_time, e)
            else:
                if dt.tzinfo is None:
                    return dt.replace(tzinfo=datetime.timezone.utc)
                return dt.astimezone(datetime.timezone.utc)

        return datetime.datetime.now(datetime.timezone.utc)


class CivilCalendar:
    """Date key arithmetic anchored to a single civil timezone."""

    def __init__(self, tz_name: str | None = None, time_provider: TimeProvider | None = None):
        """Initialize the calendar.

        Args:
            tz_name: IANA timezone; defaults to :func:`get_civil_timezone`
            time_provider: Source of "now"; defaults to a fresh TimeProvider
        """
        self.tz_name = tz_name or get_civil_timezone()
        self.tz = zoneinfo.ZoneInfo(self.tz_name)
        self.time_provider = time_provider or TimeProvider()

    def today(self) -> str:
        """Date key for "now" in the civil timezone."""
        return self.date_key_from_instant(self.time_provider.now_utc())

    def date_key_from_instant(self, instant: Instant) -> str:
        """Map an arbitrary instant to its civil date key.

        Args:
            instant: Aware datetime (any offset), naive datetime (taken as
                UTC), or an ISO 8601 string

        Returns:
            The date key of that instant in the civil timezone
        """
        if isinstance(instant, str):
            try:
                instant = date_parser.isoparse(instant)
            except (ValueError, OverflowError) as e:
                raise InvalidDateKeyError(f"Invalid instant {instant!r}: {e}") from e
        if not isinstance(instant, datetime.datetime):
            raise InvalidDateKeyError(f"Expected datetime or ISO string, got {type(instant).__name__}")
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=datetime.timezone.utc)
        return instant.astimezone(self.tz).date().isoformat()

    @staticmethod
    def add_days(date_key: str, days: int) -> str:
        """Shift a date key by ``days`` calendar days (negative allowed)."""
        return (parse_date_key(date_key) + datetime.timedelta(days=days)).isoformat()

    @staticmethod
    def weekday_index(date_key: str) -> int:
        """Weekday of a date key, 0-6 with Sunday=0."""
        return (parse_date_key(date_key).weekday() + 1) % 7


# Singleton instances for global use
_time_provider = TimeProvider()


def _calendar() -> CivilCalendar:
    # Built per call so HAPPENINGS_TIMEZONE changes are honoured
    return CivilCalendar(time_provider=_time_provider)


def now_utc() -> datetime.datetime:
    """Get current UTC time (convenience function)."""
    return _time_provider.now_utc()


def today() -> str:
    """Get today's date key in the civil timezone (convenience function)."""
    return _calendar().today()


def date_key_from_instant(instant: Instant) -> str:
    """Map an instant to its civil date key (convenience function)."""
    return _calendar().date_key_from_instant(instant)


def add_days(date_key: str, days: int) -> str:
    """Shift a date key by ``days`` calendar days (convenience function)."""
    return CivilCalendar.add_days(date_key, days)


def weekday_index(date_key: str) -> int:
    """Weekday of a date key with Sunday=0 (convenience function)."""
    return CivilCalendar.weekday_index(date_key)


def day_name_from_date_key(date_key: str) -> str:
    """E.g. "2026-01-18" -> "Sunday"."""
    return WEEKDAY_NAMES[weekday_index(date_key)]


def format_date_key_short(date_key: str) -> str:
    """E.g. "2026-01-18" -> "Sun, Jan 18"."""
    d = parse_date_key(date_key)
    return f"{WEEKDAY_ABBREVS[weekday_index(date_key)]}, {MONTH_NAMES[d.month - 1][:3]} {d.day}"


def format_date_key_long(date_key: str) -> str:
    """E.g. "2026-01-18" -> "Sunday, January 18, 2026"."""
    d = parse_date_key(date_key)
    return f"{day_name_from_date_key(date_key)}, {MONTH_NAMES[d.month - 1]} {d.day}, {d.year}"


def format_date_group_header(date_key: str, today_key: str) -> str:
    """Human header for a date bucket: "Today", "Tomorrow" or "Fri, Jan 3"."""
    if date_key == today_key:
        return "Today"
    if date_key == add_days(today_key, 1):
        return "Tomorrow"
    return format_date_key_short(date_key)
