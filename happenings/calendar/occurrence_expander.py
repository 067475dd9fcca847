"""Expand interpreted schedule patterns into concrete date keys."""

from __future__ import annotations

import datetime
import itertools
import logging
from dataclasses import dataclass

from dateutil.rrule import FR, MO, MONTHLY, SA, SU, TH, TU, WE, WEEKLY, rrule

from ..core.config_manager import DEFAULT_MAX_PER_EVENT
from ..core.exceptions import InvalidDateKeyError, InvalidWindowError
from ..core.timezone_utils import add_days, parse_date_key
from .pattern_interpreter import MonthlyOrdinal, OneTime, Pattern, Unknown, Weekly

logger = logging.getLogger(__name__)

# Indexed Sunday=0, matching weekday_index()
RRULE_WEEKDAYS = (SU, MO, TU, WE, TH, FR, SA)


@dataclass(frozen=True)
class DateWindow:
    """A closed range of date keys, validated on construction."""

    start_key: str
    end_key: str

    def __post_init__(self) -> None:
        try:
            start = parse_date_key(self.start_key)
            end = parse_date_key(self.end_key)
        except InvalidDateKeyError as e:
            raise InvalidWindowError(f"Invalid window boundary: {e}") from e
        if start > end:
            raise InvalidWindowError(
                f"Window start {self.start_key} is after window end {self.end_key}"
            )

    @classmethod
    def starting(cls, start_key: str, days: int) -> DateWindow:
        """Window from ``start_key`` through ``start_key + days``."""
        try:
            end_key = add_days(start_key, days)
        except InvalidDateKeyError as e:
            raise InvalidWindowError(f"Invalid window boundary: {e}") from e
        return cls(start_key, end_key)

    def contains(self, date_key: str) -> bool:
        # Zero-padded ISO keys order lexicographically
        return self.start_key <= date_key <= self.end_key

    def as_datetimes(self) -> tuple[datetime.datetime, datetime.datetime]:
        start = datetime.datetime.combine(parse_date_key(self.start_key), datetime.time())
        end = datetime.datetime.combine(parse_date_key(self.end_key), datetime.time())
        return start, end


class OccurrenceExpander:
    """Produces the bounded, ascending candidate dates for one pattern."""

    def __init__(self, max_per_event: int = DEFAULT_MAX_PER_EVENT):
        """Initialize expander.

        Args:
            max_per_event: Maximum occurrences produced for a single event
        """
        if max_per_event < 1:
            raise ValueError(f"max_per_event must be >= 1, got {max_per_event}")
        self.max_per_event = max_per_event

    def expand(self, pattern: Pattern, window: DateWindow) -> list[str]:
        """Expand a pattern into date keys inside ``window``.

        Args:
            pattern: Interpreted schedule pattern
            window: Closed date window

        Returns:
            Ascending date keys, at most ``max_per_event`` of them. Unknown
            patterns produce none.
        """
        if isinstance(pattern, OneTime):
            # Past anchors inside the window are kept; display policy is the caller's
            return [pattern.date_key] if window.contains(pattern.date_key) else []

        if isinstance(pattern, Weekly):
            rule = self._weekly_rule(pattern, window)
        elif isinstance(pattern, MonthlyOrdinal):
            rule = self._monthly_rule(pattern, window)
        elif isinstance(pattern, Unknown):
            return []
        else:
            raise TypeError(f"Unsupported pattern type: {type(pattern).__name__}")

        # One extra to detect truncation
        occurrences = list(itertools.islice(rule, self.max_per_event + 1))
        if len(occurrences) > self.max_per_event:
            logger.debug(
                "Expansion of %r limited to %d occurrences in %s..%s",
                pattern,
                self.max_per_event,
                window.start_key,
                window.end_key,
            )
            occurrences = occurrences[: self.max_per_event]

        return [occurrence.date().isoformat() for occurrence in occurrences]

    def _weekly_rule(self, pattern: Weekly, window: DateWindow) -> rrule:
        start, end = window.as_datetimes()
        return rrule(
            WEEKLY,
            dtstart=start,
            until=end,
            byweekday=RRULE_WEEKDAYS[pattern.weekday],
        )

    def _monthly_rule(self, pattern: MonthlyOrdinal, window: DateWindow) -> rrule:
        start, end = window.as_datetimes()
        return rrule(
            MONTHLY,
            dtstart=start,
            until=end,
            byweekday=[RRULE_WEEKDAYS[pattern.weekday](n) for n in pattern.ordinals],
        )


def expand_pattern(
    pattern: Pattern, window: DateWindow, max_per_event: int = DEFAULT_MAX_PER_EVENT
) -> list[str]:
    """Expand one pattern inside a window (convenience function)."""
    return OccurrenceExpander(max_per_event).expand(pattern, window)
