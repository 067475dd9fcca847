"""Next-occurrence lookup for single events, used by detail pages and routing."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError

from ..calendar.models import EventDefinition
from ..calendar.occurrence_expander import DateWindow, OccurrenceExpander
from ..calendar.pattern_interpreter import OneTime, PatternInterpreter, Unknown
from ..core.timezone_utils import add_days
from ..core.timezone_utils import today as civil_today
from .timeline_builder import EventInput, coerce_event, unvalidated_event

logger = logging.getLogger(__name__)

# Long enough to reach any "nth weekday" in the following months
NEXT_OCCURRENCE_LOOKAHEAD_DAYS = 92


@dataclass(frozen=True)
class NextOccurrence:
    date_key: str
    is_today: bool
    is_tomorrow: bool
    is_confident: bool


def _result(date_key: str, today_key: str, is_confident: bool) -> NextOccurrence:
    return NextOccurrence(
        date_key=date_key,
        is_today=date_key == today_key,
        is_tomorrow=date_key == add_days(today_key, 1),
        is_confident=is_confident,
    )


def compute_next_occurrence(
    event: EventInput,
    today_key: Optional[str] = None,
    interpreter: Optional[PatternInterpreter] = None,
) -> NextOccurrence:
    """Compute the next date an event happens on or after today.

    One-time events report their anchor date even when it has passed.
    Unknown schedules report today with ``is_confident=False``.
    """
    event = coerce_event(event)
    today_key = today_key or civil_today()
    pattern = (interpreter or PatternInterpreter()).interpret(event)

    if isinstance(pattern, OneTime):
        return _result(pattern.date_key, today_key, True)
    if isinstance(pattern, Unknown):
        return _result(today_key, today_key, False)

    window = DateWindow.starting(today_key, NEXT_OCCURRENCE_LOOKAHEAD_DAYS)
    dates = OccurrenceExpander(max_per_event=1).expand(pattern, window)
    if not dates:
        logger.warning(
            "No occurrence of %r within %d days for event %s",
            pattern,
            NEXT_OCCURRENCE_LOOKAHEAD_DAYS,
            event.id,
        )
        return _result(today_key, today_key, False)
    return _result(dates[0], today_key, True)


def compute_occurrences_for_events(
    events: Iterable[EventInput], today_key: Optional[str] = None
) -> list[tuple[EventDefinition, NextOccurrence]]:
    """Pair each event with its next occurrence using one shared today."""
    today_key = today_key or civil_today()
    interpreter = PatternInterpreter()
    pairs = []
    for raw in events:
        try:
            event = coerce_event(raw)
        except ValidationError as e:
            pairs.append((unvalidated_event(raw, e), _result(today_key, today_key, False)))
            continue
        pairs.append((event, compute_next_occurrence(event, today_key, interpreter)))
    return pairs


def group_events_by_next_occurrence(
    events: Iterable[EventInput], today_key: Optional[str] = None
) -> dict[str, list[EventDefinition]]:
    """Group events by their next occurrence date, keys ascending."""
    groups: dict[str, list[EventDefinition]] = {}
    for event, occurrence in compute_occurrences_for_events(events, today_key):
        groups.setdefault(occurrence.date_key, []).append(event)
    return {key: groups[key] for key in sorted(groups)}
