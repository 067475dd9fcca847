"""Expand many events into a date-grouped timeline with caps and metrics.

Caps are local and auditable: at most ``max_events`` events are considered
(the rest are counted in ``events_skipped``), and each admitted event yields
at most ``max_per_event`` occurrences. There is no global occurrence cap, so
an admitted event is never partially dropped because earlier events were busy.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional, Union

from pydantic import ValidationError

from ..calendar.models import (
    EventDefinition,
    EventOccurrenceEntry,
    ExpansionMetrics,
    ExpansionResult,
    OccurrenceOverride,
)
from ..calendar.occurrence_expander import DateWindow, OccurrenceExpander
from ..calendar.pattern_interpreter import Pattern, PatternInterpreter, Unknown
from ..core.config_manager import ExpansionConfig, UnknownPatternPolicy
from ..core.timezone_utils import today as civil_today
from .override_resolver import OverrideIndex, index_overrides, resolve_occurrence

logger = logging.getLogger(__name__)

EventInput = Union[EventDefinition, Mapping[str, Any]]
OverrideInput = Union[OccurrenceOverride, Mapping[str, Any]]

# Entries without a start time sort after every timed entry
_NO_TIME_SORT_KEY = (1, "")


def coerce_event(raw: EventInput) -> EventDefinition:
    """Accept an EventDefinition or a raw record from the data layer."""
    return raw if isinstance(raw, EventDefinition) else EventDefinition.model_validate(raw)


def unvalidated_event(raw: Any, error: ValidationError) -> EventDefinition:
    """Wrap a record that failed validation so it can be reported as unknown.

    The record's fields are kept as given; its schedule is never interpreted.
    """
    values = dict(raw) if isinstance(raw, Mapping) else {}
    values["id"] = str(values.get("id", ""))
    logger.warning(
        "Event %s has an invalid record shape (%d validation error(s)); treating as unknown",
        values["id"] or "<no id>",
        error.error_count(),
    )
    return EventDefinition.model_construct(**values)


def _time_sort_key(entry: EventOccurrenceEntry) -> tuple[int, str]:
    start_time = entry.effective_start_time
    if not start_time:
        return _NO_TIME_SORT_KEY
    return (0, start_time)


def sort_bucket(entries: list[EventOccurrenceEntry]) -> list[EventOccurrenceEntry]:
    """Order a bucket by start time; untimed last, ties stable by input order."""
    return sorted(entries, key=_time_sort_key)


class TimelineBuilder:
    """Builds an :class:`ExpansionResult` from event and override records."""

    def __init__(
        self,
        config: Optional[ExpansionConfig] = None,
        interpreter: Optional[PatternInterpreter] = None,
    ):
        """Initialize builder.

        Args:
            config: Caps and unknown-pattern policy (defaults to
                ExpansionConfig.from_env(), so HAPPENINGS_* settings apply)
            interpreter: Pattern interpreter (defaults to a fresh one)
        """
        self.config = config or ExpansionConfig.from_env()
        self.interpreter = interpreter or PatternInterpreter()
        self.expander = OccurrenceExpander(self.config.max_per_event)

    def default_window(self, today_key: Optional[str] = None) -> DateWindow:
        """Window from today through today + window_days."""
        return DateWindow.starting(today_key or civil_today(), self.config.window_days)

    def build(
        self,
        events: Iterable[EventInput],
        window: Optional[DateWindow] = None,
        overrides: Union[Iterable[OverrideInput], OverrideIndex, None] = None,
        today_key: Optional[str] = None,
    ) -> ExpansionResult:
        """Expand events in input order into a grouped timeline.

        Args:
            events: Event definitions (models or raw records)
            window: Closed date window; defaults to :meth:`default_window`
            overrides: Override rows, or an index from ``index_overrides``
            today_key: Civil "today", used for the default window and for
                SHOW_ON_TODAY placement of unknown events

        Returns:
            ExpansionResult with buckets ascending by date, cancelled
            occurrences ascending by date, unknown events and metrics
        """
        if window is None:
            window = self.default_window(today_key)
        override_index = self._as_index(overrides)

        grouped: dict[str, list[EventOccurrenceEntry]] = {}
        cancelled: list[EventOccurrenceEntry] = []
        unknown_events: list[EventDefinition] = []
        metrics = ExpansionMetrics()

        for raw in events:
            if metrics.events_processed >= self.config.max_events:
                metrics.events_skipped += 1
                continue

            metrics.events_processed += 1
            try:
                event = coerce_event(raw)
            except ValidationError as e:
                event = unvalidated_event(raw, e)
                pattern: Pattern = Unknown("invalid record shape")
            else:
                pattern = self.interpreter.interpret(event)
            if isinstance(pattern, Unknown):
                logger.debug("Event %s has unknown schedule: %s", event.id, pattern.reason)
                unknown_events.append(event)
                if self.config.unknown_policy == UnknownPatternPolicy.SHOW_ON_TODAY:
                    fallback_key = today_key or civil_today()
                    if window.contains(fallback_key):
                        entry = EventOccurrenceEntry(
                            event=event, date_key=fallback_key, is_confident=False
                        )
                        grouped.setdefault(fallback_key, []).append(entry)
                        metrics.total_occurrences += 1
                continue

            overrides_by_date = override_index.get(event.id)
            for date_key in self.expander.expand(pattern, window):
                entry = resolve_occurrence(event, date_key, overrides_by_date)
                metrics.total_occurrences += 1
                if entry.is_cancelled:
                    metrics.cancelled_count += 1
                    cancelled.append(entry)
                else:
                    grouped.setdefault(date_key, []).append(entry)

        if metrics.was_capped:
            logger.info(
                "Timeline capped at %d events; %d skipped",
                self.config.max_events,
                metrics.events_skipped,
            )
        logger.debug(
            "Timeline %s..%s: processed=%d skipped=%d occurrences=%d cancelled=%d unknown=%d",
            window.start_key,
            window.end_key,
            metrics.events_processed,
            metrics.events_skipped,
            metrics.total_occurrences,
            metrics.cancelled_count,
            len(unknown_events),
        )

        return ExpansionResult(
            grouped_events={key: sort_bucket(grouped[key]) for key in sorted(grouped)},
            cancelled_occurrences=sorted(cancelled, key=lambda e: e.date_key),
            unknown_events=unknown_events,
            metrics=metrics,
        )

    @staticmethod
    def _as_index(
        overrides: Union[Iterable[OverrideInput], OverrideIndex, None],
    ) -> OverrideIndex:
        if overrides is None:
            return {}
        if isinstance(overrides, dict):
            return overrides
        return index_overrides(overrides)


def expand_and_group_events(
    events: Iterable[EventInput],
    window: Optional[DateWindow] = None,
    overrides: Union[Iterable[OverrideInput], OverrideIndex, None] = None,
    config: Optional[ExpansionConfig] = None,
    today_key: Optional[str] = None,
) -> ExpansionResult:
    """Build a grouped timeline (convenience function).

    Without an explicit config, caps and policy come from HAPPENINGS_* variables.
    """
    return TimelineBuilder(config).build(events, window, overrides, today_key)
