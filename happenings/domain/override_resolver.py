"""Merge per-occurrence overrides (cancel / reschedule / patch) onto occurrences."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Optional, Union

from pydantic import ValidationError

from ..calendar.models import EventDefinition, EventOccurrenceEntry, OccurrenceOverride

logger = logging.getLogger(__name__)

# event_id -> date_key -> override
OverrideIndex = dict[str, dict[str, OccurrenceOverride]]

# Per-occurrence fields an override_patch may replace. Series-level fields
# (recurrence_rule, day_of_week, event_type, ...) and event_date are excluded;
# a patched event_date is a reschedule, handled by the re-grouper.
ALLOWED_OVERRIDE_FIELDS = frozenset(
    {
        "title",
        "description",
        "start_time",
        "end_time",
        "venue_id",
        "location_mode",
        "custom_location_name",
        "custom_address",
        "custom_city",
        "custom_state",
        "online_url",
        "location_notes",
        "capacity",
        "has_timeslots",
        "total_slots",
        "slot_duration_minutes",
        "is_free",
        "cost_label",
        "signup_url",
        "signup_deadline",
        "age_policy",
        "external_url",
        "categories",
        "cover_image_url",
        "host_notes",
        "is_published",
    }
)

# Legacy override column -> event field it replaces
LEGACY_OVERRIDE_COLUMNS = {
    "override_start_time": "start_time",
    "override_cover_image_url": "cover_image_url",
    "override_notes": "host_notes",
}


@dataclass(frozen=True)
class DisplayDate:
    """Where an occurrence is shown, relative to its identity date."""

    display_date: str
    is_rescheduled: bool
    original_date_key: Optional[str] = None


def index_overrides(
    overrides: Iterable[Union[OccurrenceOverride, Mapping[str, Any]]],
) -> OverrideIndex:
    """Index override rows by event id, then date key.

    Later rows for the same (event_id, date_key) replace earlier ones. Rows
    that fail validation are logged and skipped; they never abort the build.

    Args:
        overrides: Override models or raw records from the data layer

    Returns:
        Nested mapping event_id -> date_key -> override
    """
    index: OverrideIndex = {}
    for raw in overrides:
        if isinstance(raw, OccurrenceOverride):
            override = raw
        else:
            try:
                override = OccurrenceOverride.model_validate(raw)
            except ValidationError as e:
                row = raw if isinstance(raw, Mapping) else {}
                logger.warning(
                    "Skipping invalid override for event %s on %s: %d validation error(s)",
                    row.get("event_id"),
                    row.get("date_key"),
                    e.error_count(),
                )
                continue
        by_date = index.setdefault(override.event_id, {})
        if override.date_key in by_date:
            logger.debug(
                "Duplicate override for event %s on %s; keeping the later row",
                override.event_id,
                override.date_key,
            )
        by_date[override.date_key] = override
    return index


def rescheduled_date_for(date_key: str, override: Optional[OccurrenceOverride]) -> Optional[str]:
    """The date an occurrence moves to, or None if it does not move.

    A patched ``event_date`` only counts when it differs from the identity
    date, and never for a cancelled occurrence: cancellation wins.
    """
    if override is None or override.is_cancelled:
        return None
    patched = override.patched_event_date
    if patched is None or patched == date_key:
        return None
    return patched


def get_display_date(date_key: str, override: Optional[OccurrenceOverride] = None) -> DisplayDate:
    """Resolve the display date for an occurrence."""
    moved_to = rescheduled_date_for(date_key, override)
    if moved_to is None:
        return DisplayDate(display_date=date_key, is_rescheduled=False)
    return DisplayDate(display_date=moved_to, is_rescheduled=True, original_date_key=date_key)


def resolve_occurrence(
    event: EventDefinition,
    date_key: str,
    overrides_by_date: Optional[Mapping[str, OccurrenceOverride]] = None,
    is_confident: bool = True,
) -> EventOccurrenceEntry:
    """Annotate a raw occurrence with its override, if any.

    Args:
        event: The originating event definition
        date_key: Identity date produced by the expander
        overrides_by_date: This event's overrides keyed by date_key
        is_confident: Whether the event's pattern was recognized

    Returns:
        Entry with ``override`` set and ``is_cancelled`` derived from it
    """
    override = overrides_by_date.get(date_key) if overrides_by_date else None
    return EventOccurrenceEntry(
        event=event,
        date_key=date_key,
        is_confident=is_confident,
        override=override,
        is_cancelled=override is not None and override.is_cancelled,
    )


def apply_occurrence_override(
    event: EventDefinition, override: Optional[OccurrenceOverride]
) -> EventDefinition:
    """Return the event as it looks on one occurrence.

    Legacy columns are applied first, then allow-listed override_patch keys
    on top. The input event is never mutated.
    """
    if override is None:
        return event

    merged = event.model_dump()

    for column, field_name in LEGACY_OVERRIDE_COLUMNS.items():
        value = getattr(override, column)
        if value:
            merged[field_name] = value

    if override.override_patch:
        for key, value in override.override_patch.items():
            if key in ALLOWED_OVERRIDE_FIELDS:
                merged[key] = value
            elif key != "event_date":
                logger.debug("Ignoring non-overridable patch field %r for event %s", key, event.id)

    return EventDefinition.model_validate(merged)
