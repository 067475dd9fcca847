"""Read-only projections of occurrence entries for map and digest consumers.

Projections read identity (``date_key``), display date and override state
straight from :class:`EventOccurrenceEntry`; they never recompute them, so
there is one source of truth for reschedule and cancellation semantics.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from ..calendar.models import EventDefinition, EventOccurrenceEntry, ExpansionResult
from ..core.timezone_utils import MONTH_NAMES, day_name_from_date_key, format_date_key_short, parse_date_key
from .override_resolver import ALLOWED_OVERRIDE_FIELDS

logger = logging.getLogger(__name__)

MAX_MAP_PINS = 500

# Cap on per-entry "excluded from map" log lines
_MAX_EXCLUSION_LOGS = 10


@dataclass
class MapPinEvent:
    """One occurrence shown inside a venue pin."""

    event_id: str
    event_slug: str
    title: str
    date_key: str
    display_date: str
    start_time: Optional[str]
    href: str
    is_cancelled: bool
    is_rescheduled: bool


@dataclass
class MapPin:
    """One venue on the map with the occurrences held there."""

    venue_id: str
    latitude: float
    longitude: float
    venue_name: str
    venue_slug: Optional[str]
    events: list[MapPinEvent] = field(default_factory=list)


@dataclass
class MapPinResult:
    pins: list[MapPin]
    excluded_missing_coords: int
    excluded_online_only: int
    limit_exceeded: bool
    total_processed: int


@dataclass
class DigestLine:
    event_id: str
    title: str
    date_key: str
    display_date: str
    start_time: Optional[str]
    venue_name: Optional[str]
    href: str
    is_rescheduled: bool


@dataclass
class Digest:
    """Timeline projected into per-day digest lines."""

    by_date: dict[str, list[DigestLine]]
    total_count: int
    venue_count: int


def _event_field(event: EventDefinition, name: str) -> Any:
    """Read a declared or pass-through field from an event."""
    if name in type(event).model_fields:
        return getattr(event, name)
    return (event.model_extra or {}).get(name)


def _occurrence_field(entry: EventOccurrenceEntry, name: str) -> Any:
    """Read a field as it applies to this occurrence, override patch first."""
    patch = entry.override.override_patch if entry.override else None
    if patch and name in ALLOWED_OVERRIDE_FIELDS and patch.get(name) is not None:
        return patch[name]
    return _event_field(entry.event, name)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def format_time_12h(time_value: Optional[str]) -> Optional[str]:
    """"19:00" or "19:00:00" -> "7:00 PM"; unparseable values pass through."""
    if not time_value:
        return None
    parts = time_value.split(":")
    try:
        hours = int(parts[0])
        minutes = parts[1][:2]
    except (ValueError, IndexError):
        return time_value
    suffix = "PM" if hours >= 12 else "AM"
    return f"{hours % 12 or 12}:{minutes} {suffix}"


def format_day_header(date_key: str) -> str:
    """E.g. "2025-01-27" -> "Monday, January 27"."""
    d = parse_date_key(date_key)
    return f"{day_name_from_date_key(date_key)}, {MONTH_NAMES[d.month - 1]} {d.day}"


def occurrence_href(entry: EventOccurrenceEntry) -> str:
    """Link to an occurrence, always through its identity date."""
    slug = _event_field(entry.event, "slug") or entry.event.id
    return f"/events/{slug}?date={entry.date_key}"


def _resolve_location(
    entry: EventOccurrenceEntry,
    override_venues: Optional[Mapping[str, Mapping[str, Any]]],
) -> Optional[tuple[str, float, float, str, Optional[str]]]:
    """Coordinates for an entry: override venue, then event venue, then custom location."""
    event = entry.event
    patch = entry.override.override_patch if entry.override else None

    override_venue_id = patch.get("venue_id") if patch else None
    if override_venue_id and override_venues:
        venue = override_venues.get(override_venue_id)
        if venue and _is_number(venue.get("latitude")) and _is_number(venue.get("longitude")):
            return (
                str(override_venue_id),
                float(venue["latitude"]),
                float(venue["longitude"]),
                venue.get("name") or "Venue",
                venue.get("slug"),
            )

    venue = _event_field(event, "venue")
    if isinstance(venue, Mapping) and _is_number(venue.get("latitude")) and _is_number(
        venue.get("longitude")
    ):
        return (
            str(venue.get("id")),
            float(venue["latitude"]),
            float(venue["longitude"]),
            venue.get("name") or "Venue",
            venue.get("slug"),
        )

    latitude = _event_field(event, "custom_latitude")
    longitude = _event_field(event, "custom_longitude")
    if _is_number(latitude) and _is_number(longitude):
        city = _event_field(event, "custom_city")
        state = _event_field(event, "custom_state")
        name = _event_field(event, "custom_location_name") or (
            f"{city}, {state}" if city and state else "Custom Location"
        )
        return (f"custom-{event.id}-{entry.date_key}", float(latitude), float(longitude), name, None)

    return None


def to_map_pins(
    entries: Iterable[EventOccurrenceEntry],
    max_pins: int = MAX_MAP_PINS,
    override_venues: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> MapPinResult:
    """Group occurrence entries into one pin per venue.

    Online-only entries and entries without coordinates are counted and
    excluded. If more than ``max_pins`` venues remain, no pins are returned
    and ``limit_exceeded`` is set so the caller can fall back to a list.

    Args:
        entries: Occurrence entries, typically from a re-grouped timeline
        max_pins: Maximum venues before giving up on the map
        override_venues: Venue records for venue ids found in override patches

    Returns:
        MapPinResult
    """
    pins: dict[str, MapPin] = {}
    excluded_missing_coords = 0
    excluded_online_only = 0
    total_processed = 0

    for entry in entries:
        total_processed += 1
        event = entry.event

        if _occurrence_field(entry, "location_mode") == "online":
            excluded_online_only += 1
            continue

        location = _resolve_location(entry, override_venues)
        if location is None:
            excluded_missing_coords += 1
            if excluded_missing_coords <= _MAX_EXCLUSION_LOGS:
                logger.warning(
                    "Event %r (%s) excluded from map: no coordinates available",
                    _event_field(event, "title"),
                    event.id,
                )
            continue

        venue_id, latitude, longitude, venue_name, venue_slug = location
        pin = pins.get(venue_id)
        if pin is None:
            pin = MapPin(venue_id, latitude, longitude, venue_name, venue_slug)
            pins[venue_id] = pin

        pin.events.append(
            MapPinEvent(
                event_id=event.id,
                event_slug=_event_field(event, "slug") or event.id,
                title=_occurrence_field(entry, "title") or "Untitled Event",
                date_key=entry.date_key,
                display_date=format_date_key_short(entry.effective_display_date),
                start_time=format_time_12h(entry.effective_start_time),
                href=occurrence_href(entry),
                is_cancelled=entry.is_cancelled,
                is_rescheduled=entry.is_rescheduled,
            )
        )

    for pin in pins.values():
        # Python's sort is stable, so equal dates keep entry order
        pin.events.sort(key=lambda e: e.date_key)

    limit_exceeded = len(pins) > max_pins
    if limit_exceeded:
        logger.info("Map pin limit exceeded: %d venues > %d", len(pins), max_pins)

    return MapPinResult(
        pins=[] if limit_exceeded else list(pins.values()),
        excluded_missing_coords=excluded_missing_coords,
        excluded_online_only=excluded_online_only,
        limit_exceeded=limit_exceeded,
        total_processed=total_processed,
    )


def _patched_venue_id(entry: EventOccurrenceEntry) -> Optional[str]:
    patch = entry.override.override_patch if entry.override else None
    venue_id = patch.get("venue_id") if patch else None
    return str(venue_id) if venue_id else None


def _venue_key(entry: EventOccurrenceEntry) -> Optional[str]:
    patched = _patched_venue_id(entry)
    if patched:
        return patched
    venue = _event_field(entry.event, "venue")
    if isinstance(venue, Mapping) and venue.get("id"):
        return str(venue["id"])
    venue_id = _event_field(entry.event, "venue_id")
    return str(venue_id) if venue_id else None


def _venue_name(
    entry: EventOccurrenceEntry,
    override_venues: Optional[Mapping[str, Mapping[str, Any]]],
) -> Optional[str]:
    patched = _patched_venue_id(entry)
    if patched:
        venue = (override_venues or {}).get(patched)
    else:
        venue = _event_field(entry.event, "venue")
    return venue.get("name") if isinstance(venue, Mapping) else None


def build_digest(
    result: ExpansionResult,
    override_venues: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> Digest:
    """Project a (re-grouped) timeline into digest lines per display date.

    Cancelled occurrences are already outside ``grouped_events`` and so never
    reach a digest. Title and venue are read as the occurrence sees them, so a
    patched ``venue_id`` counts toward ``venue_count`` in place of the event's.

    Args:
        result: Timeline, typically after reschedule re-grouping
        override_venues: Venue records for venue ids found in override patches
    """
    by_date: dict[str, list[DigestLine]] = {}
    venues: set[str] = set()
    total = 0

    for bucket_key, entries in result.grouped_events.items():
        lines = by_date.setdefault(bucket_key, [])
        for entry in entries:
            event = entry.event
            lines.append(
                DigestLine(
                    event_id=event.id,
                    title=_occurrence_field(entry, "title") or "Untitled Event",
                    date_key=entry.date_key,
                    display_date=format_day_header(bucket_key),
                    start_time=format_time_12h(entry.effective_start_time),
                    venue_name=_venue_name(entry, override_venues),
                    href=occurrence_href(entry),
                    is_rescheduled=entry.is_rescheduled,
                )
            )
            venue_key = _venue_key(entry)
            if venue_key:
                venues.add(venue_key)
            total += 1

    return Digest(by_date=by_date, total_count=total, venue_count=len(venues))
