"""Relocate rescheduled occurrences into the bucket of their new date.

An entry's ``date_key`` is its identity: links such as "view this occurrence"
and override lookups go through it, so it is never touched. A reschedule only
sets ``display_date`` / ``is_rescheduled`` / ``original_date_key`` and moves
the entry to a different bucket.
"""

from __future__ import annotations

import logging

from ..calendar.models import EventOccurrenceEntry, ExpansionResult
from .override_resolver import rescheduled_date_for
from .timeline_builder import sort_bucket

logger = logging.getLogger(__name__)

GroupedEntries = dict[str, list[EventOccurrenceEntry]]


def apply_reschedules_to_timeline(grouped: GroupedEntries) -> GroupedEntries:
    """Return a new grouping with rescheduled entries moved to their new dates.

    The input grouping and its entries are left unmodified; moved entries are
    copies carrying the display fields. Buckets left empty are dropped and
    keys come back in ascending order. A bucket that receives moved entries is
    re-sorted by start time.

    Args:
        grouped: Date-keyed buckets as produced by the timeline builder

    Returns:
        New date-keyed buckets
    """
    result: GroupedEntries = {}
    touched: set[str] = set()
    moved_count = 0

    for bucket_key, entries in grouped.items():
        for entry in entries:
            moved_to = rescheduled_date_for(entry.date_key, entry.override)
            if moved_to is None:
                result.setdefault(bucket_key, []).append(entry)
                continue

            moved = entry.model_copy(
                update={
                    "display_date": moved_to,
                    "is_rescheduled": True,
                    "original_date_key": entry.date_key,
                }
            )
            result.setdefault(moved_to, []).append(moved)
            touched.add(moved_to)
            moved_count += 1

    if moved_count:
        logger.debug("Rescheduled %d occurrence(s) into %d date bucket(s)", moved_count, len(touched))

    return {
        key: sort_bucket(result[key]) if key in touched else result[key]
        for key in sorted(result)
    }


def apply_reschedules(result: ExpansionResult) -> ExpansionResult:
    """Return a copy of a built timeline with reschedules applied."""
    return result.model_copy(
        update={"grouped_events": apply_reschedules_to_timeline(result.grouped_events)}
    )
