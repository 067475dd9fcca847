"""Data models for occurrence expansion."""

from __future__ import annotations

import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from ..core.timezone_utils import is_valid_date_key


class OccurrenceStatus(str, Enum):
    """Per-occurrence status stored on an override row."""

    NORMAL = "normal"
    CANCELLED = "cancelled"


class EventDefinition(BaseModel):
    """A happening's schedule pattern plus its pass-through business fields.

    Only the pattern fields are interpreted; everything else (title, venue,
    slug, ...) is kept as an extra field and handed back untouched.
    """

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Event identity")
    event_date: Optional[str] = Field(default=None, description="Anchor or one-time date key")
    day_of_week: Optional[str] = Field(default=None, description="Weekday name, any case")
    recurrence_rule: Optional[str] = Field(
        default=None, description="Structured token, legacy ordinal word, 'weekly' or 'none'"
    )
    start_time: Optional[str] = Field(default=None, description="Within-day ordering only")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """Accept integer ids from the data layer."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("event_date", mode="before")
    @classmethod
    def coerce_event_date(cls, v: Any) -> Any:
        """Accept date/datetime values as returned by database drivers."""
        if isinstance(v, datetime.datetime):
            return v.date().isoformat()
        if isinstance(v, datetime.date):
            return v.isoformat()
        return v

    @field_validator("start_time", mode="before")
    @classmethod
    def coerce_start_time(cls, v: Any) -> Any:
        """Accept time/datetime values, normalized to HH:MM."""
        if isinstance(v, datetime.datetime):
            v = v.time()
        if isinstance(v, datetime.time):
            return v.isoformat(timespec="minutes")
        return v

    @field_validator("event_date", "day_of_week", "recurrence_rule", "start_time", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        """Treat empty or whitespace-only strings as absent."""
        if isinstance(v, str) and not v.strip():
            return None
        return v


class OccurrenceOverride(BaseModel):
    """A per-occurrence exception keyed by (event_id, date_key)."""

    model_config = ConfigDict(extra="allow")

    event_id: str
    date_key: str
    status: OccurrenceStatus = OccurrenceStatus.NORMAL
    override_patch: Optional[dict[str, Any]] = None

    # Legacy per-occurrence columns, predating override_patch
    override_start_time: Optional[str] = None
    override_cover_image_url: Optional[str] = None
    override_notes: Optional[str] = None

    @field_validator("event_id", mode="before")
    @classmethod
    def coerce_event_id(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> Any:
        if v is None:
            return OccurrenceStatus.NORMAL
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @property
    def is_cancelled(self) -> bool:
        return self.status == OccurrenceStatus.CANCELLED

    @property
    def patched_event_date(self) -> Optional[str]:
        """The replacement date from override_patch, if it is a valid date key."""
        if not self.override_patch:
            return None
        value = self.override_patch.get("event_date")
        return value if is_valid_date_key(value) else None

    @property
    def effective_start_time(self) -> Optional[str]:
        """Replacement start time: override_patch wins over the legacy column."""
        if self.override_patch and self.override_patch.get("start_time"):
            return str(self.override_patch["start_time"])
        return self.override_start_time or None


class EventOccurrenceEntry(BaseModel):
    """One concrete occurrence of an event.

    ``date_key`` is the identity date the pattern naturally produces; it is
    used for routing and override lookup and can never be reassigned. A
    reschedule only changes ``display_date``.
    """

    model_config = ConfigDict(validate_assignment=True)

    event: EventDefinition
    date_key: str = Field(..., frozen=True)
    is_confident: bool = True
    override: Optional[OccurrenceOverride] = None
    is_cancelled: bool = False

    # Set by the reschedule re-grouper
    display_date: Optional[str] = None
    is_rescheduled: bool = False
    original_date_key: Optional[str] = None

    @property
    def effective_display_date(self) -> str:
        """The date this entry is shown on."""
        return self.display_date or self.date_key

    @property
    def effective_start_time(self) -> Optional[str]:
        """Override start time when present, else the event's own."""
        if self.override is not None:
            override_time = self.override.effective_start_time
            if override_time:
                return override_time
        return self.event.start_time


class ExpansionMetrics(BaseModel):
    """Counters produced by one timeline build."""

    events_processed: int = 0
    events_skipped: int = 0
    total_occurrences: int = 0
    cancelled_count: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def was_capped(self) -> bool:
        return self.events_skipped > 0


class ExpansionResult(BaseModel):
    """Output of a timeline build."""

    grouped_events: dict[str, list[EventOccurrenceEntry]] = Field(default_factory=dict)
    cancelled_occurrences: list[EventOccurrenceEntry] = Field(default_factory=list)
    unknown_events: list[EventDefinition] = Field(default_factory=list)
    metrics: ExpansionMetrics = Field(default_factory=ExpansionMetrics)

    def iter_entries(self) -> list[EventOccurrenceEntry]:
        """All active entries, in bucket then within-bucket order."""
        return [entry for entries in self.grouped_events.values() for entry in entries]
