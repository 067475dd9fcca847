"""happenings - recurring community event occurrence engine.

Turns stored event definitions (one-time dates, weekly patterns and
"nth weekday of the month" patterns in either a structured or a legacy
encoding) plus per-occurrence overrides into a date-grouped timeline.
"""

__version__ = "0.1.0"

from .calendar.models import (
    EventDefinition,
    EventOccurrenceEntry,
    ExpansionMetrics,
    ExpansionResult,
    OccurrenceOverride,
    OccurrenceStatus,
)
from .calendar.occurrence_expander import DateWindow, OccurrenceExpander, expand_pattern
from .calendar.pattern_interpreter import (
    MonthlyOrdinal,
    OneTime,
    Pattern,
    PatternInterpreter,
    Unknown,
    Weekly,
    interpret_event,
)
from .core.config_manager import ConfigManager, ExpansionConfig, UnknownPatternPolicy
from .core.exceptions import (
    ConfigurationError,
    HappeningsError,
    InvalidDateKeyError,
    InvalidWindowError,
    RecurrenceRuleParseError,
)
from .core.timezone_utils import (
    CivilCalendar,
    add_days,
    date_key_from_instant,
    format_date_group_header,
    is_valid_date_key,
    today,
    weekday_index,
)
from .domain.next_occurrence import (
    NextOccurrence,
    compute_next_occurrence,
    group_events_by_next_occurrence,
)
from .domain.override_resolver import (
    apply_occurrence_override,
    get_display_date,
    index_overrides,
)
from .domain.projections import build_digest, to_map_pins
from .domain.reschedule import apply_reschedules, apply_reschedules_to_timeline
from .domain.timeline_builder import TimelineBuilder, expand_and_group_events

__all__ = [
    "CivilCalendar",
    "ConfigManager",
    "ConfigurationError",
    "DateWindow",
    "EventDefinition",
    "EventOccurrenceEntry",
    "ExpansionConfig",
    "ExpansionMetrics",
    "ExpansionResult",
    "HappeningsError",
    "InvalidDateKeyError",
    "InvalidWindowError",
    "MonthlyOrdinal",
    "NextOccurrence",
    "OccurrenceExpander",
    "OccurrenceOverride",
    "OccurrenceStatus",
    "OneTime",
    "Pattern",
    "PatternInterpreter",
    "RecurrenceRuleParseError",
    "TimelineBuilder",
    "Unknown",
    "UnknownPatternPolicy",
    "Weekly",
    "__version__",
    "add_days",
    "apply_occurrence_override",
    "apply_reschedules",
    "apply_reschedules_to_timeline",
    "build_digest",
    "compute_next_occurrence",
    "date_key_from_instant",
    "expand_and_group_events",
    "expand_pattern",
    "format_date_group_header",
    "get_display_date",
    "group_events_by_next_occurrence",
    "index_overrides",
    "interpret_event",
    "is_valid_date_key",
    "to_map_pins",
    "today",
    "weekday_index",
]
