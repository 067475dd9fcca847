"""Classify an event definition into a schedule pattern.

Two encodings of "nth weekday of the month" coexist in stored events: a
structured token (``FREQ=MONTHLY;BYDAY=2TU``) and a legacy bare ordinal word
(``"2nd"``) stored beside a separate ``day_of_week``. Both are parsed here and
feed the same :class:`MonthlyOrdinal` variant, so nothing downstream needs to
know which encoding an event used.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import ClassVar, Optional, Union

from ..core.exceptions import RecurrenceRuleParseError
from ..core.timezone_utils import is_valid_date_key
from .models import EventDefinition

logger = logging.getLogger(__name__)

DAY_NAME_TO_INDEX: dict[str, int] = {
    "sunday": 0,
    "monday": 1,
    "tuesday": 2,
    "wednesday": 3,
    "thursday": 4,
    "friday": 5,
    "saturday": 6,
}

DAY_ABBREV_TO_INDEX: dict[str, int] = {
    "SU": 0,
    "MO": 1,
    "TU": 2,
    "WE": 3,
    "TH": 4,
    "FR": 5,
    "SA": 6,
}

# Ordinal words stored in the legacy recurrence_rule column
LEGACY_ORDINAL_TO_NUMBER: dict[str, int] = {
    "1st": 1,
    "2nd": 2,
    "3rd": 3,
    "4th": 4,
    "first": 1,
    "second": 2,
    "third": 3,
    "fourth": 4,
    "last": -1,
}

# Ordinals that exist in stored data but that this engine does not expand
UNSUPPORTED_ORDINALS = frozenset({"5th", "fifth"})

SUPPORTED_ORDINALS = frozenset({1, 2, 3, 4, -1})

_BYDAY_RE = re.compile(r"^([+-]?\d{1,2})?(SU|MO|TU|WE|TH|FR|SA)$")
_ORDINAL_WORD_RE = re.compile(r"\b(1st|2nd|3rd|4th|5th|first|second|third|fourth|fifth|last)\b")
_MULTI_SPLIT_RE = re.compile(r"[/&,]|\band\b")


@dataclass(frozen=True)
class OneTime:
    """A single dated happening."""

    date_key: str
    is_confident: ClassVar[bool] = True


@dataclass(frozen=True)
class Weekly:
    """Every week on one weekday (Sunday=0)."""

    weekday: int
    is_confident: ClassVar[bool] = True


@dataclass(frozen=True)
class MonthlyOrdinal:
    """The k-th (or last, k=-1) given weekday of every month.

    ``ordinals`` usually holds one value; "1st & 3rd Thursday" style events
    hold several.
    """

    weekday: int
    ordinals: tuple[int, ...]
    is_confident: ClassVar[bool] = True

    @property
    def ordinal(self) -> int:
        return self.ordinals[0]


@dataclass(frozen=True)
class Unknown:
    """The schedule could not be interpreted."""

    reason: str
    is_confident: ClassVar[bool] = False


Pattern = Union[OneTime, Weekly, MonthlyOrdinal, Unknown]


def weekday_from_name(name: Optional[str]) -> Optional[int]:
    """Resolve a weekday name ("Tuesday", " tue ", "TUESDAY") to 0-6, Sunday=0."""
    if not name:
        return None
    folded = name.strip().casefold()
    if folded in DAY_NAME_TO_INDEX:
        return DAY_NAME_TO_INDEX[folded]
    for full_name, index in DAY_NAME_TO_INDEX.items():
        if len(folded) >= 3 and full_name.startswith(folded):
            return index
    return None


def parse_rrule_token(rule: str) -> dict[str, str]:
    """Parse a structured recurrence token into upper-cased components.

    Args:
        rule: Token such as "FREQ=MONTHLY;BYDAY=2TU" (an "RRULE:" prefix is allowed)

    Returns:
        Mapping of component name to value, e.g. {"FREQ": "MONTHLY", "BYDAY": "2TU"}

    Raises:
        RecurrenceRuleParseError: If the token is empty or not KEY=VALUE pairs
    """
    text = (rule or "").strip()
    if text.upper().startswith("RRULE:"):
        text = text[len("RRULE:") :]
    if not text or "=" not in text:
        raise RecurrenceRuleParseError(f"Not a structured recurrence token: {rule!r}")

    components: dict[str, str] = {}
    for part in text.split(";"):
        part = part.strip()
        if not part:
            continue
        if "=" not in part:
            raise RecurrenceRuleParseError(f"Malformed component {part!r} in {rule!r}")
        key, value = part.split("=", 1)
        key = key.strip().upper()
        if not key:
            raise RecurrenceRuleParseError(f"Empty component name in {rule!r}")
        components[key] = value.strip().upper()
    return components


def parse_byday(value: str) -> list[tuple[Optional[int], int]]:
    """Parse a BYDAY value into (ordinal or None, weekday index) pairs.

    Raises:
        RecurrenceRuleParseError: If any entry is not [+-]N?XX
    """
    result: list[tuple[Optional[int], int]] = []
    for item in value.split(","):
        item = item.strip()
        match = _BYDAY_RE.match(item)
        if not match:
            raise RecurrenceRuleParseError(f"Invalid BYDAY entry {item!r}")
        ordinal = int(match.group(1)) if match.group(1) else None
        result.append((ordinal, DAY_ABBREV_TO_INDEX[match.group(2)]))
    return result


def is_multi_ordinal_rule(rule: Optional[str]) -> bool:
    """Detect legacy multi-ordinal values like "2nd/3rd" or "1st & 3rd"."""
    if not rule:
        return False
    folded = rule.strip().casefold()
    if any(sep in folded for sep in ("/", "&", ",")) or re.search(r"\band\b", folded):
        return True
    return len(_ORDINAL_WORD_RE.findall(folded)) > 1


def parse_multi_ordinal(rule: str) -> Optional[tuple[int, ...]]:
    """Parse "2nd/3rd" style values into a tuple of supported ordinals.

    Returns None if any part is not a supported ordinal word.
    """
    parts = [p.strip() for p in _MULTI_SPLIT_RE.split(rule.strip().casefold())]
    parts = [p for p in parts if p]
    ordinals: list[int] = []
    for part in parts:
        ordinal = LEGACY_ORDINAL_TO_NUMBER.get(part)
        if ordinal is None:
            return None
        if ordinal not in ordinals:
            ordinals.append(ordinal)
    return tuple(ordinals) if ordinals else None


class PatternInterpreter:
    """Classifies event definitions into :data:`Pattern` variants."""

    def interpret(self, event: EventDefinition) -> Pattern:
        """Classify one event definition.

        Recurrence fields always take priority over ``event_date``: the anchor
        is only authoritative for true one-time events, so a weekly series
        carrying a stale anchor is still expanded weekly.

        Args:
            event: The event definition

        Returns:
            OneTime, Weekly, MonthlyOrdinal or Unknown
        """
        has_day = event.day_of_week is not None
        day_index = weekday_from_name(event.day_of_week)
        rule = (event.recurrence_rule or "").strip()

        components: Optional[dict[str, str]] = None
        if "=" in rule:
            try:
                components = parse_rrule_token(rule)
            except RecurrenceRuleParseError as e:
                logger.debug("Event %s has unparseable recurrence_rule: %s", event.id, e)

        # Rule 1: structured ordinal-weekday token
        if components is not None:
            structured = self._interpret_structured(components)
            if isinstance(structured, Unknown):
                return structured
            if isinstance(structured, MonthlyOrdinal):
                if not has_day or day_index == structured.weekday:
                    return structured
                return Unknown(
                    f"recurrence_rule {rule!r} disagrees with day_of_week {event.day_of_week!r}"
                )
        # Rule 2: legacy ordinal word beside day_of_week
        elif rule and has_day:
            legacy = self._interpret_legacy(rule, day_index, event.day_of_week)
            if legacy is not None:
                return legacy

        # Rule 3: weekly on day_of_week
        if has_day:
            if day_index is None:
                return Unknown(f"unrecognized day_of_week {event.day_of_week!r}")
            return Weekly(day_index)

        if components is not None:
            weekly = self._weekly_from_token(components)
            if weekly is not None:
                return weekly

        # Rule 4: one-time on the anchor date
        if event.event_date is not None:
            if is_valid_date_key(event.event_date):
                return OneTime(event.event_date)
            return Unknown(f"invalid event_date {event.event_date!r}")

        return Unknown("no schedule fields")

    def _interpret_structured(self, components: dict[str, str]) -> Optional[Pattern]:
        """MonthlyOrdinal for FREQ=MONTHLY ordinal BYDAY tokens, Unknown if unsupported."""
        if components.get("FREQ") != "MONTHLY" or not components.get("BYDAY"):
            return None
        try:
            byday = parse_byday(components["BYDAY"])
        except RecurrenceRuleParseError as e:
            return Unknown(str(e))

        ordinal_entries = [(o, d) for o, d in byday if o is not None]
        if not ordinal_entries:
            return None
        if len(ordinal_entries) != len(byday):
            return Unknown(f"BYDAY={components['BYDAY']} mixes ordinal and plain weekdays")

        weekdays = {d for _, d in ordinal_entries}
        if len(weekdays) != 1:
            return Unknown(f"BYDAY={components['BYDAY']} spans more than one weekday")

        ordinals: list[int] = []
        for ordinal, _ in ordinal_entries:
            if ordinal not in SUPPORTED_ORDINALS:
                return Unknown(f"unsupported ordinal {ordinal} in BYDAY={components['BYDAY']}")
            if ordinal not in ordinals:
                ordinals.append(ordinal)
        return MonthlyOrdinal(weekdays.pop(), tuple(ordinals))

    def _weekly_from_token(self, components: dict[str, str]) -> Optional[Weekly]:
        """Weekly for FREQ=WEEKLY;BYDAY=XX tokens stored without day_of_week."""
        if components.get("FREQ") != "WEEKLY" or not components.get("BYDAY"):
            return None
        try:
            byday = parse_byday(components["BYDAY"])
        except RecurrenceRuleParseError:
            return None
        if len(byday) != 1 or byday[0][0] is not None:
            return None
        return Weekly(byday[0][1])

    def _interpret_legacy(
        self, rule: str, day_index: Optional[int], day_name: Optional[str]
    ) -> Optional[Pattern]:
        """MonthlyOrdinal/Unknown for legacy ordinal words, None for weekly-ish values."""
        folded = rule.casefold()

        if is_multi_ordinal_rule(folded):
            ordinals = parse_multi_ordinal(folded)
            if ordinals is None:
                return Unknown(f"unparseable multi-ordinal recurrence_rule {rule!r}")
            if day_index is None:
                return Unknown(f"unrecognized day_of_week {day_name!r}")
            return MonthlyOrdinal(day_index, ordinals)

        if folded in LEGACY_ORDINAL_TO_NUMBER:
            if day_index is None:
                return Unknown(f"unrecognized day_of_week {day_name!r}")
            return MonthlyOrdinal(day_index, (LEGACY_ORDINAL_TO_NUMBER[folded],))

        if folded in UNSUPPORTED_ORDINALS:
            return Unknown(f"unsupported ordinal recurrence_rule {rule!r}")

        # "weekly", "none" and any other non-ordinal value
        return None


_interpreter = PatternInterpreter()


def interpret_event(event: EventDefinition) -> Pattern:
    """Classify one event definition (convenience function)."""
    return _interpreter.interpret(event)
