"""Unit tests for happenings.calendar.pattern_interpreter.

Both encodings of "nth weekday of the month" must produce the same
MonthlyOrdinal, and anything the interpreter cannot understand must degrade
to Unknown instead of raising.
"""

import pytest

from happenings.calendar.models import EventDefinition
from happenings.calendar.pattern_interpreter import (
    MonthlyOrdinal,
    OneTime,
    PatternInterpreter,
    Unknown,
    Weekly,
    interpret_event,
    is_multi_ordinal_rule,
    parse_byday,
    parse_multi_ordinal,
    parse_rrule_token,
    weekday_from_name,
)
from happenings.core.exceptions import RecurrenceRuleParseError

pytestmark = pytest.mark.unit


def _event(**fields) -> EventDefinition:
    fields.setdefault("id", "e1")
    return EventDefinition.model_validate(fields)


class TestParsingHelpers:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [("Tuesday", 2), ("tuesday", 2), (" TUESDAY ", 2), ("tue", 2), ("Sun", 0), ("Tu", None), ("Funday", None), (None, None)],
    )
    def test_weekday_from_name(self, name, expected):
        assert weekday_from_name(name) == expected

    def test_parse_rrule_token(self):
        assert parse_rrule_token("RRULE:freq=monthly;byday=2tu") == {"FREQ": "MONTHLY", "BYDAY": "2TU"}

    @pytest.mark.parametrize("rule", ["", "weekly", "FREQ=MONTHLY;BYDAY", "=x"])
    def test_parse_rrule_token_rejects_malformed(self, rule):
        with pytest.raises(RecurrenceRuleParseError):
            parse_rrule_token(rule)

    def test_parse_byday(self):
        assert parse_byday("2TU,-1TH,WE") == [(2, 2), (-1, 4), (None, 3)]

    def test_parse_byday_rejects_garbage(self):
        with pytest.raises(RecurrenceRuleParseError):
            parse_byday("2XX")

    @pytest.mark.parametrize(
        ("rule", "expected"),
        [("2nd/3rd", True), ("1st & 3rd", True), ("first and third", True), ("2nd", False), ("weekly", False), (None, False)],
    )
    def test_is_multi_ordinal_rule(self, rule, expected):
        assert is_multi_ordinal_rule(rule) is expected

    @pytest.mark.parametrize(
        ("rule", "expected"),
        [("2nd/3rd", (2, 3)), ("1st & 3rd", (1, 3)), ("1st, 3rd", (1, 3)), ("first and last", (1, -1)), ("2nd/2nd", (2,)), ("2nd/5th", None), ("2nd/often", None)],
    )
    def test_parse_multi_ordinal(self, rule, expected):
        assert parse_multi_ordinal(rule) == expected


class TestOneTimeAndWeekly:
    def setup_method(self):
        self.interpreter = PatternInterpreter()

    def test_plain_date_is_one_time(self):
        assert self.interpreter.interpret(_event(event_date="2025-01-20")) == OneTime("2025-01-20")

    def test_recurrence_none_with_date_is_one_time(self):
        assert self.interpreter.interpret(_event(event_date="2025-01-20", recurrence_rule="none")) == OneTime(
            "2025-01-20"
        )

    @pytest.mark.parametrize("rule", [None, "weekly", "none", "every week", "biweekly-ish"])
    def test_day_of_week_is_weekly(self, rule):
        assert self.interpreter.interpret(_event(day_of_week="Wednesday", recurrence_rule=rule)) == Weekly(3)

    def test_weekly_ignores_stale_anchor(self):
        """A stale anchor never overrides the weekly pattern."""
        event = _event(day_of_week="Thursday", event_date="2024-06-06")

        assert self.interpreter.interpret(event) == Weekly(4)

    def test_structured_weekly_without_day_of_week(self):
        assert self.interpreter.interpret(_event(recurrence_rule="FREQ=WEEKLY;BYDAY=FR")) == Weekly(5)

    def test_unrecognized_day_is_unknown(self):
        pattern = self.interpreter.interpret(_event(day_of_week="Funday"))

        assert isinstance(pattern, Unknown)
        assert "Funday" in pattern.reason

    def test_no_fields_is_unknown(self):
        assert self.interpreter.interpret(_event()) == Unknown("no schedule fields")

    def test_invalid_event_date_is_unknown(self):
        assert isinstance(self.interpreter.interpret(_event(event_date="2025-02-30")), Unknown)


class TestMonthlyOrdinal:
    def setup_method(self):
        self.interpreter = PatternInterpreter()

    @pytest.mark.parametrize(
        "event_fields",
        [
            {"recurrence_rule": "FREQ=MONTHLY;BYDAY=2TU"},
            {"recurrence_rule": "FREQ=MONTHLY;BYDAY=2TU", "day_of_week": "Tuesday"},
            {"recurrence_rule": "2nd", "day_of_week": "Tuesday"},
            {"recurrence_rule": "second", "day_of_week": "tuesday"},
            {"recurrence_rule": "2nd", "day_of_week": "Tuesday", "event_date": "2023-01-01"},
        ],
    )
    def test_both_encodings_agree(self, event_fields):
        assert self.interpreter.interpret(_event(**event_fields)) == MonthlyOrdinal(2, (2,))

    @pytest.mark.parametrize(("rule", "ordinal"), [("last", -1), ("FREQ=MONTHLY;BYDAY=-1TH", -1), ("4th", 4)])
    def test_last_and_fourth(self, rule, ordinal):
        pattern = self.interpreter.interpret(_event(recurrence_rule=rule, day_of_week="Thursday"))

        assert pattern == MonthlyOrdinal(4, (ordinal,))
        assert pattern.ordinal == ordinal

    def test_multi_ordinal_legacy(self):
        pattern = self.interpreter.interpret(_event(recurrence_rule="1st & 3rd", day_of_week="Thursday"))

        assert pattern == MonthlyOrdinal(4, (1, 3))

    def test_multi_ordinal_structured(self):
        pattern = self.interpreter.interpret(_event(recurrence_rule="FREQ=MONTHLY;BYDAY=1TH,3TH"))

        assert pattern == MonthlyOrdinal(4, (1, 3))

    @pytest.mark.parametrize(
        "event_fields",
        [
            {"recurrence_rule": "5th", "day_of_week": "Friday"},
            {"recurrence_rule": "fifth", "day_of_week": "Friday"},
            {"recurrence_rule": "FREQ=MONTHLY;BYDAY=5FR"},
            {"recurrence_rule": "FREQ=MONTHLY;BYDAY=2TU", "day_of_week": "Wednesday"},
            {"recurrence_rule": "FREQ=MONTHLY;BYDAY=2TU,3WE"},
            {"recurrence_rule": "FREQ=MONTHLY;BYDAY=2TU,WE"},
            {"recurrence_rule": "FREQ=MONTHLY;BYDAY=2XX"},
            {"recurrence_rule": "2nd/often", "day_of_week": "Tuesday"},
            {"recurrence_rule": "2nd", "day_of_week": "Funday"},
        ],
    )
    def test_unsupported_shapes_are_unknown(self, event_fields):
        pattern = self.interpreter.interpret(_event(**event_fields))

        assert isinstance(pattern, Unknown)
        assert pattern.is_confident is False

    def test_legacy_ordinal_without_day_uses_anchor(self):
        assert self.interpreter.interpret(_event(recurrence_rule="2nd", event_date="2025-03-11")) == OneTime(
            "2025-03-11"
        )

    def test_confidence_flags(self):
        assert MonthlyOrdinal(2, (2,)).is_confident
        assert Weekly(1).is_confident
        assert OneTime("2025-01-01").is_confident


def test_interpret_event_convenience():
    assert interpret_event(_event(day_of_week="Monday")) == Weekly(1)
