"""Unit tests for happenings.domain.next_occurrence."""

import pytest

from happenings.domain.next_occurrence import (
    NEXT_OCCURRENCE_LOOKAHEAD_DAYS,
    NextOccurrence,
    compute_next_occurrence,
    compute_occurrences_for_events,
    group_events_by_next_occurrence,
)

pytestmark = pytest.mark.unit

TODAY = "2025-01-15"  # Wednesday


class TestComputeNextOccurrence:
    def test_weekly_today(self):
        result = compute_next_occurrence({"id": "e", "day_of_week": "Wednesday"}, TODAY)

        assert result == NextOccurrence("2025-01-15", True, False, True)

    def test_weekly_tomorrow(self):
        result = compute_next_occurrence({"id": "e", "day_of_week": "Thursday"}, TODAY)

        assert result.date_key == "2025-01-16"
        assert result.is_tomorrow

    def test_monthly_rolls_to_next_month(self):
        """The 2nd Tuesday of January 2025 was the 14th."""
        result = compute_next_occurrence({"id": "e", "day_of_week": "Tuesday", "recurrence_rule": "2nd"}, TODAY)

        assert result.date_key == "2025-02-11"

    def test_one_time_reports_anchor_even_if_past(self):
        result = compute_next_occurrence({"id": "e", "event_date": "2024-12-31"}, TODAY)

        assert result == NextOccurrence("2024-12-31", False, False, True)

    def test_unknown_defaults_to_today_unconfident(self):
        result = compute_next_occurrence({"id": "e", "recurrence_rule": "5th", "day_of_week": "Friday"}, TODAY)

        assert result.date_key == TODAY
        assert result.is_confident is False

    def test_uses_civil_today_by_default(self, monkeypatch):
        monkeypatch.setenv("HAPPENINGS_TEST_TIME", "2025-01-16T05:00:00Z")  # Jan 15 evening in Denver

        result = compute_next_occurrence({"id": "e", "day_of_week": "Wednesday"})

        assert result.is_today
        assert result.date_key == "2025-01-15"

    def test_lookahead_reaches_every_supported_ordinal(self):
        assert NEXT_OCCURRENCE_LOOKAHEAD_DAYS >= 62


class TestGrouping:
    def test_pairs_share_one_today(self):
        pairs = compute_occurrences_for_events(
            [{"id": "a", "day_of_week": "Friday"}, {"id": "b", "event_date": "2025-01-20"}], TODAY
        )

        assert [(event.id, occ.date_key) for event, occ in pairs] == [("a", "2025-01-17"), ("b", "2025-01-20")]

    def test_group_by_next_occurrence_sorted(self):
        groups = group_events_by_next_occurrence(
            [
                {"id": "sat", "day_of_week": "Saturday"},
                {"id": "wed", "day_of_week": "Wednesday"},
                {"id": "wed-too", "event_date": "2025-01-15"},
            ],
            TODAY,
        )

        assert list(groups) == ["2025-01-15", "2025-01-18"]
        assert [e.id for e in groups["2025-01-15"]] == ["wed", "wed-too"]

    def test_invalid_record_is_paired_unconfident(self, caplog):
        pairs = compute_occurrences_for_events(
            [{"id": "bad", "event_date": 20250120}, {"id": "ok", "day_of_week": "Friday"}], TODAY
        )

        bad_event, bad_occ = pairs[0]
        assert bad_event.id == "bad"
        assert bad_occ == NextOccurrence(TODAY, True, False, False)
        assert pairs[1][1].date_key == "2025-01-17"
        assert "invalid record shape" in caplog.text
