"""Tests for recurrence patterns and expansion."""

from datetime import date

import pytest

from crewschedule.domain.models import ShiftEntry, ShiftStatus, Weekday
from crewschedule.domain.recurrence import RecurrencePattern, RecurrenceType, pattern_weekday
from crewschedule.exceptions import InvalidEntryError
from crewschedule.scheduling.recurrence import RecurrenceExpander

# A Tuesday
TODAY = date(2024, 1, 2)


@pytest.fixture
def template():
    return ShiftEntry(
        id="",
        client_name="Acme",
        building_name="HQ",
        cleaner_names=("Alice",),
        hours=3.0,
        start_time="08:00",
        status=ShiftStatus.COMPLETED,
    )


@pytest.fixture
def expander():
    return RecurrenceExpander(clock=lambda: TODAY)


class TestRecurrencePattern:
    """Tests for pattern validation and descriptions."""

    def test_pattern_weekday_sunday_is_zero(self):
        assert pattern_weekday(date(2024, 1, 7)) == 0
        assert pattern_weekday(date(2024, 1, 1)) == 1

    def test_invalid_values_rejected(self):
        with pytest.raises(InvalidEntryError):
            RecurrencePattern(RecurrenceType.DAILY, interval=0)
        with pytest.raises(InvalidEntryError):
            RecurrencePattern(RecurrenceType.WEEKLY, days_of_week=[7])
        with pytest.raises(InvalidEntryError):
            RecurrencePattern(RecurrenceType.MONTHLY, day_of_month=32)
        with pytest.raises(InvalidEntryError):
            RecurrencePattern(RecurrenceType.DAILY, max_occurrences=0)

    def test_describe(self):
        assert RecurrencePattern(RecurrenceType.DAILY).describe() == "Every day"
        assert RecurrencePattern(RecurrenceType.DAILY, interval=3).describe() == "Every 3 days"
        assert (
            RecurrencePattern(RecurrenceType.WEEKLY, days_of_week=[3, 1]).describe()
            == "Every week on Monday, Wednesday"
        )
        assert (
            RecurrencePattern(RecurrenceType.MONTHLY, interval=2, day_of_month=15,
                              max_occurrences=3).describe()
            == "Every 2 months on day 15, for 3 occurrences"
        )
        assert (
            RecurrencePattern(RecurrenceType.CUSTOM, custom_days=10,
                              end_date=date(2024, 3, 1)).describe()
            == "Every 10 days, until 2024-03-01"
        )


class TestOccurrenceDates:
    """Tests for RecurrenceExpander.occurrence_dates."""

    def test_weekly_mondays_and_wednesdays(self, expander):
        """Four occurrences on Mondays/Wednesdays, in order, starting from today."""
        pattern = RecurrencePattern(RecurrenceType.WEEKLY, days_of_week=[1, 3], max_occurrences=4)
        dates = expander.occurrence_dates(pattern)
        assert dates == [date(2024, 1, 3), date(2024, 1, 8), date(2024, 1, 10), date(2024, 1, 15)]

    def test_weekly_defaults_to_start_weekday(self, expander):
        pattern = RecurrencePattern(RecurrenceType.WEEKLY, max_occurrences=3)
        assert expander.occurrence_dates(pattern) == [
            date(2024, 1, 2), date(2024, 1, 9), date(2024, 1, 16),
        ]

    def test_every_other_week(self, expander):
        pattern = RecurrencePattern(
            RecurrenceType.WEEKLY, interval=2, days_of_week=[2], max_occurrences=3
        )
        assert expander.occurrence_dates(pattern) == [
            date(2024, 1, 2), date(2024, 1, 16), date(2024, 1, 30),
        ]

    def test_daily_with_interval(self, expander):
        pattern = RecurrencePattern(RecurrenceType.DAILY, interval=3, max_occurrences=3)
        assert expander.occurrence_dates(pattern) == [
            date(2024, 1, 2), date(2024, 1, 5), date(2024, 1, 8),
        ]

    def test_custom_spacing(self, expander):
        pattern = RecurrencePattern(RecurrenceType.CUSTOM, custom_days=10, max_occurrences=2)
        assert expander.occurrence_dates(pattern) == [date(2024, 1, 2), date(2024, 1, 12)]

    def test_monthly_clamped_to_month_end(self):
        expander = RecurrenceExpander(clock=lambda: date(2024, 1, 1))
        pattern = RecurrencePattern(RecurrenceType.MONTHLY, day_of_month=31, max_occurrences=3)
        assert expander.occurrence_dates(pattern) == [
            date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31),
        ]

    def test_end_date_is_inclusive(self, expander):
        pattern = RecurrencePattern(RecurrenceType.DAILY, end_date=date(2024, 1, 4))
        assert expander.occurrence_dates(pattern) == [
            date(2024, 1, 2), date(2024, 1, 3), date(2024, 1, 4),
        ]

    def test_default_occurrence_cap(self):
        expander = RecurrenceExpander(clock=lambda: TODAY, max_occurrences=52)
        assert len(expander.occurrence_dates(RecurrencePattern(RecurrenceType.DAILY))) == 52

    def test_horizon_limits_search(self):
        expander = RecurrenceExpander(clock=lambda: TODAY, horizon_days=10)
        pattern = RecurrencePattern(RecurrenceType.MONTHLY, day_of_month=20)
        assert expander.occurrence_dates(pattern) == []

    def test_explicit_start(self, expander):
        pattern = RecurrencePattern(RecurrenceType.DAILY, max_occurrences=1)
        assert expander.occurrence_dates(pattern, start=date(2025, 6, 1)) == [date(2025, 6, 1)]

    def test_upcoming_preview(self, expander):
        pattern = RecurrencePattern(RecurrenceType.DAILY)
        assert len(expander.upcoming(pattern, count=5)) == 5


class TestExpand:
    """Tests for RecurrenceExpander.expand."""

    def test_expanded_entries(self, expander, template):
        pattern = RecurrencePattern(RecurrenceType.WEEKLY, days_of_week=[1, 3], max_occurrences=4)
        entries = expander.expand(template, pattern)

        assert len(entries) == 4
        assert [e.day for e in entries] == [
            Weekday.WEDNESDAY, Weekday.MONDAY, Weekday.WEDNESDAY, Weekday.MONDAY,
        ]
        assert [e.week_id for e in entries] == [
            "2024-01-01", "2024-01-08", "2024-01-08", "2024-01-15",
        ]
        assert len({e.id for e in entries}) == 4, "Every occurrence needs its own id"

    def test_clones_keep_template_fields(self, expander, template):
        pattern = RecurrencePattern(RecurrenceType.DAILY, max_occurrences=2)
        for entry in expander.expand(template, pattern):
            assert entry.cleaner_names == ("Alice",)
            assert entry.start_time == "08:00"
            assert entry.status == ShiftStatus.SCHEDULED
            assert entry.is_recurring
            assert entry.shift_date is not None

    def test_series_id_shared(self, expander, template):
        pattern = RecurrencePattern(RecurrenceType.DAILY, max_occurrences=3)
        entries = expander.expand(template, pattern)
        series = {e.recurring_id for e in entries}
        assert len(series) == 1
        assert entries[0].id == f"recurring-{entries[0].recurring_id}-2024-01-02"
