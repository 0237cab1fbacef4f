"""Tests for statistics and pay policies."""

import pytest

from crewschedule.domain.models import (
    PaymentType,
    ScheduleStats,
    ShiftEntry,
    ShiftStatus,
    Weekday,
)
from crewschedule.domain.policies import DefaultPayPolicy
from crewschedule.scheduling.stats import StatsAggregator


def make_entry(entry_id, cleaners=("Alice",), hours=4.0, status=ShiftStatus.SCHEDULED,
               day=Weekday.MONDAY, **kwargs):
    return ShiftEntry(
        id=entry_id,
        client_name="Acme",
        building_name="HQ",
        cleaner_names=tuple(cleaners),
        hours=hours,
        day=day,
        status=status,
        **kwargs,
    )


class TestDefaultPayPolicy:
    """Tests for DefaultPayPolicy."""

    def test_regular_hours(self):
        pay = DefaultPayPolicy().calculate_entry_pay(make_entry("a", hours=4, hourly_rate=20))
        assert pay.regular_pay == 80
        assert pay.overtime_hours == 0
        assert pay.total == 80

    def test_overtime_past_eight_hours(self):
        """Hours past 8 are paid at 1.5x by default."""
        pay = DefaultPayPolicy().calculate_entry_pay(make_entry("a", hours=10, hourly_rate=20))
        assert pay.regular_pay == 160
        assert pay.overtime_hours == 2
        assert pay.overtime_pay == pytest.approx(60)
        assert pay.overtime_premium == pytest.approx(20)
        assert pay.total == pytest.approx(220)

    def test_entry_overtime_override(self):
        entry = make_entry("a", hours=9, hourly_rate=10, overtime_rate=2.0)
        pay = DefaultPayPolicy().calculate_entry_pay(entry)
        assert pay.overtime_pay == pytest.approx(20)

    def test_flat_rate_ignores_hours(self):
        entry = make_entry(
            "a", hours=12, payment_type=PaymentType.FLAT_RATE, flat_rate_amount=150,
            bonus_amount=10, deductions=5,
        )
        pay = DefaultPayPolicy().calculate_entry_pay(entry)
        assert pay.overtime_hours == 0
        assert pay.total == 155

    def test_custom_regular_hours(self):
        policy = DefaultPayPolicy(regular_hours=6.0)
        assert policy.regular_hours_limit() == 6.0
        pay = policy.calculate_entry_pay(make_entry("a", hours=7, hourly_rate=10))
        assert pay.overtime_hours == 1


class TestStatsAggregator:
    """Tests for StatsAggregator.calculate_schedule_stats."""

    @pytest.fixture
    def aggregator(self):
        return StatsAggregator()

    def test_empty_list_all_zero(self, aggregator):
        """No entries should give the all-zero stats."""
        assert aggregator.calculate_schedule_stats([]) == ScheduleStats()

    def test_counts_and_hours(self, aggregator):
        entries = [
            make_entry("a", hours=3, status=ShiftStatus.COMPLETED),
            make_entry("b", cleaners=("Bob",), hours=5, day=Weekday.TUESDAY),
            make_entry("c", cleaners=("Bob",), hours=2, status=ShiftStatus.IN_PROGRESS,
                       day=Weekday.WEDNESDAY),
            make_entry("d", cleaners=("Carol",), hours=2, status=ShiftStatus.CANCELLED),
        ]
        stats = aggregator.calculate_schedule_stats(entries)

        assert stats.total_entries == 4
        assert stats.total_hours == 12
        assert stats.completed_entries == 1
        assert stats.pending_entries == 1, "Only scheduled entries are pending"
        assert stats.utilization_rate == pytest.approx(25.0)
        assert stats.hours_per_cleaner == {"Alice": 3, "Bob": 7, "Carol": 2}
        assert stats.average_hours_per_cleaner == pytest.approx(4.0)

    def test_hours_go_to_primary_cleaner(self, aggregator):
        stats = aggregator.calculate_schedule_stats([make_entry("a", cleaners=("Alice", "Bob"))])
        assert stats.hours_per_cleaner == {"Alice": 4}

    def test_unassigned_entry_counts_as_unknown(self, aggregator):
        stats = aggregator.calculate_schedule_stats([make_entry("a", cleaners=())])
        assert stats.hours_per_cleaner == {"Unknown": 4}

    def test_conflict_count(self, aggregator):
        stats = aggregator.calculate_schedule_stats([make_entry("a"), make_entry("b")])
        assert stats.conflict_count == 1

    def test_payroll_totals(self, aggregator):
        entries = [
            make_entry("a", hours=10, hourly_rate=20),
            make_entry("b", hours=2, hourly_rate=10, day=Weekday.TUESDAY, bonus_amount=5),
            make_entry("c", payment_type=PaymentType.FLAT_RATE, flat_rate_amount=100,
                       day=Weekday.FRIDAY, deductions=10),
        ]
        stats = aggregator.calculate_schedule_stats(entries)

        assert stats.total_hourly_jobs == 2
        assert stats.total_flat_rate_jobs == 1
        assert stats.total_hourly_amount == pytest.approx(220 + 25)
        assert stats.total_flat_rate_amount == pytest.approx(100)
        assert stats.total_payroll == pytest.approx(335)
        assert stats.total_bonus_amount == 5
        assert stats.total_deductions == 10
        assert stats.average_hourly_rate == pytest.approx(15)
        assert stats.overtime_hours == 2
        assert stats.overtime_amount == pytest.approx(20)


class TestPayrollForPeriod:
    """Tests for per-cleaner payroll with weekly overtime."""

    @pytest.fixture
    def entries(self):
        week_one = [
            make_entry(f"w1-{day.value}", hours=9, hourly_rate=20, day=day, week_id="2024-01-01")
            for day in list(Weekday)[:5]
        ]
        return week_one + [
            make_entry("w2-mon", hours=10, hourly_rate=20, status=ShiftStatus.COMPLETED,
                       week_id="2024-01-08"),
            make_entry("shared", cleaners=("Alice", "Bob"), payment_type=PaymentType.FLAT_RATE,
                       flat_rate_amount=100, day=Weekday.SATURDAY, week_id="2024-01-01"),
            make_entry("cancelled", cleaners=("Carol",), hours=6,
                       status=ShiftStatus.CANCELLED, week_id="2024-01-01"),
        ]

    def test_overtime_counted_per_week(self, entries):
        """45 hours in one week give 5 overtime hours; the next week starts fresh."""
        payroll = StatsAggregator().calculate_payroll_for_period(entries, "Alice")

        assert payroll.regular_hours == pytest.approx(50)
        assert payroll.overtime_hours == pytest.approx(5)
        assert payroll.total_hours == pytest.approx(55)
        assert payroll.regular_pay == pytest.approx(1000)
        assert payroll.overtime_pay == pytest.approx(150)
        assert payroll.flat_rate_pay == pytest.approx(100)
        assert payroll.total_pay == pytest.approx(1250)

    def test_breakdown(self, entries):
        payroll = StatsAggregator().calculate_payroll_for_period(entries, "Alice")
        assert payroll.hourly_jobs == 6
        assert payroll.flat_rate_jobs == 1
        assert payroll.completed_hours == pytest.approx(10)
        assert payroll.scheduled_hours == pytest.approx(45)

    def test_secondary_cleaner_counted(self, entries):
        payroll = StatsAggregator().calculate_payroll_for_period(entries, "Bob")
        assert payroll.flat_rate_pay == pytest.approx(100)
        assert payroll.total_hours == 0

    def test_custom_weekly_limit(self, entries):
        payroll = StatsAggregator().calculate_payroll_for_period(entries, "Alice", weekly_limit=30)
        assert payroll.overtime_hours == pytest.approx(15)

    def test_summary_skips_cleaners_without_pay(self, entries):
        summary = StatsAggregator().calculate_payroll_summary(entries)
        assert sorted(summary) == ["Alice", "Bob"]

    def test_summary_for_named_cleaners(self, entries):
        summary = StatsAggregator().calculate_payroll_summary(entries, ["Bob", "Dana"])
        assert list(summary) == ["Bob"]
