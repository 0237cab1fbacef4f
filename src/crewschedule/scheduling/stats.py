"""Aggregate statistics and payroll totals for shift entries.

Week statistics apply the pay policy per entry. Pay-period payroll is per
cleaner and counts overtime against a weekly hour limit instead.
"""

from typing import Iterable, Optional

from crewschedule.domain.models import (
    UNASSIGNED,
    CleanerPayroll,
    PaymentType,
    ScheduleStats,
    ShiftEntry,
    ShiftStatus,
    week_id_for,
)
from crewschedule.domain.policies import DefaultPayPolicy, PayPolicy
from crewschedule.scheduling.conflicts import ConflictScanner

UNKNOWN_CLEANER = "Unknown"
WEEKLY_REGULAR_HOURS = 40.0


class StatsAggregator:
    """Computes ScheduleStats in a single pass over the entries.

    Example:
        >>> stats = StatsAggregator().calculate_schedule_stats(entries)
        >>> print(f"{stats.total_hours:.1f}h, {stats.utilization_rate:.0f}% done")
    """

    def __init__(
        self,
        pay_policy: Optional[PayPolicy] = None,
        conflict_scanner: Optional[ConflictScanner] = None,
    ):
        self.pay_policy = pay_policy or DefaultPayPolicy()
        self.conflict_scanner = conflict_scanner or ConflictScanner()

    def calculate_schedule_stats(self, entries: Iterable[ShiftEntry]) -> ScheduleStats:
        """Calculate statistics for a list of entries.

        Hours are attributed to the primary cleaner only, under ``"Unknown"``
        when nobody is assigned. An empty list yields the all-zero stats.

        Args:
            entries: Entries to aggregate, typically one week.

        Returns:
            ScheduleStats for the entries.
        """
        entries = list(entries)
        if not entries:
            return ScheduleStats()

        stats = ScheduleStats(total_entries=len(entries))
        hourly_rates = []

        for entry in entries:
            stats.total_hours += entry.hours
            if entry.status == ShiftStatus.COMPLETED:
                stats.completed_entries += 1
            elif entry.status == ShiftStatus.SCHEDULED:
                stats.pending_entries += 1

            cleaner = entry.cleaner_name or UNKNOWN_CLEANER
            stats.hours_per_cleaner[cleaner] = stats.hours_per_cleaner.get(cleaner, 0.0) + entry.hours

            pay = self.pay_policy.calculate_entry_pay(entry)
            if entry.payment_type == PaymentType.FLAT_RATE:
                stats.total_flat_rate_jobs += 1
                stats.total_flat_rate_amount += entry.flat_rate_amount
            else:
                stats.total_hourly_jobs += 1
                stats.total_hourly_amount += pay.total
                hourly_rates.append(entry.hourly_rate)
                stats.overtime_hours += pay.overtime_hours
                stats.overtime_amount += pay.overtime_premium
            stats.total_bonus_amount += pay.bonus
            stats.total_deductions += pay.deductions
            stats.total_payroll += pay.total

        stats.conflict_count = len(self.conflict_scanner.detect_conflicts(entries))
        stats.utilization_rate = stats.completed_entries / stats.total_entries * 100
        stats.average_hours_per_cleaner = (
            sum(stats.hours_per_cleaner.values()) / len(stats.hours_per_cleaner)
        )
        if hourly_rates:
            stats.average_hourly_rate = sum(hourly_rates) / len(hourly_rates)

        return stats

    def calculate_payroll_for_period(
        self,
        entries: Iterable[ShiftEntry],
        cleaner_name: str,
        weekly_limit: float = WEEKLY_REGULAR_HOURS,
    ) -> CleanerPayroll:
        """Calculate one cleaner's pay over entries spanning several weeks.

        Every entry listing the cleaner among its assignees counts with its
        full hours. Cancelled entries are skipped. Within each week, hourly
        entries are taken in day and start-time order and hours past
        ``weekly_limit`` are paid at the pay policy's overtime multiplier.

        Args:
            entries: Entries of the pay period.
            cleaner_name: Cleaner to calculate for.
            weekly_limit: Regular hours per week.

        Returns:
            CleanerPayroll for the cleaner.
        """
        payroll = CleanerPayroll(cleaner_name=cleaner_name)
        weeks: dict[str, list[ShiftEntry]] = {}

        for entry in entries:
            if entry.is_cancelled or not entry.has_cleaner(cleaner_name):
                continue
            if entry.payment_type == PaymentType.FLAT_RATE:
                payroll.flat_rate_jobs += 1
                payroll.flat_rate_pay += entry.flat_rate_amount
                continue
            week_id = entry.week_id or (week_id_for(entry.shift_date) if entry.shift_date else "")
            weeks.setdefault(week_id, []).append(entry)

        for week_entries in weeks.values():
            week_entries.sort(key=lambda e: (e.day.index, e.start_time is None, e.start_minutes or 0))
            worked = 0.0
            for entry in week_entries:
                regular = min(entry.hours, max(0.0, weekly_limit - worked))
                overtime = entry.hours - regular
                worked += entry.hours

                payroll.hourly_jobs += 1
                payroll.regular_hours += regular
                payroll.overtime_hours += overtime
                payroll.regular_pay += regular * entry.hourly_rate
                payroll.overtime_pay += (
                    overtime * entry.hourly_rate * self.pay_policy.overtime_multiplier(entry)
                )
                if entry.status == ShiftStatus.COMPLETED:
                    payroll.completed_hours += entry.hours
                elif entry.status == ShiftStatus.SCHEDULED:
                    payroll.scheduled_hours += entry.hours

        return payroll

    def calculate_payroll_summary(
        self,
        entries: Iterable[ShiftEntry],
        cleaner_names: Optional[Iterable[str]] = None,
        weekly_limit: float = WEEKLY_REGULAR_HOURS,
    ) -> dict[str, CleanerPayroll]:
        """Payroll for several cleaners, keyed by name.

        Cleaners with neither hours nor flat-rate pay are left out. When
        ``cleaner_names`` is omitted, every cleaner assigned in ``entries``
        is included.
        """
        entries = list(entries)
        if cleaner_names is None:
            cleaner_names = []
            for entry in entries:
                for name in entry.cleaner_names:
                    if name and name != UNASSIGNED and name not in cleaner_names:
                        cleaner_names.append(name)

        summary = {}
        for name in cleaner_names:
            payroll = self.calculate_payroll_for_period(entries, name, weekly_limit)
            if payroll.total_hours > 0 or payroll.flat_rate_pay > 0:
                summary[name] = payroll
        return summary
