"""Plain-text weekly schedule report.

This module creates a text report for a week that shows:
- Shifts per day with times, buildings and cleaners
- Hours per cleaner as a histogram
- Payroll totals
- Double bookings and time overlaps
"""

from pathlib import Path
from typing import Optional, Union

from crewschedule.domain.models import ShiftEntry, Weekday, date_for_day
from crewschedule.scheduling.conflicts import ConflictScanner
from crewschedule.scheduling.stats import StatsAggregator
from crewschedule.scheduling.store import sort_entries


class ReportGenerator:
    """Generates a human-readable text report for one week."""

    def __init__(
        self,
        stats_aggregator: Optional[StatsAggregator] = None,
        conflict_scanner: Optional[ConflictScanner] = None,
    ):
        self.conflict_scanner = conflict_scanner or ConflictScanner()
        self.stats_aggregator = stats_aggregator or StatsAggregator(
            conflict_scanner=self.conflict_scanner
        )

    def generate(
        self,
        week_id: str,
        entries: list[ShiftEntry],
        output_path: Union[str, Path],
    ) -> str:
        """Generate the report and save it to a file.

        Args:
            week_id: Week being reported.
            entries: Entries of the week.
            output_path: Path to save the text file.

        Returns:
            The generated text content.
        """
        content = self._generate_content(week_id, entries)
        Path(output_path).write_text(content, encoding="utf-8")
        return content

    def generate_to_string(self, week_id: str, entries: list[ShiftEntry]) -> str:
        """Generate the report and return it as a string."""
        return self._generate_content(week_id, entries)

    def _generate_content(self, week_id: str, entries: list[ShiftEntry]) -> str:
        stats = self.stats_aggregator.calculate_schedule_stats(entries)
        conflicts = self.conflict_scanner.detect_all(entries)
        lines = []

        # Header
        lines.append("=" * 80)
        lines.append(f"WEEKLY SCHEDULE REPORT - Week of {week_id}")
        lines.append("=" * 80)
        lines.append("")

        lines.append(f"Total Shifts: {stats.total_entries}")
        lines.append(f"Total Hours: {stats.total_hours:.1f}")
        lines.append(f"Completed: {stats.completed_entries}  Pending: {stats.pending_entries}  "
                     f"Utilization: {stats.utilization_rate:.1f}%")
        lines.append("")

        # Per-day listing
        lines.append("-" * 80)
        lines.append("SHIFTS BY DAY")
        lines.append("-" * 80)
        lines.append(f"{'Time':^13} {'Client / Building':<32} {'Cleaners':<20} {'Hours':>5} {'Status':>10}")

        by_day: dict[Weekday, list[ShiftEntry]] = {}
        for entry in sort_entries(entries):
            by_day.setdefault(entry.day, []).append(entry)

        for day in Weekday:
            lines.append("")
            lines.append(f"{day.label.upper()} ({date_for_day(week_id, day).isoformat()})")
            day_entries = by_day.get(day, [])
            if not day_entries:
                lines.append("  (no shifts)")
                continue
            for entry in day_entries:
                time_str = f"{entry.start_time}-{entry.end_time}" if entry.start_time else "--"
                place = f"{entry.client_name} / {entry.building_name}"[:32]
                cleaners = ", ".join(entry.cleaner_names)[:20]
                lines.append(
                    f"{time_str:^13} {place:<32} {cleaners:<20} {entry.hours:>5.1f} {entry.status.value:>10}"
                )

        lines.append("")

        # Hours per cleaner
        lines.append("-" * 80)
        lines.append("HOURS PER CLEANER")
        lines.append("-" * 80)
        ranked = sorted(stats.hours_per_cleaner.items(), key=lambda kv: (-kv[1], kv[0]))
        for name, hours in ranked:
            bar = "#" * int(round(hours))
            lines.append(f"{name[:20]:<20} {hours:>6.1f} {bar}")
        if ranked:
            lines.append(f"\nAverage per cleaner: {stats.average_hours_per_cleaner:.1f}h")
        else:
            lines.append("No hours booked.")
        lines.append("")

        # Payroll
        lines.append("-" * 80)
        lines.append("PAYROLL")
        lines.append("-" * 80)
        lines.append(f"Hourly jobs:    {stats.total_hourly_jobs:>4}  ${stats.total_hourly_amount:>10,.2f}")
        lines.append(f"Flat-rate jobs: {stats.total_flat_rate_jobs:>4}  ${stats.total_flat_rate_amount:>10,.2f}")
        lines.append(f"Bonuses:              ${stats.total_bonus_amount:>10,.2f}")
        lines.append(f"Deductions:           ${stats.total_deductions:>10,.2f}")
        lines.append(f"Overtime ({stats.overtime_hours:.1f}h):     ${stats.overtime_amount:>10,.2f}")
        lines.append(f"Total payroll:        ${stats.total_payroll:>10,.2f}")
        lines.append("")

        # Conflicts
        lines.append("-" * 80)
        lines.append(f"CONFLICTS ({len(conflicts)})")
        lines.append("-" * 80)
        if not conflicts:
            lines.append("No conflicts detected.")
        for conflict in conflicts:
            lines.append(f"[{conflict.severity.value}] {conflict.conflict_type.value}: {conflict.description}")
            lines.append(f"    entries: {', '.join(conflict.entry_ids)}")

        lines.append("")
        lines.append("=" * 80)
        lines.append("END OF REPORT")
        lines.append("=" * 80)

        return "\n".join(lines)
