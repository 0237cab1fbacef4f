"""Conflict detection over a week of shift entries.

A cleaner is double booked when two or more non-cancelled entries share
the same primary cleaner and day. Start times are not considered for
double booking; overlapping start/end times are reported separately by
``detect_time_overlaps``. Uneven hours across cleaners are reported by
``detect_workload_imbalance``.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Iterable, Optional

from crewschedule.domain.models import (
    UNASSIGNED,
    Conflict,
    ConflictType,
    Severity,
    ShiftEntry,
    Weekday,
)

BLOCKING_SEVERITIES = (Severity.CRITICAL, Severity.HIGH)
WORKLOAD_TOLERANCE = 0.3


@dataclass
class ChangeCheck:
    """Outcome of checking a proposed change against the rest of the week.

    Attributes:
        has_conflicts: True if the change takes part in any conflict.
        conflicts: Conflicts involving the proposed entry.
        can_proceed: False if any of them is critical or high severity.
        warnings: Human-readable notes about minor issues.
    """

    has_conflicts: bool
    conflicts: list[Conflict] = field(default_factory=list)
    can_proceed: bool = True
    warnings: list[str] = field(default_factory=list)


def _is_bookable(name: str) -> bool:
    return bool(name) and name != UNASSIGNED


class ConflictScanner:
    """Detects double bookings, time overlaps and uneven workloads.

    Double-booking results are memoized per scanner instance, keyed by the
    identity, primary cleaner, day and status of every entry, so repeated
    scans of an unchanged week are free.

    Example:
        >>> scanner = ConflictScanner()
        >>> for conflict in scanner.detect_conflicts(entries):
        ...     print(conflict.description)
    """

    def __init__(self, cache_size: int = 128):
        self.cache_size = cache_size
        self._cache: OrderedDict[tuple, list[tuple[str, Weekday, tuple[str, ...]]]] = OrderedDict()

    def clear_cache(self) -> None:
        self._cache.clear()

    def detect_conflicts(self, entries: Iterable[ShiftEntry]) -> list[Conflict]:
        """Find primary cleaners booked more than once on the same day.

        Args:
            entries: Entries to scan, typically one week.

        Returns:
            One high-severity ``cleaner_double_booking`` conflict per
            (cleaner, day) group holding more than one entry.
        """
        entries = list(entries)
        by_id = {e.id: e for e in entries}
        key = tuple(sorted((e.id, e.cleaner_name, e.day.value, e.status.value) for e in entries))

        groups = self._cache.get(key)
        if groups is None:
            groups = self._group_double_bookings(entries)
            self._cache[key] = groups
            if len(self._cache) > self.cache_size:
                self._cache.popitem(last=False)
        else:
            self._cache.move_to_end(key)

        conflicts = []
        for cleaner, day, entry_ids in groups:
            group = tuple(by_id[i] for i in entry_ids)
            conflicts.append(
                Conflict(
                    conflict_type=ConflictType.CLEANER_DOUBLE_BOOKING,
                    severity=Severity.HIGH,
                    entries=group,
                    description=(
                        f"{cleaner} is booked for {len(group)} jobs on {day.label}"
                    ),
                    cleaner_name=cleaner,
                    day=day,
                )
            )
        return conflicts

    def _group_double_bookings(
        self,
        entries: list[ShiftEntry],
    ) -> list[tuple[str, Weekday, tuple[str, ...]]]:
        groups: dict[tuple[str, Weekday], list[str]] = {}
        for entry in entries:
            if entry.is_cancelled or not _is_bookable(entry.cleaner_name):
                continue
            ids = groups.setdefault((entry.cleaner_name, entry.day), [])
            if entry.id not in ids:
                ids.append(entry.id)

        return [
            (cleaner, day, tuple(ids))
            for (cleaner, day), ids in groups.items()
            if len(ids) > 1
        ]

    def detect_time_overlaps(self, entries: Iterable[ShiftEntry]) -> list[Conflict]:
        """Find shifts of the same cleaner whose times overlap on a day.

        Every assigned cleaner is considered, not just the primary one.
        Entries without a start time are skipped.
        """
        schedule: dict[tuple[str, Weekday], list[ShiftEntry]] = {}
        for entry in entries:
            if entry.is_cancelled or not entry.start_time:
                continue
            for cleaner in entry.cleaner_names:
                if _is_bookable(cleaner):
                    schedule.setdefault((cleaner, entry.day), []).append(entry)

        conflicts = []
        for (cleaner, day), day_entries in schedule.items():
            day_entries.sort(key=lambda e: e.start_minutes)
            for current, following in zip(day_entries, day_entries[1:]):
                if current.end_minutes > following.start_minutes:
                    conflicts.append(
                        Conflict(
                            conflict_type=ConflictType.TIME_CONFLICT,
                            severity=Severity.HIGH,
                            entries=(current, following),
                            description=(
                                f"{cleaner} has overlapping shifts on {day.label}: "
                                f"{current.start_time}-{current.end_time} at "
                                f"{current.building_name} and "
                                f"{following.start_time}-{following.end_time} at "
                                f"{following.building_name}"
                            ),
                            cleaner_name=cleaner,
                            day=day,
                        )
                    )
        return conflicts

    def detect_workload_imbalance(
        self,
        entries: Iterable[ShiftEntry],
        roster: Optional[Iterable[str]] = None,
        tolerance: float = WORKLOAD_TOLERANCE,
    ) -> list[Conflict]:
        """Find a week where some cleaners are overloaded and others idle.

        An entry's hours are split evenly among its assigned cleaners. A
        cleaner is overloaded above ``average * (1 + tolerance)`` hours and
        underloaded below ``average * (1 - tolerance)``. The conflict is only
        reported when both groups are non-empty.

        Args:
            entries: Entries to scan, typically one week.
            roster: Cleaners to compare. Cleaners on the roster without
                shifts count as zero hours; others are ignored. Defaults to
                every cleaner assigned in ``entries``.
            tolerance: Allowed deviation from the average, as a fraction.

        Returns:
            At most one medium-severity ``workload_imbalance`` conflict.
        """
        workload: dict[str, float] = {}
        shifts: dict[str, list[ShiftEntry]] = {}
        if roster is not None:
            for name in roster:
                workload.setdefault(name, 0.0)
                shifts.setdefault(name, [])

        for entry in entries:
            if entry.is_cancelled:
                continue
            cleaners = [c for c in entry.cleaner_names if _is_bookable(c)]
            for cleaner in cleaners:
                if roster is None:
                    workload.setdefault(cleaner, 0.0)
                    shifts.setdefault(cleaner, [])
                elif cleaner not in workload:
                    continue
                workload[cleaner] += entry.hours / len(cleaners)
                shifts[cleaner].append(entry)

        if not workload:
            return []

        average = sum(workload.values()) / len(workload)
        band = average * tolerance
        overloaded = [c for c, hours in workload.items() if hours > average + band]
        underloaded = [c for c, hours in workload.items() if hours < average - band]
        if not overloaded or not underloaded:
            return []

        affected: dict[str, ShiftEntry] = {}
        for cleaner in overloaded + underloaded:
            for entry in shifts[cleaner]:
                affected.setdefault(entry.id, entry)

        return [
            Conflict(
                conflict_type=ConflictType.WORKLOAD_IMBALANCE,
                severity=Severity.MEDIUM,
                entries=tuple(affected.values()),
                description=(
                    f"{len(overloaded)} cleaner(s) overloaded "
                    f"({', '.join(overloaded)}) while {len(underloaded)} "
                    f"underutilized ({', '.join(underloaded)}); "
                    f"average {average:.1f}h"
                ),
            )
        ]

    def detect_all(
        self,
        entries: Iterable[ShiftEntry],
        roster: Optional[Iterable[str]] = None,
    ) -> list[Conflict]:
        """Run every detector over the same entries."""
        entries = list(entries)
        return (
            self.detect_conflicts(entries)
            + self.detect_time_overlaps(entries)
            + self.detect_workload_imbalance(entries, roster)
        )

    def validate_change(
        self,
        entries: Iterable[ShiftEntry],
        candidate: ShiftEntry,
        existing_id: Optional[str] = None,
    ) -> ChangeCheck:
        """Check whether adding or replacing an entry would cause conflicts.

        Args:
            entries: Current entries of the week.
            candidate: The new or edited entry.
            existing_id: Id of the entry being edited, if this is an update.

        Returns:
            ChangeCheck listing the conflicts the candidate would take part in.
        """
        replaced = existing_id or candidate.id
        week = [e for e in entries if e.id != replaced]
        week.append(candidate)

        found = self.detect_conflicts(week) + self.detect_time_overlaps(week)
        conflicts = [c for c in found if c.involves(candidate.id)]
        blocking = [c for c in conflicts if c.severity in BLOCKING_SEVERITIES]
        minor = [c for c in conflicts if c.severity not in BLOCKING_SEVERITIES]

        warnings = []
        if minor:
            warnings.append(f"This change will create {len(minor)} minor scheduling issue(s)")

        return ChangeCheck(
            has_conflicts=bool(conflicts),
            conflicts=conflicts,
            can_proceed=not blocking,
            warnings=warnings,
        )

    @staticmethod
    def conflicts_for_entry(conflicts: list[Conflict], entry_id: str) -> list[Conflict]:
        return [c for c in conflicts if c.involves(entry_id)]

    @staticmethod
    def conflicts_for_cleaner(conflicts: list[Conflict], cleaner_name: str) -> list[Conflict]:
        return [
            c for c in conflicts
            if any(e.has_cleaner(cleaner_name) for e in c.entries)
        ]

    @staticmethod
    def summarize(conflicts: list[Conflict]) -> dict[str, int]:
        """Count conflicts by severity, plus a ``total``."""
        summary = {severity.value: 0 for severity in Severity}
        for conflict in conflicts:
            summary[conflict.severity.value] += 1
        summary["total"] = len(conflicts)
        return summary
