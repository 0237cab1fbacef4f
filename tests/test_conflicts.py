"""Tests for conflict detection."""

import pytest

from crewschedule.domain.models import (
    UNASSIGNED,
    ConflictType,
    Severity,
    ShiftEntry,
    ShiftStatus,
    Weekday,
)
from crewschedule.scheduling.conflicts import ConflictScanner


def make_entry(entry_id, cleaners=("Alice",), day=Weekday.MONDAY, start_time=None,
               hours=2.0, status=ShiftStatus.SCHEDULED, building="HQ"):
    return ShiftEntry(
        id=entry_id,
        client_name="Acme",
        building_name=building,
        cleaner_names=tuple(cleaners),
        hours=hours,
        day=day,
        start_time=start_time,
        status=status,
        week_id="2024-01-01",
    )


class TestDoubleBooking:
    """Tests for ConflictScanner.detect_conflicts."""

    @pytest.fixture
    def scanner(self):
        return ConflictScanner()

    def test_two_entries_same_cleaner_same_day(self, scanner):
        """Two jobs for Alice on Monday make exactly one conflict."""
        conflicts = scanner.detect_conflicts([make_entry("a"), make_entry("b")])

        assert len(conflicts) == 1
        conflict = conflicts[0]
        assert conflict.conflict_type == ConflictType.CLEANER_DOUBLE_BOOKING
        assert conflict.severity == Severity.HIGH
        assert conflict.entry_ids == ["a", "b"]
        assert conflict.cleaner_name == "Alice"
        assert conflict.day == Weekday.MONDAY
        assert conflict.description == "Alice is booked for 2 jobs on Monday"

    def test_cancelled_entry_does_not_count(self, scanner):
        conflicts = scanner.detect_conflicts([
            make_entry("a"),
            make_entry("b", status=ShiftStatus.CANCELLED),
        ])
        assert conflicts == []

    def test_different_days_no_conflict(self, scanner):
        conflicts = scanner.detect_conflicts([
            make_entry("a"),
            make_entry("b", day=Weekday.TUESDAY),
        ])
        assert conflicts == []

    def test_three_entries_one_conflict(self, scanner):
        """A group of three is one conflict listing all three entries."""
        conflicts = scanner.detect_conflicts([make_entry("a"), make_entry("b"), make_entry("c")])
        assert len(conflicts) == 1
        assert len(conflicts[0].entries) == 3
        assert "3 jobs" in conflicts[0].description

    def test_only_primary_cleaner_counts(self, scanner):
        """A secondary cleaner on another job is not a double booking."""
        conflicts = scanner.detect_conflicts([
            make_entry("a", cleaners=("Alice",)),
            make_entry("b", cleaners=("Bob", "Alice")),
        ])
        assert conflicts == []

    def test_unassigned_entries_ignored(self, scanner):
        conflicts = scanner.detect_conflicts([
            make_entry("a", cleaners=(UNASSIGNED,)),
            make_entry("b", cleaners=(UNASSIGNED,)),
        ])
        assert conflicts == []

    def test_start_times_ignored(self, scanner):
        """Non-overlapping times on the same day are still double bookings."""
        conflicts = scanner.detect_conflicts([
            make_entry("a", start_time="06:00", hours=1),
            make_entry("b", start_time="18:00", hours=1),
        ])
        assert len(conflicts) == 1

    def test_cached_result_reflects_current_entries(self, scanner):
        """A cached scan must return the entries passed in, not stale copies."""
        first = [make_entry("a", hours=1), make_entry("b", hours=1)]
        scanner.detect_conflicts(first)

        second = [make_entry("a", hours=5), make_entry("b", hours=5)]
        conflicts = scanner.detect_conflicts(second)
        assert [e.hours for e in conflicts[0].entries] == [5, 5]

    def test_cache_is_bounded(self):
        scanner = ConflictScanner(cache_size=2)
        for i in range(5):
            scanner.detect_conflicts([make_entry(f"x{i}")])
        assert len(scanner._cache) == 2


class TestTimeOverlaps:
    """Tests for ConflictScanner.detect_time_overlaps."""

    @pytest.fixture
    def scanner(self):
        return ConflictScanner()

    def test_overlapping_times(self, scanner):
        conflicts = scanner.detect_time_overlaps([
            make_entry("a", start_time="08:00", hours=3, building="Tower A"),
            make_entry("b", start_time="10:00", hours=2, building="Tower B"),
        ])
        assert len(conflicts) == 1
        assert conflicts[0].conflict_type == ConflictType.TIME_CONFLICT
        assert "08:00-11:00 at Tower A" in conflicts[0].description

    def test_back_to_back_is_fine(self, scanner):
        conflicts = scanner.detect_time_overlaps([
            make_entry("a", start_time="08:00", hours=2),
            make_entry("b", start_time="10:00", hours=2),
        ])
        assert conflicts == []

    def test_secondary_cleaners_checked(self, scanner):
        """Overlaps count for every assigned cleaner."""
        conflicts = scanner.detect_time_overlaps([
            make_entry("a", cleaners=("Alice", "Bob"), start_time="08:00", hours=3),
            make_entry("b", cleaners=("Bob",), start_time="09:00", hours=1),
        ])
        assert [c.cleaner_name for c in conflicts] == ["Bob"]

    def test_untimed_entries_skipped(self, scanner):
        conflicts = scanner.detect_time_overlaps([make_entry("a"), make_entry("b")])
        assert conflicts == []

    def test_detect_all_combines(self, scanner):
        entries = [
            make_entry("a", start_time="08:00", hours=3),
            make_entry("b", start_time="09:00", hours=1),
        ]
        types = {c.conflict_type for c in scanner.detect_all(entries)}
        assert types == {ConflictType.CLEANER_DOUBLE_BOOKING, ConflictType.TIME_CONFLICT}


class TestWorkloadImbalance:
    """Tests for ConflictScanner.detect_workload_imbalance."""

    @pytest.fixture
    def scanner(self):
        return ConflictScanner()

    def test_overloaded_and_idle_cleaners(self, scanner):
        """Alice at 10h and Bob at 2h sit outside 30% of the 6h average."""
        entries = [
            make_entry("a", hours=10),
            make_entry("b", cleaners=("Bob",), hours=2, day=Weekday.TUESDAY),
        ]
        conflicts = scanner.detect_workload_imbalance(entries)

        assert len(conflicts) == 1
        conflict = conflicts[0]
        assert conflict.conflict_type == ConflictType.WORKLOAD_IMBALANCE
        assert conflict.severity == Severity.MEDIUM
        assert sorted(conflict.entry_ids) == ["a", "b"]
        assert "1 cleaner(s) overloaded (Alice)" in conflict.description

    def test_balanced_week(self, scanner):
        entries = [
            make_entry("a", hours=5),
            make_entry("b", cleaners=("Bob",), hours=6, day=Weekday.TUESDAY),
        ]
        assert scanner.detect_workload_imbalance(entries) == []

    def test_overload_alone_is_not_reported(self, scanner):
        """Without an underloaded cleaner there is nothing to rebalance."""
        entries = [make_entry("a", hours=10)]
        assert scanner.detect_workload_imbalance(entries) == []

    def test_hours_split_among_assignees(self, scanner):
        """A shared 8h job gives Alice and Bob 4h each."""
        entries = [
            make_entry("a", cleaners=("Alice", "Bob"), hours=8),
            make_entry("b", cleaners=("Carol",), hours=4, day=Weekday.TUESDAY),
        ]
        assert scanner.detect_workload_imbalance(entries) == []

    def test_roster_counts_idle_cleaners(self, scanner):
        entries = [
            make_entry("a", hours=6),
            make_entry("b", cleaners=("Bob",), hours=6, day=Weekday.TUESDAY),
        ]
        assert scanner.detect_workload_imbalance(entries) == []
        conflicts = scanner.detect_workload_imbalance(entries, roster=["Alice", "Bob", "Dana"])
        assert len(conflicts) == 1
        assert "(Dana)" in conflicts[0].description

    def test_cancelled_entries_ignored(self, scanner):
        entries = [
            make_entry("a", hours=10, status=ShiftStatus.CANCELLED),
            make_entry("b", cleaners=("Bob",), hours=2, day=Weekday.TUESDAY),
        ]
        assert scanner.detect_workload_imbalance(entries) == []

    def test_included_in_detect_all(self, scanner):
        entries = [
            make_entry("a", hours=10),
            make_entry("b", cleaners=("Bob",), hours=2, day=Weekday.TUESDAY),
        ]
        types = [c.conflict_type for c in scanner.detect_all(entries)]
        assert types == [ConflictType.WORKLOAD_IMBALANCE]

    def test_not_part_of_change_validation(self, scanner):
        check = scanner.validate_change(
            [make_entry("a", hours=10)],
            make_entry("new", cleaners=("Bob",), hours=2, day=Weekday.TUESDAY),
        )
        assert not check.has_conflicts


class TestValidateChange:
    """Tests for checking proposed changes."""

    @pytest.fixture
    def scanner(self):
        return ConflictScanner()

    def test_new_entry_creating_double_booking(self, scanner):
        check = scanner.validate_change([make_entry("a")], make_entry("new"))
        assert check.has_conflicts
        assert not check.can_proceed
        assert check.conflicts[0].involves("new")

    def test_clean_change(self, scanner):
        check = scanner.validate_change([make_entry("a")], make_entry("new", day=Weekday.FRIDAY))
        assert not check.has_conflicts
        assert check.can_proceed
        assert check.warnings == []

    def test_editing_entry_replaces_original(self, scanner):
        """An edited entry is not compared against its own old version."""
        entries = [make_entry("a"), make_entry("b", day=Weekday.TUESDAY)]
        edited = make_entry("b", day=Weekday.WEDNESDAY)
        check = scanner.validate_change(entries, edited, existing_id="b")
        assert not check.has_conflicts

    def test_unrelated_conflicts_not_reported(self, scanner):
        entries = [make_entry("a"), make_entry("b")]
        check = scanner.validate_change(entries, make_entry("c", cleaners=("Bob",)))
        assert not check.has_conflicts


class TestHelpers:
    """Tests for conflict filtering and summaries."""

    def test_filters_and_summary(self):
        scanner = ConflictScanner()
        entries = [
            make_entry("a"),
            make_entry("b"),
            make_entry("c", cleaners=("Bob",), day=Weekday.FRIDAY),
            make_entry("d", cleaners=("Bob",), day=Weekday.FRIDAY),
        ]
        conflicts = scanner.detect_conflicts(entries)

        assert len(ConflictScanner.conflicts_for_entry(conflicts, "c")) == 1
        assert len(ConflictScanner.conflicts_for_cleaner(conflicts, "Alice")) == 1
        summary = ConflictScanner.summarize(conflicts)
        assert summary["high"] == 2
        assert summary["critical"] == 0
        assert summary["total"] == 2
