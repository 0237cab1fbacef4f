"""Domain models for the crew scheduling system.

This module contains the core data structures used throughout the system:
shift entries grouped into weeks, detected conflicts, schedule statistics
and the week identifier helpers that tie a calendar date to its week.
"""

import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Optional

from crewschedule.exceptions import InvalidEntryError

TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")

UNASSIGNED = "UNASSIGNED"


class Weekday(Enum):
    """Day of the week a shift falls on, in schedule order."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @property
    def index(self) -> int:
        """Position in the week, Monday being 0."""
        return list(Weekday).index(self)

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @classmethod
    def from_date(cls, d: date) -> "Weekday":
        """Get the weekday a calendar date falls on."""
        return list(cls)[d.weekday()]


class ShiftStatus(Enum):
    """Lifecycle status of a shift entry."""

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Priority(Enum):
    """Client priority attached to a shift."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PaymentType(Enum):
    """How the crew is paid for a shift."""

    HOURLY = "hourly"
    FLAT_RATE = "flat_rate"


class ConflictType(Enum):
    """Kinds of scheduling conflicts."""

    CLEANER_DOUBLE_BOOKING = "cleaner_double_booking"
    TIME_CONFLICT = "time_conflict"
    WORKLOAD_IMBALANCE = "workload_imbalance"


class Severity(Enum):
    """Conflict severity, most severe first."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def time_to_minutes(value: str) -> int:
    """Convert an ``HH:MM`` string to minutes from midnight.

    Raises:
        InvalidEntryError: If the string is not a valid 24-hour time.
    """
    match = TIME_PATTERN.match(value.strip())
    if match is None:
        raise InvalidEntryError(f"Invalid time '{value}', expected HH:MM")
    return int(match.group(1)) * 60 + int(match.group(2))


def minutes_to_time(minutes: int) -> str:
    """Format minutes from midnight as ``HH:MM``, wrapping past midnight."""
    hours, mins = divmod(int(minutes) % (24 * 60), 60)
    return f"{hours:02d}:{mins:02d}"


@dataclass(frozen=True)
class ShiftEntry:
    """A single booked shift of one or more cleaners at a client building.

    Entries are immutable; updates produce a new entry through
    ``dataclasses.replace``. The list of assignees lives only in
    ``cleaner_names``; the legacy single ``cleaner_name`` is derived from it.

    Attributes:
        id: Identifier, unique within the owning week.
        client_name: Client display name.
        building_name: Building display name.
        cleaner_names: Assigned cleaners, primary first.
        hours: Booked duration in hours.
        day: Day of the week the shift falls on.
        shift_date: Concrete calendar date for ``day`` in the owning week.
        start_time: Start time as ``HH:MM``, if known.
        status: Lifecycle status.
        week_id: ISO date of the Monday of the owning week.
        notes: Free-form notes.
        tags: Free-form labels.
        priority: Optional client priority.
        is_recurring: Whether the entry belongs to a recurring series.
        recurring_id: Identifier of the recurring series.
        payment_type: Hourly or flat-rate pay.
        hourly_rate: Pay per hour for hourly shifts.
        flat_rate_amount: Fixed pay for flat-rate shifts.
        overtime_rate: Overtime multiplier override (None uses the pay policy).
        bonus_amount: Bonus added on top of the shift pay.
        deductions: Amount deducted from the shift pay.
    """

    id: str
    client_name: str
    building_name: str
    cleaner_names: tuple[str, ...] = ()
    hours: float = 0.0
    day: Weekday = Weekday.MONDAY
    shift_date: Optional[date] = None
    start_time: Optional[str] = None
    status: ShiftStatus = ShiftStatus.SCHEDULED
    week_id: str = ""
    notes: str = ""
    tags: tuple[str, ...] = ()
    priority: Optional[Priority] = None
    is_recurring: bool = False
    recurring_id: Optional[str] = None
    payment_type: PaymentType = PaymentType.HOURLY
    hourly_rate: float = 15.0
    flat_rate_amount: float = 0.0
    overtime_rate: Optional[float] = None
    bonus_amount: float = 0.0
    deductions: float = 0.0

    def __post_init__(self):
        # Accept lists from callers but keep the entry hashable
        if not isinstance(self.cleaner_names, tuple):
            object.__setattr__(self, "cleaner_names", tuple(self.cleaner_names))
        if not isinstance(self.tags, tuple):
            object.__setattr__(self, "tags", tuple(self.tags))

    @property
    def cleaner_name(self) -> str:
        """Primary cleaner, or an empty string when nobody is assigned."""
        return self.cleaner_names[0] if self.cleaner_names else ""

    @property
    def is_cancelled(self) -> bool:
        return self.status == ShiftStatus.CANCELLED

    @property
    def start_minutes(self) -> Optional[int]:
        """Minutes from midnight when the shift starts."""
        if not self.start_time:
            return None
        return time_to_minutes(self.start_time)

    @property
    def end_minutes(self) -> Optional[int]:
        """Minutes from midnight when the shift ends (may exceed a day)."""
        start = self.start_minutes
        if start is None:
            return None
        return start + round(self.hours * 60)

    @property
    def end_time(self) -> Optional[str]:
        """End time as ``HH:MM``, derived from start time and hours."""
        end = self.end_minutes
        if end is None:
            return None
        return minutes_to_time(end)

    def has_cleaner(self, name: str) -> bool:
        """Check if a cleaner is assigned to this entry."""
        return name in self.cleaner_names


@dataclass(frozen=True)
class Conflict:
    """A scheduling conflict between two or more entries.

    Attributes:
        conflict_type: What kind of conflict this is.
        severity: How serious the conflict is.
        entries: The entries involved.
        description: Human-readable explanation.
        cleaner_name: Cleaner the conflict is about.
        day: Day the conflict occurs on.
    """

    conflict_type: ConflictType
    severity: Severity
    entries: tuple[ShiftEntry, ...]
    description: str
    cleaner_name: str = ""
    day: Optional[Weekday] = None

    @property
    def entry_ids(self) -> list[str]:
        return [e.id for e in self.entries]

    def involves(self, entry_id: str) -> bool:
        """Check if an entry takes part in this conflict."""
        return any(e.id == entry_id for e in self.entries)


@dataclass
class ScheduleStats:
    """Aggregate statistics over a list of shift entries.

    The default instance is the all-zero value returned for an empty list.

    Attributes:
        total_hours: Sum of booked hours.
        total_entries: Number of entries.
        completed_entries: Entries with status completed.
        pending_entries: Entries with status scheduled.
        conflict_count: Number of detected conflicts.
        utilization_rate: Completed entries as a percentage of all entries.
        average_hours_per_cleaner: Mean of per-cleaner hour totals.
        hours_per_cleaner: Hour totals keyed by primary cleaner.
        total_hourly_jobs: Number of hourly-paid entries.
        total_flat_rate_jobs: Number of flat-rate entries.
        total_hourly_amount: Pay for hourly entries, overtime included.
        total_flat_rate_amount: Pay for flat-rate entries.
        total_bonus_amount: Sum of bonuses.
        total_deductions: Sum of deductions.
        total_payroll: Total pay across all entries.
        average_hourly_rate: Mean hourly rate of hourly entries.
        overtime_hours: Hours beyond the regular limit per entry.
        overtime_amount: Premium paid on top of the base rate for overtime.
    """

    total_hours: float = 0.0
    total_entries: int = 0
    completed_entries: int = 0
    pending_entries: int = 0
    conflict_count: int = 0
    utilization_rate: float = 0.0
    average_hours_per_cleaner: float = 0.0
    hours_per_cleaner: dict[str, float] = field(default_factory=dict)
    total_hourly_jobs: int = 0
    total_flat_rate_jobs: int = 0
    total_hourly_amount: float = 0.0
    total_flat_rate_amount: float = 0.0
    total_bonus_amount: float = 0.0
    total_deductions: float = 0.0
    total_payroll: float = 0.0
    average_hourly_rate: float = 0.0
    overtime_hours: float = 0.0
    overtime_amount: float = 0.0


@dataclass
class PaymentSummary:
    """Payment totals for one week, split by payment type."""

    total_jobs: int = 0
    hourly_jobs: int = 0
    flat_rate_jobs: int = 0
    total_hourly_amount: float = 0.0
    total_flat_rate_amount: float = 0.0
    completed_jobs: int = 0
    pending_jobs: int = 0

    @property
    def total_amount(self) -> float:
        return self.total_hourly_amount + self.total_flat_rate_amount


@dataclass
class CleanerPayroll:
    """Pay owed to one cleaner over a pay period.

    Overtime is counted per week: hourly hours past the weekly limit are
    overtime, whatever their length per shift.

    Attributes:
        cleaner_name: Cleaner the payroll belongs to.
        regular_hours: Hourly hours within the weekly limit.
        overtime_hours: Hourly hours past the weekly limit.
        regular_pay: Pay for regular hours.
        overtime_pay: Pay for overtime hours, multiplier included.
        flat_rate_pay: Sum of flat-rate amounts.
        hourly_jobs: Number of hourly entries.
        flat_rate_jobs: Number of flat-rate entries.
        completed_hours: Hourly hours on completed entries.
        scheduled_hours: Hourly hours on entries still scheduled.
    """

    cleaner_name: str
    regular_hours: float = 0.0
    overtime_hours: float = 0.0
    regular_pay: float = 0.0
    overtime_pay: float = 0.0
    flat_rate_pay: float = 0.0
    hourly_jobs: int = 0
    flat_rate_jobs: int = 0
    completed_hours: float = 0.0
    scheduled_hours: float = 0.0

    @property
    def total_hours(self) -> float:
        return self.regular_hours + self.overtime_hours

    @property
    def total_pay(self) -> float:
        return self.regular_pay + self.overtime_pay + self.flat_rate_pay


# ---------------------------------------------------------------------------
# Week identifiers
# ---------------------------------------------------------------------------


def week_id_for(d: date) -> str:
    """Get the week identifier (ISO date of the Monday) for a date.

    Example:
        >>> week_id_for(date(2024, 1, 17))
        '2024-01-15'
    """
    return (d - timedelta(days=d.weekday())).isoformat()


def current_week_id(today: Optional[date] = None) -> str:
    """Get the identifier of the week containing ``today``."""
    return week_id_for(today or date.today())


def parse_week_id(week_id: str) -> date:
    """Parse a week identifier back into the Monday it names.

    Raises:
        InvalidEntryError: If the identifier is blank, malformed or not a Monday.
    """
    if not week_id or not week_id.strip():
        raise InvalidEntryError("Week id is required")
    try:
        monday = date.fromisoformat(week_id.strip())
    except ValueError:
        raise InvalidEntryError(f"Invalid week id '{week_id}', expected YYYY-MM-DD")
    if monday.weekday() != 0:
        raise InvalidEntryError(f"Week id '{week_id}' is not a Monday")
    return monday


def date_for_day(week_id: str, day: Weekday) -> date:
    """Get the calendar date of a weekday within a week."""
    return parse_week_id(week_id) + timedelta(days=day.index)


def week_dates(week_id: str) -> list[date]:
    """List the seven dates of a week, Monday first."""
    monday = parse_week_id(week_id)
    return [monday + timedelta(days=i) for i in range(7)]
