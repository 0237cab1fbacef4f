"""Domain models and business rules for crew scheduling."""

from crewschedule.domain.models import (
    UNASSIGNED,
    CleanerPayroll,
    Conflict,
    ConflictType,
    PaymentSummary,
    PaymentType,
    Priority,
    ScheduleStats,
    Severity,
    ShiftEntry,
    ShiftStatus,
    Weekday,
    current_week_id,
    date_for_day,
    parse_week_id,
    week_dates,
    week_id_for,
)
from crewschedule.domain.policies import DefaultPayPolicy, EntryPay, PayPolicy
from crewschedule.domain.recurrence import RecurrencePattern, RecurrenceType

__all__ = [
    # Models
    "CleanerPayroll",
    "Conflict",
    "ConflictType",
    "PaymentSummary",
    "PaymentType",
    "Priority",
    "ScheduleStats",
    "Severity",
    "ShiftEntry",
    "ShiftStatus",
    "UNASSIGNED",
    "Weekday",
    # Week helpers
    "current_week_id",
    "date_for_day",
    "parse_week_id",
    "week_dates",
    "week_id_for",
    # Recurrence
    "RecurrencePattern",
    "RecurrenceType",
    # Policies
    "DefaultPayPolicy",
    "EntryPay",
    "PayPolicy",
]
