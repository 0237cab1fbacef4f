"""Recurrence patterns for repeating shifts."""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional

from crewschedule.exceptions import InvalidEntryError

# Day numbering used by recurrence patterns: 0 = Sunday ... 6 = Saturday
PATTERN_DAY_NAMES = [
    "Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday",
]


class RecurrenceType(Enum):
    """How often a recurring shift repeats."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"  # Every `custom_days` days


def pattern_weekday(d: date) -> int:
    """Weekday of a date in pattern numbering (0 = Sunday)."""
    return (d.weekday() + 1) % 7


@dataclass
class RecurrencePattern:
    """Rule describing on which dates a recurring shift occurs.

    Attributes:
        pattern_type: Daily, weekly, monthly or custom repetition.
        interval: Repeat every N days, weeks or months.
        days_of_week: Weekdays for weekly patterns (0 = Sunday ... 6 = Saturday).
            Empty means the weekday of the first date.
        day_of_month: Day for monthly patterns. Clamped to the month length.
            None means the day of the first date.
        end_date: Last date (inclusive) an occurrence may fall on.
        max_occurrences: Stop after this many occurrences (None uses the
            configured default).
        custom_days: Spacing in days for custom patterns.
    """

    pattern_type: RecurrenceType
    interval: int = 1
    days_of_week: list[int] = field(default_factory=list)
    day_of_month: Optional[int] = None
    end_date: Optional[date] = None
    max_occurrences: Optional[int] = None
    custom_days: int = 1

    def __post_init__(self):
        if self.interval < 1:
            raise InvalidEntryError("Recurrence interval must be at least 1")
        for day in self.days_of_week:
            if not 0 <= day <= 6:
                raise InvalidEntryError(
                    f"Invalid day of week {day}, expected 0 (Sunday) to 6 (Saturday)"
                )
        if self.day_of_month is not None and not 1 <= self.day_of_month <= 31:
            raise InvalidEntryError(f"Invalid day of month {self.day_of_month}")
        if self.max_occurrences is not None and self.max_occurrences < 1:
            raise InvalidEntryError("max_occurrences must be at least 1")
        if self.custom_days < 1:
            raise InvalidEntryError("custom_days must be at least 1")

    def describe(self) -> str:
        """Render a human-readable summary of the pattern.

        Example:
            >>> RecurrencePattern(RecurrenceType.WEEKLY, days_of_week=[1, 3]).describe()
            'Every week on Monday, Wednesday'
        """
        if self.pattern_type == RecurrenceType.DAILY:
            text = "Every day" if self.interval == 1 else f"Every {self.interval} days"
        elif self.pattern_type == RecurrenceType.CUSTOM:
            text = "Every day" if self.custom_days == 1 else f"Every {self.custom_days} days"
        elif self.pattern_type == RecurrenceType.WEEKLY:
            text = "Every week" if self.interval == 1 else f"Every {self.interval} weeks"
            if self.days_of_week:
                names = [PATTERN_DAY_NAMES[d] for d in sorted(set(self.days_of_week))]
                text += " on " + ", ".join(names)
        else:
            text = "Every month" if self.interval == 1 else f"Every {self.interval} months"
            if self.day_of_month is not None:
                text += f" on day {self.day_of_month}"

        if self.end_date is not None:
            text += f", until {self.end_date.isoformat()}"
        if self.max_occurrences is not None:
            text += f", for {self.max_occurrences} occurrences"
        return text
