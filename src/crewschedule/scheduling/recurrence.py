"""Expansion of recurrence patterns into concrete dated shift entries.

The expander walks forward one calendar day at a time from its start date
(today by default) and tests every date against the pattern. Expansion
stops at the occurrence limit, the pattern's end date, or the two-year
horizon, whichever comes first.
"""

import calendar
import logging
import uuid
from dataclasses import replace
from datetime import date, timedelta
from typing import Callable, Optional

from crewschedule.domain.models import ShiftEntry, ShiftStatus, Weekday, week_id_for
from crewschedule.domain.recurrence import RecurrencePattern, RecurrenceType, pattern_weekday

logger = logging.getLogger(__name__)


def _months_between(start: date, d: date) -> int:
    return (d.year - start.year) * 12 + (d.month - start.month)


def _weeks_between(start: date, d: date) -> int:
    start_monday = start - timedelta(days=start.weekday())
    monday = d - timedelta(days=d.weekday())
    return (monday - start_monday).days // 7


class RecurrenceExpander:
    """Expands a recurrence pattern into shift entries.

    Attributes:
        clock: Callable returning today's date; injected for testing.
        max_occurrences: Default occurrence cap when the pattern has none.
        horizon_days: Number of days, starting today, that may be searched.

    Example:
        >>> expander = RecurrenceExpander()
        >>> pattern = RecurrencePattern(RecurrenceType.WEEKLY, days_of_week=[1, 3])
        >>> entries = expander.expand(template, pattern)
    """

    def __init__(
        self,
        clock: Callable[[], date] = date.today,
        max_occurrences: int = 52,
        horizon_days: int = 731,
    ):
        self.clock = clock
        self.max_occurrences = max_occurrences
        self.horizon_days = horizon_days

    def matches(self, pattern: RecurrencePattern, d: date, anchor: date) -> bool:
        """Check whether a date is an occurrence of the pattern.

        Args:
            pattern: The recurrence rule.
            d: Candidate date.
            anchor: First date of the series; intervals count from here.
        """
        if d < anchor:
            return False

        if pattern.pattern_type == RecurrenceType.DAILY:
            return (d - anchor).days % pattern.interval == 0

        if pattern.pattern_type == RecurrenceType.CUSTOM:
            return (d - anchor).days % pattern.custom_days == 0

        if pattern.pattern_type == RecurrenceType.WEEKLY:
            days = pattern.days_of_week or [pattern_weekday(anchor)]
            if pattern_weekday(d) not in days:
                return False
            return _weeks_between(anchor, d) % pattern.interval == 0

        # Monthly: the target day is clamped to short months
        target = pattern.day_of_month or anchor.day
        last_day = calendar.monthrange(d.year, d.month)[1]
        if d.day != min(target, last_day):
            return False
        return _months_between(anchor, d) % pattern.interval == 0

    def occurrence_dates(
        self,
        pattern: RecurrencePattern,
        start: Optional[date] = None,
    ) -> list[date]:
        """List occurrence dates in chronological order.

        Args:
            pattern: The recurrence rule.
            start: First date to consider. Defaults to today.

        Returns:
            Dates matching the pattern, capped by the occurrence limit,
            the pattern's end date and the horizon.
        """
        anchor = start or self.clock()
        limit = pattern.max_occurrences or self.max_occurrences
        dates: list[date] = []

        for offset in range(self.horizon_days):
            d = anchor + timedelta(days=offset)
            if pattern.end_date is not None and d > pattern.end_date:
                break
            if self.matches(pattern, d, anchor):
                dates.append(d)
                if len(dates) >= limit:
                    break

        return dates

    def upcoming(self, pattern: RecurrencePattern, count: int = 5) -> list[date]:
        """Preview the next few occurrence dates starting today."""
        return self.occurrence_dates(pattern)[:count]

    def expand(
        self,
        template: ShiftEntry,
        pattern: RecurrencePattern,
        start: Optional[date] = None,
    ) -> list[ShiftEntry]:
        """Clone a template entry onto every occurrence date.

        Each clone gets its own id, date, day and week id, is marked
        recurring and starts out scheduled.

        Args:
            template: Entry providing client, building, cleaners, hours and pay.
            pattern: The recurrence rule.
            start: First date to consider. Defaults to today.

        Returns:
            The generated entries in chronological order.
        """
        series_id = template.recurring_id or uuid.uuid4().hex[:12]
        entries = [
            replace(
                template,
                id=f"recurring-{series_id}-{d.isoformat()}",
                day=Weekday.from_date(d),
                shift_date=d,
                week_id=week_id_for(d),
                status=ShiftStatus.SCHEDULED,
                is_recurring=True,
                recurring_id=series_id,
            )
            for d in self.occurrence_dates(pattern, start)
        ]
        logger.debug(
            "Expanded series %s (%s) into %d entries",
            series_id, pattern.describe(), len(entries),
        )
        return entries
