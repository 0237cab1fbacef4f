"""Unassigning cleaners from shifts covered by approved time off."""

import logging
from datetime import date
from typing import Iterable, Optional

from crewschedule.domain.models import UNASSIGNED, ShiftEntry, ShiftStatus, date_for_day
from crewschedule.exceptions import InvalidEntryError

logger = logging.getLogger(__name__)


def append_note(notes: str, note: str) -> str:
    """Append a line to an entry's notes."""
    return f"{notes or ''}\n{note}".strip()


class TimeOffProcessor:
    """Removes a cleaner from every shift during their time off.

    A shift that still has other cleaners just loses this one. A shift
    where this cleaner was the only assignee is marked ``UNASSIGNED`` and
    set back to scheduled so a supervisor can staff it. Either way a note
    records why the cleaner was removed.

    Example:
        >>> processor = TimeOffProcessor(store)
        >>> processor.unassign("Alice", date(2024, 1, 15), date(2024, 1, 19))
        3
    """

    def __init__(self, store):
        self.store = store

    def unassign(self, cleaner_name: str, start: date, end: date) -> int:
        """Unassign a cleaner from all shifts dated within a range.

        Args:
            cleaner_name: Cleaner going on time off.
            start: First day off (inclusive).
            end: Last day off (inclusive).

        Returns:
            Number of shifts changed.
        """
        if end < start:
            raise InvalidEntryError(f"Time off ends ({end}) before it starts ({start})")

        entries = self.store.find_entries(cleaner_name, start, end)
        for entry in entries:
            self._unassign_entry(entry, cleaner_name)

        logger.info(
            "Time off for %s from %s to %s: %d shift(s) unassigned",
            cleaner_name, start, end, len(entries),
        )
        return len(entries)

    def unassign_on_dates(
        self,
        cleaner_name: str,
        dates: Iterable[date],
        recurring_id: Optional[str] = None,
    ) -> int:
        """Unassign a cleaner on specific dates only.

        Args:
            cleaner_name: Cleaner going on time off.
            dates: Individual days off.
            recurring_id: Restrict to shifts of one recurring series.

        Returns:
            Number of shifts changed.
        """
        dates = sorted(set(dates))
        if not dates:
            return 0

        count = 0
        for entry in self.store.find_entries(cleaner_name, dates[0], dates[-1]):
            entry_date = entry.shift_date or date_for_day(entry.week_id, entry.day)
            if entry_date not in dates:
                continue
            if recurring_id is not None and entry.recurring_id != recurring_id:
                continue
            self._unassign_entry(entry, cleaner_name)
            count += 1

        logger.info("Time off for %s on %d date(s): %d shift(s) unassigned", cleaner_name, len(dates), count)
        return count

    def _unassign_entry(self, entry: ShiftEntry, cleaner_name: str) -> ShiftEntry:
        remaining = [name for name in entry.cleaner_names if name != cleaner_name]
        if remaining:
            updates = {
                "cleaner_names": remaining,
                "notes": append_note(entry.notes, f"[{cleaner_name} removed - time off approved]"),
            }
        else:
            updates = {
                "cleaner_names": [UNASSIGNED],
                "status": ShiftStatus.SCHEDULED,
                "notes": append_note(entry.notes, f"[Time off approved for {cleaner_name}]"),
            }
        return self.store.update_schedule_entry(entry.week_id, entry.id, updates)
