"""Exceptions raised by the crew scheduling system."""

from typing import Optional


class ScheduleError(Exception):
    """Base class for all scheduling errors."""


class InvalidEntryError(ScheduleError, ValueError):
    """A shift entry, update or identifier failed validation.

    Attributes:
        message: Human-readable reason.
        result: The validation result that produced the error, if any.
    """

    def __init__(self, message: str, result: Optional[object] = None):
        self.message = message
        self.result = result
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class EntryNotFoundError(ScheduleError, KeyError):
    """No entry with the given id exists in the given week."""

    def __init__(self, entry_id: str, week_id: str):
        self.entry_id = entry_id
        self.week_id = week_id
        self.message = f"Schedule entry {entry_id} not found in week {week_id}"
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class LastCleanerError(InvalidEntryError):
    """Removing a cleaner would leave an entry with nobody assigned."""

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__("Cannot remove the last cleaner from an entry")


class StorageError(ScheduleError):
    """The persistent storage backend failed to read or write."""
