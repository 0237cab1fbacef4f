"""Weekly schedule store.

The store owns the mapping from week id to that week's shift entries,
mirrors the whole mapping to a key-value storage backend after every
mutation, and caches derived views (sorted schedule, statistics and
conflicts) per week. A mutation invalidates the caches of the weeks it
touched and nothing else.
"""

import logging
import uuid
from dataclasses import fields, replace
from datetime import date
from typing import Any, Iterable, Optional, Union

from crewschedule.config import StoreConfig
from crewschedule.domain.models import (
    UNASSIGNED,
    CleanerPayroll,
    Conflict,
    PaymentSummary,
    PaymentType,
    Priority,
    ScheduleStats,
    ShiftEntry,
    ShiftStatus,
    Weekday,
    date_for_day,
    parse_week_id,
    week_id_for,
)
from crewschedule.domain.recurrence import RecurrencePattern
from crewschedule.exceptions import (
    EntryNotFoundError,
    InvalidEntryError,
    LastCleanerError,
    StorageError,
)
from crewschedule.scheduling.conflicts import ConflictScanner
from crewschedule.scheduling.recurrence import RecurrenceExpander
from crewschedule.scheduling.stats import StatsAggregator
from crewschedule.storage.backends import KeyValueStorage
from crewschedule.storage.codec import decode_schedules, encode_schedules
from crewschedule.storage.write_queue import WriteQueue
from crewschedule.validation.validator import ScheduleValidator

logger = logging.getLogger(__name__)

READ_ONLY_FIELDS = {"id", "week_id"}
UPDATABLE_FIELDS = {f.name for f in fields(ShiftEntry)} - READ_ONLY_FIELDS

_ENUM_FIELDS = {
    "day": Weekday,
    "status": ShiftStatus,
    "priority": Priority,
    "payment_type": PaymentType,
}
_NUMBER_FIELDS = {
    "hours",
    "hourly_rate",
    "flat_rate_amount",
    "overtime_rate",
    "bonus_amount",
    "deductions",
}
_NULLABLE_FIELDS = {"priority", "overtime_rate"}
_REQUIRED_FIELDS = (
    set(_ENUM_FIELDS) | _NUMBER_FIELDS | {"cleaner_names", "tags"}
) - _NULLABLE_FIELDS


def sort_entries(entries: Iterable[ShiftEntry]) -> list[ShiftEntry]:
    """Sort entries by weekday, then start time.

    Entries without a start time follow the timed entries of the same day
    and keep their relative order.
    """
    return sorted(
        entries,
        key=lambda e: (e.day.index, e.start_time is None, e.start_minutes or 0),
    )


def _dedupe(names: Iterable[str]) -> tuple[str, ...]:
    result: list[str] = []
    for name in names:
        name = name.strip() if isinstance(name, str) else name
        if name and name not in result:
            result.append(name)
    return tuple(result)


class WeekScheduleStore:
    """Per-week store of shift entries backed by key-value storage.

    The mapping is loaded lazily on first access. Every mutation writes
    the whole mapping: immediately when ``config.force_save`` is set, with
    the debounced write queue as fallback when the immediate write fails.

    Example:
        >>> store = WeekScheduleStore(JsonFileStorage("schedules.json"))
        >>> entry = ShiftEntry(id="", client_name="Acme", building_name="HQ",
        ...                    cleaner_names=("Alice",), hours=3)
        >>> store.add_schedule_entry("2024-01-01", entry)
        >>> store.get_week_schedule("2024-01-01")
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        config: Optional[StoreConfig] = None,
        validator: Optional[ScheduleValidator] = None,
        conflict_scanner: Optional[ConflictScanner] = None,
        stats_aggregator: Optional[StatsAggregator] = None,
        expander: Optional[RecurrenceExpander] = None,
    ):
        self.storage = storage
        self.config = config or StoreConfig()
        self.validator = validator or ScheduleValidator()
        self.conflict_scanner = conflict_scanner or ConflictScanner()
        self.stats_aggregator = stats_aggregator or StatsAggregator(
            conflict_scanner=self.conflict_scanner
        )
        self.expander = expander or RecurrenceExpander(
            max_occurrences=self.config.max_recurrence_occurrences,
            horizon_days=self.config.recurrence_horizon_days,
        )

        self._schedules: dict[str, list[ShiftEntry]] = {}
        self._loaded = False
        self._write_queue = WriteQueue(self._write_payload, self.config.debounce_seconds)

        # Derived views, scoped by week id
        self._schedule_cache: dict[str, list[ShiftEntry]] = {}
        self._stats_cache: dict[str, ScheduleStats] = {}
        self._conflict_cache: dict[str, list[Conflict]] = {}

    # ------------------------------------------------------------------
    # Loading and reading
    # ------------------------------------------------------------------

    def load(self) -> None:
        """(Re)load the mapping from storage, dropping invalid data.

        Never raises: unreadable storage or malformed data yields an
        empty mapping and a logged warning.
        """
        try:
            text = self.storage.get_item(self.config.storage_key)
        except StorageError as exc:
            logger.warning("Could not read stored schedules: %s", exc)
            text = None

        self._schedules = decode_schedules(text)
        self._loaded = True
        self.clear_caches()
        logger.info(
            "Loaded %d week(s), %d entries from '%s'",
            len(self._schedules),
            sum(len(v) for v in self._schedules.values()),
            self.config.storage_key,
        )

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def clear_caches(self) -> None:
        self._schedule_cache.clear()
        self._stats_cache.clear()
        self._conflict_cache.clear()

    @property
    def week_ids(self) -> list[str]:
        """Week ids that currently hold at least one entry, oldest first."""
        self._ensure_loaded()
        return sorted(w for w, entries in self._schedules.items() if entries)

    def get_week_schedule(self, week_id: str, force_refresh: bool = False) -> list[ShiftEntry]:
        """Get the entries of a week, sorted by weekday then start time.

        Args:
            week_id: ISO date of the week's Monday.
            force_refresh: Recompute from the mapping instead of the cache.

        Returns:
            A new list; mutating it does not affect the store.
        """
        self._require_week_id(week_id)
        self._ensure_loaded()

        if not force_refresh and week_id in self._schedule_cache:
            return list(self._schedule_cache[week_id])

        entries = [
            e for e in self._schedules.get(week_id, [])
            if e.id and e.client_name and e.building_name and e.week_id == week_id
        ]
        ordered = sort_entries(entries)
        self._schedule_cache[week_id] = ordered
        return list(ordered)

    def get_entry(self, week_id: str, entry_id: str) -> ShiftEntry:
        """Look up a single entry.

        Raises:
            EntryNotFoundError: If the week has no entry with that id.
        """
        return self._find(week_id, entry_id)[1]

    def get_week_stats(self, week_id: str) -> ScheduleStats:
        """Statistics for a week, cached until the week changes."""
        if week_id not in self._stats_cache:
            entries = self.get_week_schedule(week_id)
            self._stats_cache[week_id] = self.stats_aggregator.calculate_schedule_stats(entries)
        return self._stats_cache[week_id]

    def get_week_conflicts(self, week_id: str) -> list[Conflict]:
        """Double-booking conflicts for a week, cached until the week changes."""
        if week_id not in self._conflict_cache:
            entries = self.get_week_schedule(week_id)
            self._conflict_cache[week_id] = self.conflict_scanner.detect_conflicts(entries)
        return list(self._conflict_cache[week_id])

    def get_payment_summary(self, week_id: str) -> PaymentSummary:
        """Payment totals for a week, split by payment type."""
        stats = self.get_week_stats(week_id)
        return PaymentSummary(
            total_jobs=stats.total_entries,
            hourly_jobs=stats.total_hourly_jobs,
            flat_rate_jobs=stats.total_flat_rate_jobs,
            total_hourly_amount=stats.total_hourly_amount,
            total_flat_rate_amount=stats.total_flat_rate_amount,
            completed_jobs=stats.completed_entries,
            pending_jobs=stats.pending_entries,
        )

    def get_payroll_summary(
        self,
        week_ids: Iterable[str],
        cleaner_names: Optional[Iterable[str]] = None,
    ) -> dict[str, CleanerPayroll]:
        """Per-cleaner payroll over a pay period made of whole weeks."""
        entries: list[ShiftEntry] = []
        for week_id in week_ids:
            entries.extend(self.get_week_schedule(week_id))
        return self.stats_aggregator.calculate_payroll_summary(entries, cleaner_names)

    def find_entries(
        self,
        cleaner_name: str,
        start: date,
        end: date,
    ) -> list[ShiftEntry]:
        """Find entries assigned to a cleaner dated within a range (inclusive)."""
        self._ensure_loaded()
        found = []
        for week_id in self.week_ids:
            for entry in self.get_week_schedule(week_id):
                entry_date = entry.shift_date or date_for_day(week_id, entry.day)
                if start <= entry_date <= end and entry.has_cleaner(cleaner_name):
                    found.append(entry)
        return found

    # ------------------------------------------------------------------
    # Entry mutations
    # ------------------------------------------------------------------

    def add_schedule_entry(self, week_id: str, entry: ShiftEntry) -> ShiftEntry:
        """Add an entry to a week.

        The entry's ``week_id`` is forced to ``week_id``; a missing id is
        generated and a missing date is derived from the week and day.

        Args:
            week_id: Week to add the entry to.
            entry: The entry to add.

        Returns:
            The entry as stored.

        Raises:
            InvalidEntryError: If the entry fails validation or its id is
                already used in the week.
        """
        self._require_week_id(week_id)
        self._ensure_loaded()

        entry = self._prepare_new_entry(week_id, entry)
        self.validator.validate_entry(entry, week_id).raise_if_invalid()
        if any(e.id == entry.id for e in self._schedules.get(week_id, [])):
            raise InvalidEntryError(f"Schedule entry {entry.id} already exists in week {week_id}")

        self._commit({week_id: self._schedules.get(week_id, []) + [entry]})
        logger.info("Added entry %s to week %s", entry.id, week_id)
        return entry

    def add_entries(self, entries: Iterable[ShiftEntry]) -> list[ShiftEntry]:
        """Add entries that may span several weeks, in one write.

        Each entry goes to its own ``week_id`` (or the week of its date).
        Nothing is stored if any entry is invalid.
        """
        self._ensure_loaded()
        prepared: list[ShiftEntry] = []
        additions: dict[str, list[ShiftEntry]] = {}

        for entry in entries:
            week_id = entry.week_id or (week_id_for(entry.shift_date) if entry.shift_date else "")
            self._require_week_id(week_id)
            entry = self._prepare_new_entry(week_id, entry)
            self.validator.validate_entry(entry, week_id).raise_if_invalid()

            existing = self._schedules.get(week_id, []) + additions.get(week_id, [])
            if any(e.id == entry.id for e in existing):
                raise InvalidEntryError(
                    f"Schedule entry {entry.id} already exists in week {week_id}"
                )
            additions.setdefault(week_id, []).append(entry)
            prepared.append(entry)

        if not prepared:
            return []
        self._commit({
            week_id: self._schedules.get(week_id, []) + new_entries
            for week_id, new_entries in additions.items()
        })
        logger.info("Added %d entries across %d week(s)", len(prepared), len(additions))
        return prepared

    def add_recurring_series(
        self,
        template: ShiftEntry,
        pattern: RecurrencePattern,
        start: Optional[date] = None,
    ) -> list[ShiftEntry]:
        """Expand a recurrence pattern and store every occurrence."""
        entries = self.expander.expand(template, pattern, start)
        return self.add_entries(entries)

    def update_schedule_entry(
        self,
        week_id: str,
        entry_id: str,
        updates: dict[str, Any],
    ) -> ShiftEntry:
        """Merge field updates into an entry.

        Keys are ShiftEntry field names; ``cleaner_name`` is also accepted
        and replaces the primary cleaner. String values are converted for
        enum and date fields. An empty ``updates`` changes nothing.

        Raises:
            EntryNotFoundError: If the entry does not exist.
            InvalidEntryError: For unknown or read-only fields, or if the
                updated entry fails validation.
        """
        index, current = self._find(week_id, entry_id)
        if not updates:
            return current

        updated = replace(current, **self._normalize_updates(week_id, current, updates))
        self.validator.validate_entry(updated, week_id).raise_if_invalid()

        entries = list(self._schedules[week_id])
        entries[index] = updated
        self._commit({week_id: entries})
        logger.info("Updated entry %s in week %s: %s", entry_id, week_id, ", ".join(updates))
        return updated

    def delete_schedule_entry(self, week_id: str, entry_id: str) -> ShiftEntry:
        """Remove an entry and return it.

        Raises:
            EntryNotFoundError: If the entry does not exist.
        """
        index, entry = self._find(week_id, entry_id)
        entries = list(self._schedules[week_id])
        del entries[index]
        self._commit({week_id: entries})
        logger.info("Deleted entry %s from week %s", entry_id, week_id)
        return entry

    def update_week_schedule(self, week_id: str, entries: Iterable[ShiftEntry]) -> list[ShiftEntry]:
        """Replace all entries of a week."""
        self._require_week_id(week_id)
        self._ensure_loaded()

        prepared = [self._prepare_new_entry(week_id, e) for e in entries]
        self.validator.validate_week(prepared, week_id).raise_if_invalid()

        self._commit({week_id: prepared})
        logger.info("Replaced week %s with %d entries", week_id, len(prepared))
        return self.get_week_schedule(week_id)

    def bulk_update_entries(
        self,
        week_id: str,
        updates: dict[str, dict[str, Any]],
    ) -> list[ShiftEntry]:
        """Apply updates to several entries of a week in one write.

        Args:
            week_id: Week holding the entries.
            updates: Mapping of entry id to field updates.

        Returns:
            The updated entries. Nothing changes if any update fails.
        """
        self._require_week_id(week_id)
        self._ensure_loaded()

        entries = list(self._schedules.get(week_id, []))
        positions = {e.id: i for i, e in enumerate(entries)}
        updated = []
        for entry_id, changes in updates.items():
            if entry_id not in positions:
                raise EntryNotFoundError(entry_id, week_id)
            index = positions[entry_id]
            if changes:
                entry = replace(
                    entries[index], **self._normalize_updates(week_id, entries[index], changes)
                )
                self.validator.validate_entry(entry, week_id).raise_if_invalid()
                entries[index] = entry
            updated.append(entries[index])

        if updated:
            self._commit({week_id: entries})
            logger.info("Bulk updated %d entries in week %s", len(updated), week_id)
        return updated

    def bulk_delete_entries(self, week_id: str, entry_ids: Iterable[str]) -> int:
        """Delete several entries of a week. Unknown ids are ignored.

        Returns:
            Number of entries removed.
        """
        self._require_week_id(week_id)
        self._ensure_loaded()

        doomed = set(entry_ids)
        entries = self._schedules.get(week_id, [])
        kept = [e for e in entries if e.id not in doomed]
        removed = len(entries) - len(kept)
        if removed:
            self._commit({week_id: kept})
            logger.info("Bulk deleted %d entries from week %s", removed, week_id)
        return removed

    def clear_week_schedule(self, week_id: str) -> None:
        """Remove every entry of a week."""
        self._require_week_id(week_id)
        self._ensure_loaded()
        self._commit({week_id: None})
        logger.info("Cleared week %s", week_id)

    def reset_all_schedules(self) -> None:
        """Drop every week, in memory and in storage.

        Raises:
            StorageError: If the stored data could not be removed.
        """
        self._write_queue.discard()
        self._schedules = {}
        self._loaded = True
        self.clear_caches()
        self.conflict_scanner.clear_cache()
        self.storage.remove_items([self.config.storage_key])
        logger.info("Reset all schedules")

    # ------------------------------------------------------------------
    # Cleaner assignment
    # ------------------------------------------------------------------

    def get_entry_cleaners(self, week_id: str, entry_id: str) -> list[str]:
        return list(self.get_entry(week_id, entry_id).cleaner_names)

    def add_cleaner_to_entry(self, week_id: str, entry_id: str, cleaner_name: str) -> ShiftEntry:
        """Assign an extra cleaner to an entry.

        Adding a cleaner already on the entry changes nothing. Assigning a
        real cleaner to an UNASSIGNED entry replaces the placeholder.
        """
        cleaner_name = self._require_cleaner(cleaner_name)
        _, entry = self._find(week_id, entry_id)
        if entry.has_cleaner(cleaner_name):
            return entry

        names = [n for n in entry.cleaner_names if n != UNASSIGNED]
        return self.update_schedule_entry(
            week_id, entry_id, {"cleaner_names": names + [cleaner_name]}
        )

    def remove_cleaner_from_entry(
        self,
        week_id: str,
        entry_id: str,
        cleaner_name: str,
    ) -> ShiftEntry:
        """Unassign a cleaner from an entry.

        Removing a cleaner who is not assigned changes nothing.

        Raises:
            LastCleanerError: If the cleaner is the only one assigned. The
                entry is left unchanged.
        """
        _, entry = self._find(week_id, entry_id)
        if not entry.has_cleaner(cleaner_name):
            return entry
        if len(entry.cleaner_names) == 1:
            raise LastCleanerError(entry_id)

        names = [n for n in entry.cleaner_names if n != cleaner_name]
        return self.update_schedule_entry(week_id, entry_id, {"cleaner_names": names})

    def update_entry_cleaners(
        self,
        week_id: str,
        entry_id: str,
        cleaner_names: Iterable[str],
    ) -> ShiftEntry:
        """Replace the full list of cleaners on an entry.

        Raises:
            InvalidEntryError: If the list is empty.
        """
        names = _dedupe(cleaner_names)
        if not names:
            raise InvalidEntryError("An entry must have at least one cleaner")
        return self.update_schedule_entry(week_id, entry_id, {"cleaner_names": names})

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def update_entry_payment(
        self,
        week_id: str,
        entry_id: str,
        payment_type: Union[PaymentType, str],
        amount: float,
    ) -> ShiftEntry:
        """Switch an entry's payment type and set its rate or flat amount."""
        try:
            payment_type = PaymentType(payment_type)
        except ValueError:
            raise InvalidEntryError(f"Invalid payment type '{payment_type}'")

        updates: dict[str, Any] = {"payment_type": payment_type}
        if payment_type == PaymentType.HOURLY:
            updates["hourly_rate"] = amount
        else:
            updates["flat_rate_amount"] = amount
        return self.update_schedule_entry(week_id, entry_id, updates)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @property
    def has_pending_writes(self) -> bool:
        return self._write_queue.has_pending

    def flush(self) -> None:
        """Write any queued mapping now.

        Raises:
            StorageError: If the write fails; the data stays queued.
        """
        self._write_queue.flush()

    def close(self) -> None:
        """Flush queued writes and stop the write timer."""
        try:
            self.flush()
        finally:
            self._write_queue.close()

    def _write_payload(self, payload: str) -> None:
        try:
            self.storage.set_item(self.config.storage_key, payload)
        except OSError as exc:
            raise StorageError(str(exc)) from exc

    def _persist(self, payload: str) -> None:
        if self.config.force_save:
            try:
                self._write_queue.write_now(payload)
                return
            except StorageError as exc:
                logger.warning(
                    "Immediate save failed (%s); retrying in %.1fs",
                    exc, self.config.debounce_seconds,
                )
        self._write_queue.schedule(payload)

    def _commit(self, changes: dict[str, Optional[list[ShiftEntry]]]) -> None:
        """Swap changed weeks into the mapping and persist it.

        A week mapped to ``None`` is removed. The mapping is encoded before
        the swap, so an entry that cannot be stored leaves the previous state
        in place.
        """
        schedules = dict(self._schedules)
        for week_id, entries in changes.items():
            if entries is None:
                schedules.pop(week_id, None)
            else:
                schedules[week_id] = entries

        try:
            payload = encode_schedules(schedules)
        except (AttributeError, TypeError, ValueError) as exc:
            raise InvalidEntryError(f"Schedule could not be encoded: {exc}") from exc

        self._schedules = schedules
        for week_id in changes:
            self._schedule_cache.pop(week_id, None)
            self._stats_cache.pop(week_id, None)
            self._conflict_cache.pop(week_id, None)
        self._persist(payload)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_week_id(week_id: str) -> None:
        parse_week_id(week_id)

    @staticmethod
    def _require_cleaner(cleaner_name: str) -> str:
        if not isinstance(cleaner_name, str) or not cleaner_name.strip():
            raise InvalidEntryError("Cleaner name is required")
        return cleaner_name.strip()

    def _find(self, week_id: str, entry_id: str) -> tuple[int, ShiftEntry]:
        self._require_week_id(week_id)
        if not entry_id or not entry_id.strip():
            raise InvalidEntryError("Entry id is required")
        self._ensure_loaded()

        for index, entry in enumerate(self._schedules.get(week_id, [])):
            if entry.id == entry_id:
                return index, entry
        raise EntryNotFoundError(entry_id, week_id)

    def _prepare_new_entry(self, week_id: str, entry: ShiftEntry) -> ShiftEntry:
        return replace(
            entry,
            id=entry.id.strip() if entry.id and entry.id.strip() else f"entry-{uuid.uuid4().hex[:12]}",
            week_id=week_id,
            cleaner_names=_dedupe(entry.cleaner_names),
            shift_date=entry.shift_date or date_for_day(week_id, entry.day),
        )

    def _normalize_updates(
        self,
        week_id: str,
        current: ShiftEntry,
        updates: dict[str, Any],
    ) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        primary = None

        for key, value in updates.items():
            if key == "cleaner_name":
                primary = self._require_cleaner(value)
            elif key in READ_ONLY_FIELDS:
                raise InvalidEntryError(f"Field '{key}' cannot be updated")
            elif key not in UPDATABLE_FIELDS:
                raise InvalidEntryError(f"Unknown field '{key}'")
            else:
                changes[key] = self._coerce(key, value)

        if primary is not None:
            names = list(changes.get("cleaner_names", current.cleaner_names))
            names = [primary] + [n for n in names[1:] if n != primary] if names else [primary]
            changes["cleaner_names"] = tuple(names)
        if "cleaner_names" in changes:
            changes["cleaner_names"] = _dedupe(changes["cleaner_names"])

        # Moving an entry to another day moves its date along with it
        if "day" in changes and "shift_date" not in changes:
            changes["shift_date"] = date_for_day(week_id, changes["day"])

        return changes

    @staticmethod
    def _coerce(key: str, value: Any) -> Any:
        if value is None:
            if key in _REQUIRED_FIELDS:
                raise InvalidEntryError(f"Field '{key}' cannot be empty")
            return value
        try:
            if key in _ENUM_FIELDS:
                return _ENUM_FIELDS[key](value)
            if key == "shift_date" and isinstance(value, str):
                return date.fromisoformat(value)
            if key in _NUMBER_FIELDS:
                if isinstance(value, bool):
                    raise ValueError("expected a number")
                return float(value)
            if key in ("cleaner_names", "tags"):
                if isinstance(value, str):
                    raise ValueError(f"{key} must be a list")
                return tuple(value)
        except (TypeError, ValueError) as exc:
            raise InvalidEntryError(f"Invalid value for {key}: {value!r} ({exc})")
        return value
