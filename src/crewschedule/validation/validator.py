"""Validation of shift entries before they enter the store.

This module is the single source of truth for what makes an entry
acceptable. The store validates every added or updated entry and raises
InvalidEntryError carrying the ValidationResult when it fails.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Optional

from crewschedule.domain.models import (
    TIME_PATTERN,
    PaymentType,
    ShiftEntry,
    Weekday,
    parse_week_id,
)
from crewschedule.exceptions import InvalidEntryError


class ValidationErrorType(Enum):
    """Types of validation errors."""

    MISSING_FIELD = "missing_field"
    INVALID_HOURS = "invalid_hours"
    NO_CLEANERS = "no_cleaners"
    BLANK_CLEANER = "blank_cleaner"
    DUPLICATE_CLEANER = "duplicate_cleaner"
    INVALID_TIME = "invalid_time"
    INVALID_WEEK = "invalid_week"
    WEEK_MISMATCH = "week_mismatch"
    DATE_OUTSIDE_WEEK = "date_outside_week"
    DAY_DATE_MISMATCH = "day_date_mismatch"
    INVALID_PAYMENT = "invalid_payment"
    DUPLICATE_ID = "duplicate_id"


@dataclass
class ValidationError:
    """A single validation error."""

    error_type: ValidationErrorType
    message: str
    entry_id: Optional[str] = None
    field_name: Optional[str] = None
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        parts = [f"[{self.error_type.value}]"]
        if self.entry_id:
            parts.append(f"Entry {self.entry_id}:")
        parts.append(self.message)
        if self.field_name:
            parts.append(f"(field {self.field_name})")
        return " ".join(parts)


@dataclass
class ValidationResult:
    """Result of validating one or more entries."""

    is_valid: bool
    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add_error(self, error: ValidationError) -> None:
        """Add an error and mark as invalid."""
        self.errors.append(error)
        self.is_valid = False

    def add_warning(self, warning: str) -> None:
        """Add a warning (doesn't affect validity)."""
        self.warnings.append(warning)

    def raise_if_invalid(self) -> None:
        """Raise InvalidEntryError summarizing the first error."""
        if self.is_valid:
            return
        message = str(self.errors[0])
        if len(self.errors) > 1:
            message += f" (and {len(self.errors) - 1} more)"
        raise InvalidEntryError(message, result=self)


class ScheduleValidator:
    """Validates shift entries against the store's acceptance rules.

    Example:
        >>> validator = ScheduleValidator()
        >>> result = validator.validate_entry(entry, "2024-01-01")
        >>> if not result.is_valid:
        ...     for error in result.errors:
        ...         print(error)
    """

    def __init__(self, long_shift_hours: float = 12.0):
        self.long_shift_hours = long_shift_hours

    def validate_entry(
        self,
        entry: ShiftEntry,
        week_id: Optional[str] = None,
    ) -> ValidationResult:
        """Validate a single entry.

        Args:
            entry: The entry to validate.
            week_id: Week the entry belongs to. Defaults to ``entry.week_id``.

        Returns:
            ValidationResult with is_valid flag and any errors.
        """
        result = ValidationResult(is_valid=True)

        self._validate_required(entry, result)
        self._validate_hours(entry, result)
        self._validate_cleaners(entry, result)
        self._validate_start_time(entry, result)
        self._validate_payment(entry, result)
        self._validate_week(entry, week_id or entry.week_id, result)

        return result

    def validate_week(self, entries: list[ShiftEntry], week_id: str) -> ValidationResult:
        """Validate all entries of a week, including id uniqueness."""
        result = ValidationResult(is_valid=True)
        seen: set[str] = set()

        for entry in entries:
            entry_result = self.validate_entry(entry, week_id)
            for error in entry_result.errors:
                result.add_error(error)
            for warning in entry_result.warnings:
                result.add_warning(warning)

            if entry.id in seen:
                result.add_error(
                    ValidationError(
                        error_type=ValidationErrorType.DUPLICATE_ID,
                        message=f"Duplicate entry id in week {week_id}",
                        entry_id=entry.id,
                    )
                )
            seen.add(entry.id)

        return result

    def _validate_required(self, entry: ShiftEntry, result: ValidationResult) -> None:
        for field_name in ("id", "client_name", "building_name"):
            value = getattr(entry, field_name)
            if not isinstance(value, str) or not value.strip():
                result.add_error(
                    ValidationError(
                        error_type=ValidationErrorType.MISSING_FIELD,
                        message=f"{field_name} is required",
                        entry_id=entry.id or None,
                        field_name=field_name,
                    )
                )

    def _validate_hours(self, entry: ShiftEntry, result: ValidationResult) -> None:
        if isinstance(entry.hours, bool) or not isinstance(entry.hours, (int, float)):
            result.add_error(
                ValidationError(
                    error_type=ValidationErrorType.INVALID_HOURS,
                    message=f"Hours must be a number, got {entry.hours!r}",
                    entry_id=entry.id,
                    field_name="hours",
                )
            )
            return
        if entry.hours <= 0:
            result.add_error(
                ValidationError(
                    error_type=ValidationErrorType.INVALID_HOURS,
                    message=f"Hours must be positive, got {entry.hours}",
                    entry_id=entry.id,
                    field_name="hours",
                )
            )
        elif entry.hours > 24:
            result.add_error(
                ValidationError(
                    error_type=ValidationErrorType.INVALID_HOURS,
                    message=f"Hours cannot exceed 24, got {entry.hours}",
                    entry_id=entry.id,
                    field_name="hours",
                )
            )
        elif entry.hours > self.long_shift_hours:
            result.add_warning(f"Entry {entry.id}: long shift of {entry.hours} hours")

    def _validate_cleaners(self, entry: ShiftEntry, result: ValidationResult) -> None:
        if not entry.cleaner_names:
            result.add_error(
                ValidationError(
                    error_type=ValidationErrorType.NO_CLEANERS,
                    message="At least one cleaner must be assigned",
                    entry_id=entry.id,
                    field_name="cleaner_names",
                )
            )
            return

        seen: set[str] = set()
        for name in entry.cleaner_names:
            if not isinstance(name, str) or not name.strip():
                result.add_error(
                    ValidationError(
                        error_type=ValidationErrorType.BLANK_CLEANER,
                        message="Cleaner names cannot be blank",
                        entry_id=entry.id,
                        field_name="cleaner_names",
                    )
                )
            elif name in seen:
                result.add_error(
                    ValidationError(
                        error_type=ValidationErrorType.DUPLICATE_CLEANER,
                        message=f"Cleaner {name} is listed twice",
                        entry_id=entry.id,
                        field_name="cleaner_names",
                    )
                )
            seen.add(name)

    def _validate_start_time(self, entry: ShiftEntry, result: ValidationResult) -> None:
        if entry.start_time is None:
            return
        if not TIME_PATTERN.match(entry.start_time):
            result.add_error(
                ValidationError(
                    error_type=ValidationErrorType.INVALID_TIME,
                    message=f"Invalid start time '{entry.start_time}', expected HH:MM",
                    entry_id=entry.id,
                    field_name="start_time",
                )
            )

    def _validate_payment(self, entry: ShiftEntry, result: ValidationResult) -> None:
        amounts = {
            "hourly_rate": entry.hourly_rate,
            "flat_rate_amount": entry.flat_rate_amount,
            "bonus_amount": entry.bonus_amount,
            "deductions": entry.deductions,
        }
        for field_name, amount in amounts.items():
            if amount < 0:
                result.add_error(
                    ValidationError(
                        error_type=ValidationErrorType.INVALID_PAYMENT,
                        message=f"{field_name} cannot be negative",
                        entry_id=entry.id,
                        field_name=field_name,
                    )
                )
        if entry.overtime_rate is not None and entry.overtime_rate < 1:
            result.add_error(
                ValidationError(
                    error_type=ValidationErrorType.INVALID_PAYMENT,
                    message="Overtime multiplier must be at least 1",
                    entry_id=entry.id,
                    field_name="overtime_rate",
                )
            )
        if entry.payment_type == PaymentType.FLAT_RATE and entry.flat_rate_amount == 0:
            result.add_warning(f"Entry {entry.id}: flat-rate shift with no amount")

    def _validate_week(
        self,
        entry: ShiftEntry,
        week_id: str,
        result: ValidationResult,
    ) -> None:
        try:
            monday = parse_week_id(week_id)
        except InvalidEntryError as exc:
            result.add_error(
                ValidationError(
                    error_type=ValidationErrorType.INVALID_WEEK,
                    message=exc.message,
                    entry_id=entry.id,
                    field_name="week_id",
                )
            )
            return

        if entry.week_id and entry.week_id != week_id:
            result.add_error(
                ValidationError(
                    error_type=ValidationErrorType.WEEK_MISMATCH,
                    message=f"Entry belongs to week {entry.week_id}, not {week_id}",
                    entry_id=entry.id,
                    field_name="week_id",
                )
            )

        if entry.shift_date is None:
            return
        if not monday <= entry.shift_date <= monday + timedelta(days=6):
            result.add_error(
                ValidationError(
                    error_type=ValidationErrorType.DATE_OUTSIDE_WEEK,
                    message=f"Date {entry.shift_date} is outside week {week_id}",
                    entry_id=entry.id,
                    field_name="shift_date",
                )
            )
        elif Weekday.from_date(entry.shift_date) != entry.day:
            result.add_error(
                ValidationError(
                    error_type=ValidationErrorType.DAY_DATE_MISMATCH,
                    message=(
                        f"Date {entry.shift_date} is a "
                        f"{Weekday.from_date(entry.shift_date).value}, not {entry.day.value}"
                    ),
                    entry_id=entry.id,
                    field_name="day",
                )
            )
