"""Serialization of the week mapping to and from its stored JSON form.

The stored form is a JSON object keyed by week id, each value being a list
of entries with camelCase field names. ``cleanerName`` is written alongside
``cleanerNames`` for readers that only know the single-cleaner field.

Decoding is lenient: malformed entries and weeks are dropped and logged,
never raised.
"""

import json
import logging
from datetime import date
from typing import Any, Optional

from crewschedule.domain.models import (
    TIME_PATTERN,
    PaymentType,
    Priority,
    ShiftEntry,
    ShiftStatus,
    Weekday,
    parse_week_id,
)

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("id", "clientName", "buildingName")


def encode_entry(entry: ShiftEntry) -> dict[str, Any]:
    """Convert an entry to its stored dict form."""
    data: dict[str, Any] = {
        "id": entry.id,
        "clientName": entry.client_name,
        "buildingName": entry.building_name,
        "cleanerName": entry.cleaner_name,
        "cleanerNames": list(entry.cleaner_names),
        "hours": entry.hours,
        "day": entry.day.value,
        "status": entry.status.value,
        "weekId": entry.week_id,
        "notes": entry.notes,
        "tags": list(entry.tags),
        "isRecurring": entry.is_recurring,
        "paymentType": entry.payment_type.value,
        "hourlyRate": entry.hourly_rate,
        "flatRateAmount": entry.flat_rate_amount,
        "bonusAmount": entry.bonus_amount,
        "deductions": entry.deductions,
    }
    if entry.shift_date is not None:
        data["date"] = entry.shift_date.isoformat()
    if entry.start_time:
        data["startTime"] = entry.start_time
    if entry.priority is not None:
        data["priority"] = entry.priority.value
    if entry.recurring_id:
        data["recurringId"] = entry.recurring_id
    if entry.overtime_rate is not None:
        data["overtimeRate"] = entry.overtime_rate
    return data


def _text(raw: dict, key: str) -> str:
    value = raw.get(key)
    return value.strip() if isinstance(value, str) else ""


def _number(raw: dict, key: str, default: float) -> float:
    value = raw.get(key)
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _cleaner_names(raw: dict) -> tuple[str, ...]:
    names = raw.get("cleanerNames")
    result: list[str] = []
    if isinstance(names, list):
        for name in names:
            if isinstance(name, str) and name.strip() and name.strip() not in result:
                result.append(name.strip())
    legacy = _text(raw, "cleanerName")
    if not result and legacy:
        result.append(legacy)
    return tuple(result)


def decode_entry(raw: Any, week_id: str) -> Optional[ShiftEntry]:
    """Build an entry from its stored form.

    Args:
        raw: The stored entry (expected to be a dict).
        week_id: Week key the entry was stored under.

    Returns:
        The decoded entry, or None if it is invalid and must be dropped.
    """
    if not isinstance(raw, dict):
        logger.debug("Dropping non-object entry in week %s", week_id)
        return None

    missing = [key for key in REQUIRED_FIELDS if not _text(raw, key)]
    if missing:
        logger.debug("Dropping entry in week %s missing %s", week_id, ", ".join(missing))
        return None

    stored_week = _text(raw, "weekId")
    if stored_week and stored_week != week_id:
        logger.debug(
            "Dropping entry %s: weekId %s does not match week %s",
            raw["id"], stored_week, week_id,
        )
        return None

    try:
        shift_date = None
        if _text(raw, "date"):
            shift_date = date.fromisoformat(_text(raw, "date"))

        if _text(raw, "day"):
            day = Weekday(_text(raw, "day").lower())
        elif shift_date is not None:
            day = Weekday.from_date(shift_date)
        else:
            day = Weekday.MONDAY

        start_time = _text(raw, "startTime") or None
        if start_time is not None and not TIME_PATTERN.match(start_time):
            start_time = None

        priority = None
        if _text(raw, "priority"):
            priority = Priority(_text(raw, "priority"))

        tags = raw.get("tags") or []
        entry = ShiftEntry(
            id=_text(raw, "id"),
            client_name=_text(raw, "clientName"),
            building_name=_text(raw, "buildingName"),
            cleaner_names=_cleaner_names(raw),
            hours=_number(raw, "hours", 0.0),
            day=day,
            shift_date=shift_date,
            start_time=start_time,
            status=ShiftStatus(_text(raw, "status") or ShiftStatus.SCHEDULED.value),
            week_id=week_id,
            notes=raw.get("notes") if isinstance(raw.get("notes"), str) else "",
            tags=tuple(t for t in tags if isinstance(t, str)),
            priority=priority,
            is_recurring=raw.get("isRecurring") is True,
            recurring_id=_text(raw, "recurringId") or None,
            payment_type=PaymentType(_text(raw, "paymentType") or PaymentType.HOURLY.value),
            hourly_rate=_number(raw, "hourlyRate", 15.0),
            flat_rate_amount=_number(raw, "flatRateAmount", 0.0),
            overtime_rate=(
                _number(raw, "overtimeRate", 0.0) if raw.get("overtimeRate") is not None else None
            ),
            bonus_amount=_number(raw, "bonusAmount", 0.0),
            deductions=_number(raw, "deductions", 0.0),
        )
    except (TypeError, ValueError) as exc:
        logger.debug("Dropping entry %s in week %s: %s", raw.get("id"), week_id, exc)
        return None

    return entry


def encode_schedules(schedules: dict[str, list[ShiftEntry]]) -> str:
    """Serialize the whole week mapping to a JSON string."""
    payload = {
        week_id: [encode_entry(entry) for entry in entries]
        for week_id, entries in schedules.items()
    }
    return json.dumps(payload, ensure_ascii=False)


def decode_schedules(text: Optional[str]) -> dict[str, list[ShiftEntry]]:
    """Parse the stored JSON string back into a week mapping.

    Invalid JSON, a non-object root, malformed week keys and invalid
    entries are discarded.
    """
    if not text:
        return {}
    try:
        data = json.loads(text)
    except ValueError as exc:
        logger.warning("Discarding stored schedules: invalid JSON (%s)", exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Discarding stored schedules: root is not an object")
        return {}

    schedules: dict[str, list[ShiftEntry]] = {}
    for week_id, raw_entries in data.items():
        try:
            parse_week_id(week_id)
        except ValueError:
            logger.warning("Discarding week with invalid id %r", week_id)
            continue
        if not isinstance(raw_entries, list):
            logger.warning("Discarding week %s: entries are not a list", week_id)
            continue

        entries = []
        seen_ids = set()
        for raw in raw_entries:
            entry = decode_entry(raw, week_id)
            if entry is None:
                continue
            if entry.id in seen_ids:
                logger.debug("Dropping duplicate entry %s in week %s", entry.id, week_id)
                continue
            seen_ids.add(entry.id)
            entries.append(entry)
        schedules[week_id] = entries

    return schedules
