"""Tests for storage backends, the JSON codec and the write queue."""

import json
import threading
from datetime import date

import pytest

from crewschedule.domain.models import (
    PaymentType,
    Priority,
    ShiftEntry,
    ShiftStatus,
    Weekday,
)
from crewschedule.exceptions import StorageError
from crewschedule.storage.backends import JsonFileStorage, MemoryStorage
from crewschedule.storage.codec import (
    decode_entry,
    decode_schedules,
    encode_entry,
    encode_schedules,
)
from crewschedule.storage.write_queue import WriteQueue

WEEK = "2024-01-01"


def make_entry(entry_id="e1", **kwargs):
    defaults = dict(
        id=entry_id,
        client_name="Acme",
        building_name="HQ",
        cleaner_names=("Alice",),
        hours=3.0,
        day=Weekday.MONDAY,
        shift_date=date(2024, 1, 1),
        week_id=WEEK,
    )
    defaults.update(kwargs)
    return ShiftEntry(**defaults)


class TestCodec:
    """Tests for encoding and decoding the stored form."""

    def test_encode_uses_camel_case(self):
        data = encode_entry(make_entry(start_time="07:15", cleaner_names=("Alice", "Bob")))
        assert data["clientName"] == "Acme"
        assert data["cleanerName"] == "Alice"
        assert data["cleanerNames"] == ["Alice", "Bob"]
        assert data["startTime"] == "07:15"
        assert data["date"] == "2024-01-01"
        assert data["weekId"] == WEEK
        assert "overtimeRate" not in data

    def test_round_trip_keeps_entries(self):
        """Encoding then decoding the mapping reconstructs the same entries."""
        schedules = {
            WEEK: [
                make_entry("a", start_time="08:00", tags=("vip", "keys")),
                make_entry(
                    "b",
                    cleaner_names=("Bob", "Carol"),
                    day=Weekday.FRIDAY,
                    shift_date=date(2024, 1, 5),
                    status=ShiftStatus.COMPLETED,
                    priority=Priority.HIGH,
                    payment_type=PaymentType.FLAT_RATE,
                    flat_rate_amount=90.0,
                    overtime_rate=2.0,
                    is_recurring=True,
                    recurring_id="s1",
                    notes="side door",
                ),
            ],
        }
        assert decode_schedules(encode_schedules(schedules)) == schedules

    def test_entries_missing_required_fields_dropped(self):
        raw = {
            WEEK: [
                {"id": "ok", "clientName": "Acme", "buildingName": "HQ", "cleanerName": "Alice", "hours": 1},
                {"clientName": "Acme", "buildingName": "HQ"},
                {"id": "x", "buildingName": "HQ"},
                {"id": "y", "clientName": "Acme", "buildingName": "  "},
                "not an entry",
            ]
        }
        decoded = decode_schedules(json.dumps(raw))
        assert [e.id for e in decoded[WEEK]] == ["ok"]

    def test_legacy_cleaner_name_only(self):
        entry = decode_entry(
            {"id": "a", "clientName": "Acme", "buildingName": "HQ", "cleanerName": "Dana"}, WEEK
        )
        assert entry.cleaner_names == ("Dana",)

    def test_mismatched_week_dropped(self):
        raw = {"id": "a", "clientName": "Acme", "buildingName": "HQ", "weekId": "2024-01-08"}
        assert decode_entry(raw, WEEK) is None

    def test_invalid_values_dropped(self):
        raw = {"id": "a", "clientName": "Acme", "buildingName": "HQ", "status": "sleeping"}
        assert decode_entry(raw, WEEK) is None
        raw = {"id": "a", "clientName": "Acme", "buildingName": "HQ", "hours": "lots"}
        assert decode_entry(raw, WEEK) is None

    def test_bad_start_time_cleared(self):
        raw = {"id": "a", "clientName": "Acme", "buildingName": "HQ", "startTime": "25:99"}
        assert decode_entry(raw, WEEK).start_time is None

    @pytest.mark.parametrize("stored", ["false", "true", 1, None])
    def test_recurring_flag_must_be_boolean(self, stored):
        raw = {"id": "a", "clientName": "Acme", "buildingName": "HQ", "isRecurring": stored}
        assert decode_entry(raw, WEEK).is_recurring is False

    def test_recurring_flag_true(self):
        raw = {"id": "a", "clientName": "Acme", "buildingName": "HQ", "isRecurring": True}
        assert decode_entry(raw, WEEK).is_recurring is True

    def test_day_derived_from_date(self):
        raw = {"id": "a", "clientName": "Acme", "buildingName": "HQ", "date": "2024-01-04"}
        assert decode_entry(raw, WEEK).day == Weekday.THURSDAY

    def test_bad_documents_decode_empty(self):
        assert decode_schedules(None) == {}
        assert decode_schedules("") == {}
        assert decode_schedules("{oops") == {}
        assert decode_schedules("[1, 2]") == {}

    def test_bad_weeks_skipped(self):
        text = json.dumps({"2024-01-02": [], "junk": [], WEEK: "nope", "2024-01-08": []})
        assert decode_schedules(text) == {"2024-01-08": []}

    def test_duplicate_ids_keep_first(self):
        text = json.dumps({
            WEEK: [
                {"id": "a", "clientName": "First", "buildingName": "HQ"},
                {"id": "a", "clientName": "Second", "buildingName": "HQ"},
            ]
        })
        entries = decode_schedules(text)[WEEK]
        assert [e.client_name for e in entries] == ["First"]


class TestMemoryStorage:
    """Tests for MemoryStorage."""

    def test_get_set_remove(self):
        storage = MemoryStorage()
        assert storage.get_item("k") is None
        storage.set_item("k", "v")
        assert storage.get_item("k") == "v"
        storage.remove_items(["k", "missing"])
        assert storage.get_item("k") is None

    def test_failing_writes(self):
        storage = MemoryStorage()
        storage.fail_writes = True
        with pytest.raises(StorageError):
            storage.set_item("k", "v")
        assert storage.write_count == 0


class TestJsonFileStorage:
    """Tests for JsonFileStorage."""

    def test_persists_between_instances(self, tmp_path):
        path = tmp_path / "store.json"
        JsonFileStorage(path).set_item("k", "value")
        assert JsonFileStorage(path).get_item("k") == "value"
        assert not (tmp_path / "store.json.tmp").exists()

    def test_missing_file_reads_empty(self, tmp_path):
        assert JsonFileStorage(tmp_path / "nope.json").get_item("k") is None

    def test_corrupt_file_reads_empty(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("not json", encoding="utf-8")
        assert JsonFileStorage(path).get_item("k") is None

    def test_remove_items(self, tmp_path):
        storage = JsonFileStorage(tmp_path / "store.json")
        storage.set_item("a", "1")
        storage.set_item("b", "2")
        storage.remove_items(["a"])
        assert storage.get_item("a") is None
        assert storage.get_item("b") == "2"

    def test_unwritable_path_raises(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")
        storage = JsonFileStorage(blocker / "sub" / "store.json")
        with pytest.raises(StorageError):
            storage.set_item("k", "v")


class TestWriteQueue:
    """Tests for the debounced write queue."""

    def test_last_write_wins(self):
        written = []
        queue = WriteQueue(written.append, delay_seconds=60)
        queue.schedule("one")
        queue.schedule("two")
        assert queue.has_pending
        queue.flush()
        assert written == ["two"]
        assert not queue.has_pending
        queue.close()

    def test_write_now_supersedes_pending(self):
        written = []
        queue = WriteQueue(written.append, delay_seconds=60)
        queue.schedule("old")
        queue.write_now("new")
        queue.flush()
        assert written == ["new"]

    def test_failed_flush_keeps_payload(self):
        attempts = []

        def write(payload):
            attempts.append(payload)
            if len(attempts) == 1:
                raise StorageError("disk full")

        queue = WriteQueue(write, delay_seconds=60)
        queue.schedule("data")
        with pytest.raises(StorageError):
            queue.flush()
        assert queue.has_pending

        queue.flush()
        assert attempts == ["data", "data"]
        assert not queue.has_pending

    def test_discard(self):
        written = []
        queue = WriteQueue(written.append, delay_seconds=60)
        queue.schedule("data")
        queue.discard()
        queue.flush()
        assert written == []

    def test_timer_fires(self):
        """Without a flush the payload is written once the delay passes."""
        done = threading.Event()
        written = []

        def write(payload):
            written.append(payload)
            done.set()

        queue = WriteQueue(write, delay_seconds=0.01)
        queue.schedule("data")
        assert done.wait(timeout=5)
        assert written == ["data"]
