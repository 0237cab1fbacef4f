"""Persistence for week schedules."""

from crewschedule.storage.backends import JsonFileStorage, KeyValueStorage, MemoryStorage
from crewschedule.storage.codec import (
    decode_entry,
    decode_schedules,
    encode_entry,
    encode_schedules,
)
from crewschedule.storage.write_queue import WriteQueue

__all__ = [
    # Backends
    "JsonFileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    # Codec
    "decode_entry",
    "decode_schedules",
    "encode_entry",
    "encode_schedules",
    # Writes
    "WriteQueue",
]
