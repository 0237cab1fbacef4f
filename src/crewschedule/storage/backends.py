"""Key-value storage backends for persisted schedules.

The store keeps the whole week mapping under a single string key, so a
backend only needs to read, write and remove string values.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional, Union

from crewschedule.exceptions import StorageError

logger = logging.getLogger(__name__)


class KeyValueStorage(ABC):
    """Abstract base class for device-local key-value storage."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Read the value stored under a key, or None if absent."""
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store a value under a key.

        Raises:
            StorageError: If the value could not be written.
        """
        pass

    @abstractmethod
    def remove_items(self, keys: Iterable[str]) -> None:
        """Remove several keys at once. Missing keys are ignored."""
        pass


class MemoryStorage(KeyValueStorage):
    """In-memory storage, mainly for tests and demos.

    Attributes:
        fail_writes: When True, ``set_item`` raises StorageError.
        write_count: Number of successful writes.
    """

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})
        self.fail_writes = False
        self.write_count = 0

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise StorageError(f"Write to '{key}' rejected by storage")
        self._data[key] = value
        self.write_count += 1

    def remove_items(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)


class JsonFileStorage(KeyValueStorage):
    """Storage backed by a single JSON object file.

    Writes go to a temporary file that then replaces the target, so a crash
    mid-write never leaves a truncated file behind. A missing or unreadable
    file reads as empty.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def get_item(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove_items(self, keys: Iterable[str]) -> None:
        data = self._load()
        removed = [key for key in keys if data.pop(key, None) is not None]
        if removed:
            self._save(data)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable storage file %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring storage file %s: root is not an object", self.path)
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _save(self, data: dict[str, str]) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as exc:
            raise StorageError(f"Could not write {self.path}: {exc}") from exc
        logger.debug("Wrote %d key(s) to %s", len(data), self.path)
