"""Configuration for the schedule store.

Settings are plain dataclasses with defaults. ``from_env`` lets deployments
override the storage key and write behaviour through environment variables.
"""

import os
from dataclasses import dataclass

DEFAULT_STORAGE_KEY = "weekly_schedules_v4"


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class StoreConfig:
    """Configuration for WeekScheduleStore.

    Attributes:
        storage_key: Key the whole week mapping is stored under.
        force_save: Write synchronously on every mutation. When False, every
            write goes through the debounced write queue.
        debounce_seconds: Delay before a queued write is flushed.
        default_hourly_rate: Hourly rate given to new entries without one.
        max_recurrence_occurrences: Default cap on recurrence expansion.
        recurrence_horizon_days: Hard stop for recurrence expansion.
    """

    storage_key: str = DEFAULT_STORAGE_KEY
    force_save: bool = True
    debounce_seconds: float = 0.3
    default_hourly_rate: float = 15.0
    max_recurrence_occurrences: int = 52
    recurrence_horizon_days: int = 731  # Two years, inclusive of today

    @classmethod
    def from_env(cls) -> "StoreConfig":
        """Build a config from ``CREWSCHEDULE_*`` environment variables."""
        defaults = cls()
        return cls(
            storage_key=os.environ.get("CREWSCHEDULE_STORAGE_KEY", defaults.storage_key),
            force_save=_env_flag("CREWSCHEDULE_FORCE_SAVE", defaults.force_save),
            debounce_seconds=float(
                os.environ.get("CREWSCHEDULE_DEBOUNCE_SECONDS", defaults.debounce_seconds)
            ),
        )
