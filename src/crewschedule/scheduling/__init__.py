"""Schedule store and the engines that work on its weeks."""

from crewschedule.scheduling.conflicts import ChangeCheck, ConflictScanner
from crewschedule.scheduling.recurrence import RecurrenceExpander
from crewschedule.scheduling.resolver import (
    ConflictResolver,
    Reassignment,
    ResolutionPlan,
    ResolverConfig,
    Suggestion,
)
from crewschedule.scheduling.stats import StatsAggregator
from crewschedule.scheduling.store import WeekScheduleStore, sort_entries
from crewschedule.scheduling.time_off import TimeOffProcessor

__all__ = [
    # Store
    "WeekScheduleStore",
    "sort_entries",
    # Analysis
    "ChangeCheck",
    "ConflictScanner",
    "StatsAggregator",
    # Recurrence
    "RecurrenceExpander",
    # Resolution
    "ConflictResolver",
    "Reassignment",
    "ResolutionPlan",
    "ResolverConfig",
    "Suggestion",
    # Time off
    "TimeOffProcessor",
]
