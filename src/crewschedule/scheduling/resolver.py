"""Resolution of cleaner double bookings.

Two approaches are provided:
- ``suggest``: quick per-conflict suggestions of cleaners who are free
  that day, as shown next to a conflict for a supervisor to pick from.
- ``solve``: an OR-Tools CP-SAT model that reassigns primary cleaners so
  that nobody works more than the allowed number of jobs per day, while
  changing as few assignments as possible.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from ortools.sat.python import cp_model

from crewschedule.domain.models import (
    UNASSIGNED,
    Conflict,
    ShiftEntry,
    Weekday,
)
from crewschedule.scheduling.conflicts import ConflictScanner

logger = logging.getLogger(__name__)


@dataclass
class ResolverConfig:
    """Configuration for the CP-SAT reassignment model.

    Attributes:
        time_limit_seconds: Maximum solver runtime.
        num_workers: Number of parallel workers (0 = auto).
        overbooking_penalty: Cost per job above the daily limit of a cleaner.
        change_penalty: Cost per entry whose primary cleaner changes.
        max_entries_per_day: Jobs a cleaner may take on one day.
    """

    time_limit_seconds: float = 10.0
    num_workers: int = 0
    overbooking_penalty: int = 100
    change_penalty: int = 10
    max_entries_per_day: int = 1


@dataclass(frozen=True)
class Reassignment:
    """A change of primary cleaner on one entry."""

    entry_id: str
    week_id: str
    day: Weekday
    from_cleaner: str
    to_cleaner: str

    def __str__(self) -> str:
        return (
            f"{self.entry_id} ({self.day.label}): "
            f"{self.from_cleaner} -> {self.to_cleaner}"
        )


@dataclass
class Suggestion:
    """Cleaners who could take over an entry involved in a conflict."""

    conflict: Conflict
    entry: ShiftEntry
    candidates: list[str] = field(default_factory=list)


@dataclass
class ResolutionPlan:
    """Result from the CP-SAT reassignment model.

    Attributes:
        reassignments: Primary cleaner changes to apply.
        status: Solver status (OPTIMAL, FEASIBLE, etc.).
        remaining_overbookings: Jobs still above the daily limit after the plan.
        objective_value: Final objective value.
        solve_time_seconds: Time taken to solve.
    """

    reassignments: list[Reassignment]
    status: str
    remaining_overbookings: int = 0
    objective_value: int = 0
    solve_time_seconds: float = 0.0

    @property
    def is_optimal(self) -> bool:
        return self.status == "OPTIMAL"

    @property
    def is_feasible(self) -> bool:
        return self.status in ("OPTIMAL", "FEASIBLE")


def _is_assignable(entry: ShiftEntry) -> bool:
    return not entry.is_cancelled and bool(entry.cleaner_name) and entry.cleaner_name != UNASSIGNED


class ConflictResolver:
    """Suggests and computes reassignments for double-booked cleaners.

    Example:
        >>> resolver = ConflictResolver()
        >>> plan = resolver.solve(store.get_week_schedule(week_id), roster)
        >>> if plan.is_feasible:
        ...     resolver.apply(store, plan)
    """

    def __init__(
        self,
        config: Optional[ResolverConfig] = None,
        conflict_scanner: Optional[ConflictScanner] = None,
    ):
        self.config = config or ResolverConfig()
        self.conflict_scanner = conflict_scanner or ConflictScanner()

    def available_cleaners(
        self,
        entries: Iterable[ShiftEntry],
        roster: Iterable[str],
        day: Weekday,
        unavailable: Iterable[tuple[str, Weekday]] = (),
    ) -> list[str]:
        """Roster cleaners with no non-cancelled job on a day."""
        blocked = set(unavailable)
        busy = {
            name
            for e in entries
            if e.day == day and not e.is_cancelled
            for name in e.cleaner_names
        }
        return [
            name for name in roster
            if name not in busy and (name, day) not in blocked
        ]

    def suggest(
        self,
        entries: Iterable[ShiftEntry],
        roster: Iterable[str],
        unavailable: Iterable[tuple[str, Weekday]] = (),
        per_entry: int = 2,
    ) -> list[Suggestion]:
        """Suggest free cleaners for every double-booked entry but the first.

        Args:
            entries: Entries of one week.
            roster: All cleaners who could be scheduled.
            unavailable: (cleaner, day) pairs that cannot be booked.
            per_entry: Maximum candidates proposed per entry.
        """
        entries = list(entries)
        roster = list(roster)
        blocked = list(unavailable)
        suggestions = []

        for conflict in self.conflict_scanner.detect_conflicts(entries):
            free = self.available_cleaners(entries, roster, conflict.day, blocked)
            for entry in conflict.entries[1:]:
                suggestions.append(
                    Suggestion(conflict=conflict, entry=entry, candidates=free[:per_entry])
                )

        return suggestions

    def solve(
        self,
        entries: Iterable[ShiftEntry],
        roster: Iterable[str],
        unavailable: Iterable[tuple[str, Weekday]] = (),
    ) -> ResolutionPlan:
        """Compute a minimal-change reassignment of primary cleaners.

        Args:
            entries: Entries to rebalance, typically one week.
            roster: Cleaners who may take over jobs.
            unavailable: (cleaner, day) pairs that cannot be booked. A
                primary cleaner unavailable on their day is always moved.

        Returns:
            ResolutionPlan with reassignments and solver statistics.
        """
        entries = [e for e in entries if _is_assignable(e)]
        roster = list(dict.fromkeys(roster))
        blocked = set(unavailable)

        if not entries:
            return ResolutionPlan(reassignments=[], status="OPTIMAL")

        model = cp_model.CpModel()

        # Decision variables: x[i][name] = 1 if entry i gets name as primary
        x: dict[int, dict[str, cp_model.IntVar]] = {}
        for i, entry in enumerate(entries):
            secondaries = set(entry.cleaner_names[1:])
            names = [entry.cleaner_name] + [n for n in roster if n != entry.cleaner_name]
            candidates = [
                n for n in names
                if n not in secondaries and (n, entry.day) not in blocked
            ]
            if not candidates:
                logger.warning("No cleaner available for entry %s on %s", entry.id, entry.day.value)
                return ResolutionPlan(reassignments=[], status="INFEASIBLE")
            x[i] = {n: model.NewBoolVar(f"x_{i}_{n}") for n in candidates}

        # Constraint: every entry keeps exactly one primary cleaner
        for i in x:
            model.AddExactlyOne(x[i].values())

        # Load per (cleaner, week, day); secondary assignments count as fixed load
        loads: dict[tuple[str, str, Weekday], list] = {}
        fixed: dict[tuple[str, str, Weekday], int] = {}
        for i, entry in enumerate(entries):
            for name, var in x[i].items():
                loads.setdefault((name, entry.week_id, entry.day), []).append(var)
            for name in entry.cleaner_names[1:]:
                key = (name, entry.week_id, entry.day)
                fixed[key] = fixed.get(key, 0) + 1

        limit = self.config.max_entries_per_day
        overflow_vars = []
        for key, terms in loads.items():
            base = fixed.get(key, 0)
            if len(terms) + base <= limit:
                continue
            over = model.NewIntVar(0, len(terms) + base, f"over_{len(overflow_vars)}")
            model.Add(over >= sum(terms) + base - limit)
            overflow_vars.append(over)

        # Objective: overbookings first, then as few changes as possible
        objective_terms = [self.config.overbooking_penalty * v for v in overflow_vars]
        for i, entry in enumerate(entries):
            for name, var in x[i].items():
                if name != entry.cleaner_name:
                    objective_terms.append(self.config.change_penalty * var)
        if objective_terms:
            model.Minimize(sum(objective_terms))

        solver = cp_model.CpSolver()
        solver.parameters.max_time_in_seconds = self.config.time_limit_seconds
        if self.config.num_workers > 0:
            solver.parameters.num_workers = self.config.num_workers

        status = solver.Solve(model)

        status_map = {
            cp_model.OPTIMAL: "OPTIMAL",
            cp_model.FEASIBLE: "FEASIBLE",
            cp_model.INFEASIBLE: "INFEASIBLE",
            cp_model.MODEL_INVALID: "MODEL_INVALID",
            cp_model.UNKNOWN: "UNKNOWN",
        }
        status_str = status_map.get(status, "UNKNOWN")

        if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
            logger.warning("Reassignment model returned %s", status_str)
            return ResolutionPlan(
                reassignments=[],
                status=status_str,
                solve_time_seconds=solver.WallTime(),
            )

        reassignments = []
        for i, entry in enumerate(entries):
            for name, var in x[i].items():
                if solver.Value(var) == 1:
                    if name != entry.cleaner_name:
                        reassignments.append(
                            Reassignment(
                                entry_id=entry.id,
                                week_id=entry.week_id,
                                day=entry.day,
                                from_cleaner=entry.cleaner_name,
                                to_cleaner=name,
                            )
                        )
                    break

        remaining = sum(solver.Value(v) for v in overflow_vars)
        logger.info(
            "Reassignment plan: %d change(s), %d overbooking(s) left (%s)",
            len(reassignments), remaining, status_str,
        )
        return ResolutionPlan(
            reassignments=reassignments,
            status=status_str,
            remaining_overbookings=remaining,
            objective_value=int(solver.ObjectiveValue()),
            solve_time_seconds=solver.WallTime(),
        )

    def apply(self, store, plan: ResolutionPlan) -> list[ShiftEntry]:
        """Write a plan's reassignments through the store."""
        return [
            store.update_schedule_entry(
                r.week_id, r.entry_id, {"cleaner_name": r.to_cleaner}
            )
            for r in plan.reassignments
        ]
