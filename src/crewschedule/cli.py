"""Command-line interface for the crew scheduling tool."""

import argparse
import logging
import os
import sys
from datetime import date
from typing import Optional

from crewschedule.config import StoreConfig
from crewschedule.domain.models import (
    PaymentType,
    ShiftEntry,
    ShiftStatus,
    Weekday,
    current_week_id,
    week_id_for,
)
from crewschedule.domain.recurrence import RecurrencePattern, RecurrenceType
from crewschedule.exceptions import ScheduleError
from crewschedule.output.pdf_generator import PDFGenerator
from crewschedule.output.report_generator import ReportGenerator
from crewschedule.scheduling.resolver import ConflictResolver, ResolverConfig
from crewschedule.scheduling.store import WeekScheduleStore
from crewschedule.scheduling.time_off import TimeOffProcessor
from crewschedule.storage.backends import JsonFileStorage, MemoryStorage

DEFAULT_STORAGE_FILE = "weekly_schedules.json"

LIST_FIELDS = {"cleaner_names", "tags"}
BOOL_FIELDS = {"is_recurring"}


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD")


def _parse_updates(pairs: list[str]) -> dict:
    """Turn ``field=value`` pairs into an update dict."""
    updates = {}
    for pair in pairs:
        if "=" not in pair:
            raise ScheduleError(f"Invalid update '{pair}', expected field=value")
        key, value = pair.split("=", 1)
        key = key.strip().replace("-", "_")
        if key in LIST_FIELDS:
            updates[key] = [v.strip() for v in value.split(",") if v.strip()]
        elif key in BOOL_FIELDS:
            updates[key] = value.strip().lower() in ("1", "true", "yes")
        elif value == "" and key in ("start_time", "priority", "recurring_id", "overtime_rate"):
            updates[key] = None
        else:
            updates[key] = value
    return updates


def print_week(store: WeekScheduleStore, week_id: str) -> None:
    """Print a week's entries grouped by day."""
    entries = store.get_week_schedule(week_id)
    print(f"Week of {week_id}: {len(entries)} shift(s)")

    current_day = None
    for entry in entries:
        if entry.day != current_day:
            current_day = entry.day
            print(f"\n  {entry.day.label}")
        time_str = f"{entry.start_time}-{entry.end_time}" if entry.start_time else "--:--"
        print(f"    {time_str:<11} {entry.client_name} / {entry.building_name}  "
              f"[{', '.join(entry.cleaner_names)}] {entry.hours:.1f}h "
              f"{entry.status.value}  ({entry.id})")


def run_show(store: WeekScheduleStore, week_id: str) -> None:
    print_week(store, week_id)


def run_add(store: WeekScheduleStore, week_id: str, args: argparse.Namespace) -> None:
    """Add a single shift to a week."""
    day = Weekday(args.day)
    if args.date:
        week_id = week_id_for(args.date)
        day = Weekday.from_date(args.date)

    entry = ShiftEntry(
        id=args.id or "",
        client_name=args.client,
        building_name=args.building,
        cleaner_names=tuple(args.cleaner),
        hours=args.hours,
        day=day,
        shift_date=args.date,
        start_time=args.start,
        status=ShiftStatus(args.status),
        notes=args.notes or "",
        payment_type=PaymentType(args.payment_type),
        hourly_rate=args.rate if args.rate is not None else store.config.default_hourly_rate,
        flat_rate_amount=args.flat_amount or 0.0,
    )

    check = store.conflict_scanner.validate_change(store.get_week_schedule(week_id), entry)
    added = store.add_schedule_entry(week_id, entry)
    print(f"Added {added.id} to week {week_id} ({added.day.label}, {added.hours:.1f}h)")
    for conflict in check.conflicts:
        print(f"  Warning: {conflict.description}")


def run_update(store: WeekScheduleStore, week_id: str, entry_id: str, pairs: list[str]) -> None:
    updated = store.update_schedule_entry(week_id, entry_id, _parse_updates(pairs))
    print(f"Updated {updated.id} in week {week_id}")


def run_delete(store: WeekScheduleStore, week_id: str, entry_id: str) -> None:
    store.delete_schedule_entry(week_id, entry_id)
    print(f"Deleted {entry_id} from week {week_id}")


def run_assign(store: WeekScheduleStore, week_id: str, entry_id: str, cleaner: str, remove: bool) -> None:
    if remove:
        entry = store.remove_cleaner_from_entry(week_id, entry_id, cleaner)
    else:
        entry = store.add_cleaner_to_entry(week_id, entry_id, cleaner)
    print(f"{entry.id}: {', '.join(entry.cleaner_names)}")


def run_conflicts(store: WeekScheduleStore, week_id: str) -> int:
    """Print conflicts for a week. Returns the number found."""
    entries = store.get_week_schedule(week_id)
    conflicts = store.conflict_scanner.detect_all(entries)
    summary = store.conflict_scanner.summarize(conflicts)

    print(f"Conflicts for week {week_id}: {summary['total']}")
    for conflict in conflicts:
        print(f"  [{conflict.severity.value}] {conflict.description}")
        print(f"      entries: {', '.join(conflict.entry_ids)}")
    return len(conflicts)


def run_stats(store: WeekScheduleStore, week_id: str) -> None:
    stats = store.get_week_stats(week_id)
    print(f"Statistics for week {week_id}")
    print(f"  Shifts: {stats.total_entries} "
          f"(completed {stats.completed_entries}, pending {stats.pending_entries})")
    print(f"  Total hours: {stats.total_hours:.1f}")
    print(f"  Utilization: {stats.utilization_rate:.1f}%")
    print(f"  Avg hours per cleaner: {stats.average_hours_per_cleaner:.1f}")
    print(f"  Conflicts: {stats.conflict_count}")
    print(f"  Payroll: ${stats.total_payroll:,.2f} "
          f"(overtime {stats.overtime_hours:.1f}h, ${stats.overtime_amount:,.2f})")
    for name, hours in sorted(stats.hours_per_cleaner.items()):
        print(f"    {name:<20} {hours:>6.1f}h")


def run_payroll(store: WeekScheduleStore, week_ids: list[str], cleaners: Optional[list[str]]) -> None:
    """Print pay per cleaner over the given weeks."""
    summary = store.get_payroll_summary(week_ids, cleaners)
    print(f"Payroll for {len(week_ids)} week(s): {', '.join(week_ids)}")
    if not summary:
        print("  No paid work in this period.")
        return
    for name, payroll in sorted(summary.items()):
        print(f"  {name:<20} {payroll.regular_hours:>6.1f}h reg  {payroll.overtime_hours:>5.1f}h OT  "
              f"${payroll.total_pay:>10,.2f}")
    total = sum(p.total_pay for p in summary.values())
    print(f"  {'Total':<20} {'':>24}${total:>10,.2f}")


def run_recur(store: WeekScheduleStore, args: argparse.Namespace) -> None:
    """Create a recurring series of shifts."""
    days = [int(d) for d in args.days.split(",")] if args.days else []
    pattern = RecurrencePattern(
        pattern_type=RecurrenceType(args.type),
        interval=args.interval,
        days_of_week=days,
        day_of_month=args.day_of_month,
        end_date=args.end,
        max_occurrences=args.count,
        custom_days=args.custom_days,
    )
    template = ShiftEntry(
        id="",
        client_name=args.client,
        building_name=args.building,
        cleaner_names=tuple(args.cleaner),
        hours=args.hours,
        start_time=args.start,
        recurring_id=args.series,
    )

    print(f"Pattern: {pattern.describe()}")
    entries = store.add_recurring_series(template, pattern, start=args.from_date)
    print(f"Created {len(entries)} shift(s)")
    for entry in entries[:10]:
        print(f"  {entry.shift_date} {entry.day.label:<9} week {entry.week_id}")
    if len(entries) > 10:
        print(f"  ... and {len(entries) - 10} more")


def run_resolve(
    store: WeekScheduleStore,
    week_id: str,
    roster: list[str],
    apply: bool,
    time_limit: float,
) -> None:
    """Suggest or apply reassignments for double bookings."""
    entries = store.get_week_schedule(week_id)
    resolver = ConflictResolver(
        config=ResolverConfig(time_limit_seconds=time_limit),
        conflict_scanner=store.conflict_scanner,
    )

    suggestions = resolver.suggest(entries, roster)
    if not suggestions:
        print(f"No double bookings in week {week_id}")
        return
    for suggestion in suggestions:
        names = ", ".join(suggestion.candidates) or "nobody free"
        print(f"  {suggestion.entry.id}: {suggestion.conflict.description} -> try {names}")

    plan = resolver.solve(entries, roster)
    print(f"\nSolver status: {plan.status} ({plan.solve_time_seconds:.2f}s)")
    for reassignment in plan.reassignments:
        print(f"  {reassignment}")
    if plan.remaining_overbookings:
        print(f"  {plan.remaining_overbookings} overbooking(s) could not be resolved")

    if apply and plan.is_feasible:
        resolver.apply(store, plan)
        print(f"Applied {len(plan.reassignments)} reassignment(s)")


def run_time_off(store: WeekScheduleStore, cleaner: str, start: date, end: date) -> None:
    count = TimeOffProcessor(store).unassign(cleaner, start, end)
    print(f"Time off approved for {cleaner}: {count} shift(s) unassigned")


def run_report(store: WeekScheduleStore, week_id: str, output_path: Optional[str]) -> None:
    generator = ReportGenerator(store.stats_aggregator, store.conflict_scanner)
    entries = store.get_week_schedule(week_id)
    if output_path:
        generator.generate(week_id, entries, output_path)
        print(f"Report written to {output_path}")
    else:
        print(generator.generate_to_string(week_id, entries))


def run_export(store: WeekScheduleStore, week_id: str, output_path: str) -> None:
    print(f"Generating PDF: {output_path}")
    generator = PDFGenerator(
        stats_aggregator=store.stats_aggregator,
        conflict_scanner=store.conflict_scanner,
    )
    generator.generate(week_id, store.get_week_schedule(week_id), output_path)
    print("  PDF created successfully!")


def create_sample_week(store: WeekScheduleStore, week_id: str) -> None:
    """Fill a week with sample shifts, including one double booking."""
    samples = [
        ("Acme Corp", "Tower A", ["Alice"], 4.0, Weekday.MONDAY, "08:00"),
        ("Acme Corp", "Tower B", ["Alice"], 3.0, Weekday.MONDAY, "11:00"),
        ("Globex", "Main Office", ["Bob", "Carol"], 6.0, Weekday.TUESDAY, "18:00"),
        ("Initech", "Warehouse", ["Carol"], 9.5, Weekday.WEDNESDAY, "07:00"),
        ("Umbrella", "Lab 2", ["David"], 5.0, Weekday.THURSDAY, None),
        ("Globex", "Annex", ["Eve"], 2.5, Weekday.FRIDAY, "16:30"),
        ("Acme Corp", "Tower A", ["Bob"], 4.0, Weekday.SATURDAY, "09:00"),
    ]
    for i, (client, building, cleaners, hours, day, start) in enumerate(samples, 1):
        store.add_schedule_entry(
            week_id,
            ShiftEntry(
                id=f"demo-{i}",
                client_name=client,
                building_name=building,
                cleaner_names=tuple(cleaners),
                hours=hours,
                day=day,
                start_time=start,
                status=ShiftStatus.COMPLETED if i % 3 == 0 else ShiftStatus.SCHEDULED,
            ),
        )


def run_demo(output_path: Optional[str] = None) -> None:
    """Run an in-memory demo week."""
    week_id = current_week_id()
    print(f"Building demo schedule for week {week_id}...")

    store = WeekScheduleStore(MemoryStorage())
    create_sample_week(store, week_id)

    print()
    print_week(store, week_id)
    print()
    run_stats(store, week_id)
    print()
    run_conflicts(store, week_id)
    print()
    run_resolve(store, week_id, ["Alice", "Bob", "Carol", "David", "Eve", "Frank"], True, 5.0)

    if output_path:
        print()
        run_export(store, week_id, output_path)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Crew Schedule - Weekly cleaning crew scheduling tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s demo                                   Run an in-memory demo week
  %(prog)s show --week 2024-01-01                 List a week's shifts
  %(prog)s add --week 2024-01-01 --day monday \\
      --client Acme --building HQ --cleaner Alice --hours 3
  %(prog)s update --week 2024-01-01 --id ID --set hours=5
  %(prog)s conflicts --week 2024-01-01            Show double bookings
  %(prog)s payroll --weeks 2024-01-01 2024-01-08  Pay per cleaner for two weeks
  %(prog)s recur --type weekly --days 1,3 --count 4 \\
      --client Acme --building HQ --cleaner Alice --hours 3
  %(prog)s resolve --week 2024-01-01 --roster Alice Bob Carol --apply
  %(prog)s time-off --cleaner Alice --start 2024-01-02 --end 2024-01-05
  %(prog)s export --week 2024-01-01 --output week.pdf
        """,
    )
    parser.add_argument(
        "--storage",
        type=str,
        default=os.environ.get("CREWSCHEDULE_STORAGE", DEFAULT_STORAGE_FILE),
        help=f"JSON storage file (default: $CREWSCHEDULE_STORAGE or {DEFAULT_STORAGE_FILE})",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    def add_week_argument(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "--week", "-w",
            type=str,
            default=None,
            help="Week id (Monday, YYYY-MM-DD; default: current week)",
        )

    # Demo command
    demo_parser = subparsers.add_parser("demo", help="Run an in-memory demo week")
    demo_parser.add_argument("--output", "-o", type=str, help="Output PDF file path")

    # Show command
    show_parser = subparsers.add_parser("show", help="List a week's shifts")
    add_week_argument(show_parser)

    # Add command
    add_parser = subparsers.add_parser("add", help="Add a shift")
    add_week_argument(add_parser)
    add_parser.add_argument("--id", type=str, help="Entry id (generated if omitted)")
    add_parser.add_argument("--client", required=True, help="Client name")
    add_parser.add_argument("--building", required=True, help="Building name")
    add_parser.add_argument(
        "--cleaner", "-c",
        action="append",
        required=True,
        help="Cleaner name (repeat for several cleaners)",
    )
    add_parser.add_argument("--hours", type=float, required=True, help="Shift length in hours")
    add_parser.add_argument(
        "--day", "-d",
        type=str,
        default="monday",
        choices=[d.value for d in Weekday],
        help="Day of the week (default: monday)",
    )
    add_parser.add_argument("--date", type=_parse_date, help="Shift date (overrides --week/--day)")
    add_parser.add_argument("--start", type=str, help="Start time HH:MM")
    add_parser.add_argument(
        "--status",
        type=str,
        default="scheduled",
        choices=[s.value for s in ShiftStatus],
    )
    add_parser.add_argument("--notes", type=str)
    add_parser.add_argument(
        "--payment-type",
        type=str,
        default="hourly",
        choices=[p.value for p in PaymentType],
    )
    add_parser.add_argument("--rate", type=float, help="Hourly rate")
    add_parser.add_argument("--flat-amount", type=float, help="Flat-rate amount")

    # Update command
    update_parser = subparsers.add_parser("update", help="Update fields of a shift")
    add_week_argument(update_parser)
    update_parser.add_argument("--id", required=True, help="Entry id")
    update_parser.add_argument(
        "--set", "-s",
        dest="updates",
        action="append",
        required=True,
        metavar="FIELD=VALUE",
        help="Field update, e.g. hours=5 or cleaner_names=Alice,Bob",
    )

    # Delete command
    delete_parser = subparsers.add_parser("delete", help="Delete a shift")
    add_week_argument(delete_parser)
    delete_parser.add_argument("--id", required=True, help="Entry id")

    # Assign / unassign commands
    for name, help_text in (("assign", "Add a cleaner to a shift"),
                            ("unassign", "Remove a cleaner from a shift")):
        p = subparsers.add_parser(name, help=help_text)
        add_week_argument(p)
        p.add_argument("--id", required=True, help="Entry id")
        p.add_argument("--cleaner", "-c", required=True, help="Cleaner name")

    # Conflicts / stats / report commands
    conflicts_parser = subparsers.add_parser("conflicts", help="Show scheduling conflicts")
    add_week_argument(conflicts_parser)

    stats_parser = subparsers.add_parser("stats", help="Show week statistics")
    add_week_argument(stats_parser)

    payroll_parser = subparsers.add_parser("payroll", help="Show per-cleaner payroll over one or more weeks")
    payroll_parser.add_argument(
        "--weeks",
        nargs="+",
        metavar="WEEK",
        help="Week ids in the pay period (default: current week)",
    )
    payroll_parser.add_argument("--cleaner", "-c", action="append", help="Limit to a cleaner (repeatable)")

    report_parser = subparsers.add_parser("report", help="Print or save a text report")
    add_week_argument(report_parser)
    report_parser.add_argument("--output", "-o", type=str, help="Output text file path")

    export_parser = subparsers.add_parser("export", help="Export a week as PDF")
    add_week_argument(export_parser)
    export_parser.add_argument("--output", "-o", required=True, help="Output PDF file path")

    # Recurrence command
    recur_parser = subparsers.add_parser("recur", help="Create a recurring series of shifts")
    recur_parser.add_argument("--client", required=True, help="Client name")
    recur_parser.add_argument("--building", required=True, help="Building name")
    recur_parser.add_argument("--cleaner", "-c", action="append", required=True, help="Cleaner name")
    recur_parser.add_argument("--hours", type=float, required=True, help="Shift length in hours")
    recur_parser.add_argument("--start", type=str, help="Start time HH:MM")
    recur_parser.add_argument(
        "--type", "-t",
        type=str,
        default="weekly",
        choices=[t.value for t in RecurrenceType],
        help="Pattern type (default: weekly)",
    )
    recur_parser.add_argument("--interval", type=int, default=1, help="Repeat every N periods")
    recur_parser.add_argument("--days", type=str, help="Weekdays, 0=Sunday..6=Saturday, e.g. 1,3")
    recur_parser.add_argument("--day-of-month", type=int, help="Day for monthly patterns")
    recur_parser.add_argument("--custom-days", type=int, default=1, help="Spacing for custom patterns")
    recur_parser.add_argument("--end", type=_parse_date, help="Last date (inclusive)")
    recur_parser.add_argument("--count", type=int, help="Maximum occurrences")
    recur_parser.add_argument("--from", dest="from_date", type=_parse_date, help="First date (default: today)")
    recur_parser.add_argument("--series", type=str, help="Series id (generated if omitted)")

    # Resolve command
    resolve_parser = subparsers.add_parser("resolve", help="Resolve double bookings")
    add_week_argument(resolve_parser)
    resolve_parser.add_argument("--roster", nargs="+", required=True, help="Available cleaners")
    resolve_parser.add_argument("--apply", action="store_true", help="Apply the computed plan")
    resolve_parser.add_argument(
        "--time-limit",
        type=float,
        default=10.0,
        help="CP-SAT solver time limit in seconds (default: 10)",
    )

    # Time-off command
    time_off_parser = subparsers.add_parser("time-off", help="Unassign a cleaner for time off")
    time_off_parser.add_argument("--cleaner", "-c", required=True, help="Cleaner name")
    time_off_parser.add_argument("--start", type=_parse_date, required=True, help="First day off")
    time_off_parser.add_argument("--end", type=_parse_date, help="Last day off (default: start)")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 1
    if args.command == "demo":
        run_demo(args.output)
        return 0

    store = WeekScheduleStore(JsonFileStorage(args.storage), StoreConfig.from_env())
    week_id = getattr(args, "week", None) or current_week_id()

    try:
        if args.command == "show":
            run_show(store, week_id)
        elif args.command == "add":
            run_add(store, week_id, args)
        elif args.command == "update":
            run_update(store, week_id, args.id, args.updates)
        elif args.command == "delete":
            run_delete(store, week_id, args.id)
        elif args.command in ("assign", "unassign"):
            run_assign(store, week_id, args.id, args.cleaner, args.command == "unassign")
        elif args.command == "conflicts":
            run_conflicts(store, week_id)
        elif args.command == "stats":
            run_stats(store, week_id)
        elif args.command == "payroll":
            run_payroll(store, args.weeks or [week_id], args.cleaner)
        elif args.command == "report":
            run_report(store, week_id, args.output)
        elif args.command == "export":
            run_export(store, week_id, args.output)
        elif args.command == "recur":
            run_recur(store, args)
        elif args.command == "resolve":
            run_resolve(store, week_id, args.roster, args.apply, args.time_limit)
        elif args.command == "time-off":
            run_time_off(store, args.cleaner, args.start, args.end or args.start)
        store.close()
    except ScheduleError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
