"""
Main CLI entry point for the school schedule builder.
"""

import argparse
import json
import logging
import sys
from datetime import date, timedelta
from pathlib import Path

from . import config
from .errors import ScheduleError
from .export import ICalendarGenerator, to_csv, to_pdf, to_print_html, to_xlsx
from .importer import import_into, read_events
from .models import ScheduleKey, serialize_event
from .persistence import get_repository
from .planner import flatten_plan, plan_grid
from .reports import expand_placements, report_dataframe, teacher_efficiency
from .session import ScheduleSession
from .time_axis import format_time_slot


def open_session(args) -> ScheduleSession:
    """Open the schedule named by the common key arguments."""
    school_year = config.validate_school_year(args.school_year or config.default_school_year())
    semester = config.validate_semester(args.semester)
    key = ScheduleKey(args.class_id, school_year, semester)
    return ScheduleSession(
        get_repository(),
        key=key,
        schedule_type=args.type,
        actor=args.actor,
        autosave_enabled=False,
    )


def cmd_slots(args) -> int:
    slots = config.build_time_slots(args.type, args.half_hour, args.split or [])
    for i, slot in enumerate(slots):
        marker = f"  [{slot.label}]" if slot.is_break else ""
        print(f"{i:>2}  {format_time_slot(slot)}{marker}")
    return 0


def cmd_show(args) -> int:
    """Print the schedule grid as an aligned text table."""
    session = open_session(args)
    store = session.store
    if args.json:
        print(json.dumps([serialize_event(e) for e in store.events], indent=2))
        return 0
    plan = plan_grid(store.events, store.slots, store.weekdays, store.break_overrides)
    table = flatten_plan(plan, store.slots, store.weekdays)
    rows = [[cell.replace("\n", " / ") for cell in row] for row in table]
    widths = [max(len(row[i]) for row in rows) for i in range(len(rows[0]))]
    for row in rows:
        print(" | ".join(cell.ljust(w) for cell, w in zip(row, widths)).rstrip())
    print(f"\n{len(store)} event(s)")
    return 0


def cmd_export(args) -> int:
    session = open_session(args)
    store = session.store
    meta = session.meta
    plan = plan_grid(store.events, store.slots, store.weekdays, store.break_overrides)
    output = Path(args.output)

    if args.format == "csv":
        output.write_text(to_csv(plan, store.slots, store.weekdays), encoding="utf-8")
    elif args.format == "xlsx":
        output.write_bytes(to_xlsx(plan, store.slots, store.weekdays, store.events))
    elif args.format == "pdf":
        output.write_bytes(to_pdf(plan, store.slots, store.weekdays, meta))
    elif args.format == "html":
        output.write_text(to_print_html(plan, store.slots, store.weekdays, meta), encoding="utf-8")
    else:
        term_start = date.fromisoformat(args.term_start) if args.term_start else date.today()
        term_end = date.fromisoformat(args.term_end) if args.term_end else term_start + timedelta(weeks=18)
        generator = ICalendarGenerator(timezone_str=args.timezone)
        calendar = generator.generate_calendar(store.events, term_start, term_end, meta)
        output.write_bytes(generator.to_ics(calendar))
    print(f"Saved {args.format} export to: {output}")
    return 0


def cmd_import(args) -> int:
    """Import events from a CSV or Excel file and save the schedule."""
    source = Path(args.file)
    if not source.exists():
        print(f"Error: file not found: {source}")
        return 1
    session = open_session(args)
    result = read_events(source, args.format)
    import_into(session.store, result, args.actor)
    for row, message in result.errors:
        print(f"Row {row}: {message}")
    if args.dry_run:
        print(f"Would import {len(result.created)} event(s), {result.duplicates} duplicate(s)")
        return 0
    if not session.save():
        print(f"Error: could not save schedule: {session.autosave.last_error}")
        return 1
    print(f"Imported {len(result.created)} event(s), skipped {result.duplicates} duplicate(s) "
          f"and {len(result.errors)} bad row(s)")
    return 0


def cmd_report(args) -> int:
    session = open_session(args)
    placements = expand_placements(session.store.events, session.key.class_id)
    if args.kind == "efficiency":
        summary = teacher_efficiency(placements, args.day)
        print(json.dumps(summary, indent=2))
        return 0
    frame = report_dataframe(args.kind, placements, args.day)
    if frame.empty:
        print("No scheduled events.")
    else:
        print(frame.to_string(index=False))
    return 0


def cmd_serve(args) -> int:
    from .app import create_app
    app = create_app()
    app.run(host=args.host, port=args.port, debug=args.debug)
    return 0


def add_key_arguments(parser: argparse.ArgumentParser):
    parser.add_argument("--class", dest="class_id", default="", help="Class or section (default: global schedule)")
    parser.add_argument("--school-year", default=None, help="School year, e.g. 2025-2026 (default: current)")
    parser.add_argument("--semester", default="first", choices=config.SEMESTERS)
    parser.add_argument("--type", default="shs", choices=sorted(config.SCHEDULE_TYPES), help="Schedule type")
    parser.add_argument("--actor", default="admin", help="Name recorded on created events")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Build and export weekly school schedules")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("slots", help="List the slot rows of a schedule type")
    p.add_argument("--type", default="shs", choices=sorted(config.SCHEDULE_TYPES))
    p.add_argument("--half-hour", action="store_true", help="Use half-hour rows (TESDA only)")
    p.add_argument("--split", action="append", metavar="TIME",
                   help="Hour to keep split into half hours, e.g. '8:00 AM' (repeatable)")
    p.set_defaults(func=cmd_slots)

    p = sub.add_parser("show", help="Print a stored schedule")
    add_key_arguments(p)
    p.add_argument("--json", action="store_true", help="Print events as JSON")
    p.set_defaults(func=cmd_show)

    p = sub.add_parser("export", help="Export a stored schedule")
    add_key_arguments(p)
    p.add_argument("format", choices=["csv", "xlsx", "pdf", "html", "ics"])
    p.add_argument("-o", "--output", required=True, help="Output file")
    p.add_argument("--term-start", help="First day of classes (YYYY-MM-DD), ics only")
    p.add_argument("--term-end", help="Last day of classes (YYYY-MM-DD), ics only")
    p.add_argument("--timezone", default="Asia/Manila", help="Calendar timezone, ics only")
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("import", help="Import events from CSV or Excel")
    add_key_arguments(p)
    p.add_argument("file", help="CSV or XLSX file")
    p.add_argument("--format", choices=["csv", "xlsx"], help="File format (default: from extension)")
    p.add_argument("--dry-run", action="store_true", help="Validate without saving")
    p.set_defaults(func=cmd_import)

    p = sub.add_parser("report", help="Usage reports")
    add_key_arguments(p)
    p.add_argument("kind", choices=["class", "room", "efficiency"])
    p.add_argument("--day", default=None, help="Restrict to one weekday")
    p.set_defaults(func=cmd_report)

    p = sub.add_parser("serve", help="Run the web application")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=5000)
    p.add_argument("--debug", action="store_true")
    p.set_defaults(func=cmd_serve)
    return parser


def main(argv=None):
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        code = args.func(args)
    except ScheduleError as e:
        print(f"Error: {e}")
        code = 1
    except ValueError as e:
        print(f"Error: {e}")
        code = 2
    sys.exit(code)


if __name__ == "__main__":
    main()
