"""Command-line access to a journal without the full-screen interface."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from .config import load_config
from .dates import format_date
from .engine import JournalEngine
from .errors import JournalError
from .models import EntryKind


def setup_logging(level: str = "WARNING", log_file: Optional[str] = None) -> None:
    """Send loguru output to stderr, and optionally to a rotating file."""
    logger.remove()
    logger.add(sys.stderr, level=level, format="<level>[{level.name}]</level> {message}")
    if log_file:
        logger.add(
            log_file,
            level=level,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}",
            rotation="10 MB",
            retention="7 days",
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="daybook",
        description="Daybook - a plain-text journal of tasks, notes and events",
    )
    parser.add_argument(
        "--root",
        "-r",
        type=Path,
        default=Path.cwd(),
        help="Directory holding the journal config (default: current directory)",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        help="Path to config file (default: auto-detect in root)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log debug output to stderr",
    )
    parser.add_argument("--log-file", help="Also write logs to this file")

    commands = parser.add_subparsers(dest="command", required=True)

    show = commands.add_parser("show", help="Show the entries for a day")
    show.add_argument("date", nargs="?", help="Day to show (default: today)")

    query = commands.add_parser("filter", help="Run a filter query over the whole journal")
    query.add_argument("query", help="Filter query, e.g. '!tasks #work'")

    add = commands.add_parser("add", help="Add an entry")
    add.add_argument("text", help="Entry text")
    add.add_argument("--day", "-d", help="Day to add to (default: today)")
    add.add_argument(
        "--kind",
        "-k",
        choices=[kind.value for kind in EntryKind],
        default=EntryKind.TASK.value,
        help="Entry kind (default: task)",
    )

    done = commands.add_parser("done", help="Toggle completion of a task")
    done.add_argument("id", type=int, help="Entry id as printed by show or filter")
    done.add_argument("--day", "-d", help="Occurrence day for recurring tasks (default: today)")

    commands.add_parser("tags", help="List all tags")

    return parser


def _checkbox(kind: EntryKind, completed: bool) -> str:
    if kind is EntryKind.TASK:
        return "- [x]" if completed else "- [ ]"
    return "-" if kind is EntryKind.NOTE else "*"


def _run(engine: JournalEngine, args: argparse.Namespace) -> None:
    if args.command == "show":
        day = engine.navigate_to(args.date) if args.date else engine.current_day
        print(format_date(day))
        for item in engine.query_day(day):
            line = f"  [{item.entry.id}] {_checkbox(item.entry.kind, item.occurrence_completed)} {item.entry.text}"
            if item.surfaced:
                line += f"  (from {format_date(item.source_day)})"
            print(line)

    elif args.command == "filter":
        for entry, day in engine.run_filter(args.query):
            print(f"{format_date(day)}  [{entry.id}] {_checkbox(entry.kind, entry.completed)} {entry.text}")

    elif args.command == "add":
        entry = engine.add_entry(args.text, day=args.day, kind=EntryKind(args.kind))
        engine.save()
        print(f"Added [{entry.id}] on {format_date(entry.origin_day)}")

    elif args.command == "done":
        state = engine.toggle_complete(args.id, args.day)
        engine.save()
        print(f"[{args.id}] {'done' if state else 'not done'}")

    elif args.command == "tags":
        for tag in engine.tags():
            print(f"#{tag}")


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging("DEBUG" if args.verbose else "WARNING", args.log_file)

    try:
        config = load_config(args.root.resolve(), args.config)
    except (OSError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        engine = JournalEngine(config)
        engine.open()
        _run(engine, args)
    except JournalError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
