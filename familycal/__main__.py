"""Command-line entry for familycal.

Examples:
  python -m familycal add --owner home --title "Piano" --start 2024-01-01T17:00 \\
      --end 2024-01-01T18:00 --repeat weekly
  python -m familycal list --owner home --view week --date 2024-01-03
  python -m familycal serve --port 3000
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from datetime import date, datetime
from typing import Any, Optional

import yaml

from . import _init_logging
from .calendar_service import CalendarService
from .config_loader import Config, load_config
from .exceptions import FamilyCalError
from .logging_config import configure_logging
from .models import EventCategory, EventTemplate, RecurrenceFrequency
from .occurrence_ids import parse_iso
from .view_windows import CalendarView

logger = logging.getLogger(__name__)


def _iso_arg(value: str) -> datetime:
    try:
        return parse_iso(value)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Invalid date/time: '{value}'. Expected YYYY-MM-DD or YYYY-MM-DDTHH:MM."
        ) from None


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the familycal CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="familycal",
        description="Household calendar with recurring events",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("Examples:", 1)[1] if __doc__ else None,
    )
    parser.add_argument("--config", metavar="PATH", help="Config file (YAML or JSON)")
    parser.add_argument("--data", metavar="PATH", help="Event store JSON file (overrides config)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the JSON HTTP API")
    serve.add_argument("--port", type=int, metavar="PORT", help="Port number (default from config)")

    add = sub.add_parser("add", help="Create an event")
    add.add_argument("--owner", required=True)
    add.add_argument("--title", required=True)
    add.add_argument("--start", type=_iso_arg, required=True)
    add.add_argument("--end", type=_iso_arg, required=True)
    add.add_argument("--category", choices=[c.value for c in EventCategory], default="other")
    add.add_argument("--location")
    add.add_argument("--description")
    add.add_argument("--assign", action="append", default=[], metavar="MEMBER_ID")
    add.add_argument("--repeat", choices=[f.value for f in RecurrenceFrequency])
    add.add_argument("--interval", type=int, default=1)
    add.add_argument("--until", type=_iso_arg, help="Last date of the series")
    add.add_argument("--count", type=int, help="Total number of occurrences")

    list_cmd = sub.add_parser("list", help="List occurrences in a window")
    list_cmd.add_argument("--owner", required=True)
    list_cmd.add_argument("--view", choices=[v.value for v in CalendarView], default="week")
    list_cmd.add_argument("--date", type=_iso_arg, help="Anchor date (default: today)")
    list_cmd.add_argument("--start", type=_iso_arg, help="Explicit window start")
    list_cmd.add_argument("--end", type=_iso_arg, help="Explicit window end")

    upcoming = sub.add_parser("upcoming", help="List upcoming events")
    upcoming.add_argument("--owner", required=True)
    upcoming.add_argument("--limit", type=int)

    delete = sub.add_parser("delete", help="Delete an event or the series of an occurrence")
    delete.add_argument("event_id")

    return parser


def _format_event(event: EventTemplate) -> str:
    when = f"{event.start:%a %Y-%m-%d %H:%M}-{event.end:%H:%M}"
    line = f"{when}  {event.title}  [{EventCategory(event.category).value}]"
    if event.location:
        line += f" @ {event.location}"
    return f"{line}  ({event.id})"


def _event_input_from_args(args: argparse.Namespace) -> dict[str, Any]:
    data: dict[str, Any] = {
        "title": args.title,
        "start": args.start,
        "end": args.end,
        "category": args.category,
        "assigned_to": args.assign,
        "location": args.location,
        "description": args.description,
        "is_recurring": args.repeat is not None,
    }
    if args.repeat:
        data["recurrence_rule"] = {
            "frequency": args.repeat,
            "interval": args.interval,
            "end_date": args.until,
            "count": args.count,
        }
    return data


async def _run_command(args: argparse.Namespace, config: Config) -> None:
    from .api.server import build_service

    service: CalendarService = build_service(config)

    if args.command == "add":
        event_id = await service.create_event(args.owner, _event_input_from_args(args))
        print(f"Created event {event_id}")
    elif args.command == "list":
        if args.start or args.end:
            if not (args.start and args.end):
                raise FamilyCalError("--start and --end must be given together")
            occurrences = await service.get_events_by_date_range(args.owner, args.start, args.end)
        else:
            anchor: date = args.date.date() if args.date else date.today()
            window, occurrences = await service.get_view(args.owner, args.view, anchor)
            print(f"{args.view.title()} of {window.start:%Y-%m-%d} to {window.end:%Y-%m-%d}")
        if not occurrences:
            print("No events.")
        for occurrence in occurrences:
            print(_format_event(occurrence))
    elif args.command == "upcoming":
        for template in await service.get_upcoming_events(args.owner, args.limit):
            print(_format_event(template))
    elif args.command == "delete":
        await service.delete_event(args.event_id)
        print(f"Deleted {args.event_id}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the familycal CLI and return the process exit code."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"Error: could not load config: {exc}", file=sys.stderr)
        return 1
    if args.data:
        config.data_path = args.data
    if getattr(args, "port", None):
        config.server_port = args.port

    _init_logging("DEBUG" if args.debug else config.log_level)
    configure_logging(debug_mode=args.debug)

    try:
        if args.command == "serve":
            from .api.server import start_server

            start_server(config)
        else:
            asyncio.run(_run_command(args, config))
    except KeyboardInterrupt:
        print("\nOperation cancelled by user.", file=sys.stderr)
        return 130
    except FamilyCalError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
