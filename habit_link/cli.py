"""CLI with subcommands for driving the deep-link shim by hand."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from . import __version__
from .config import load_settings
from .events import event_from_link, load_events
from .exceptions import HabitLinkError
from .host import Host
from .log import configure_logging, get_logger, new_run_id
from .schemas import ACTION_VIEW, CHANNEL_NAME, GET_INITIAL_DEEP_LINK
from .store import FileFlagStore


def _open_host(args: argparse.Namespace) -> Host:
    settings = load_settings(args.store_dir)
    store = FileFlagStore(settings.store_path, lock_timeout_seconds=settings.lock_timeout_seconds)
    host = Host(store)
    host.configure_engine()
    return host


def cmd_open(args: argparse.Namespace) -> int:
    """Deliver one activation event carrying ``args.uri``."""
    host = _open_host(args)
    event = event_from_link(args.uri.strip(), action=args.action)
    if args.running:
        host.on_new_intent(event)
    else:
        host.on_create(event)
    print(f"Delivered: {args.action} {args.uri}", file=sys.stderr)
    return 0


def cmd_replay(args: argparse.Namespace) -> int:
    """Deliver each event from a YAML file; the first one is the cold start."""
    events_path = args.events_file.resolve()
    if not events_path.exists():
        print(f"Error: {events_path} does not exist", file=sys.stderr)
        return 1

    events = load_events(events_path)
    host = _open_host(args)
    for i, event in enumerate(events):
        if i == 0:
            host.on_create(event)
        else:
            host.on_new_intent(event)
    print(f"Delivered: {len(events)} event(s)", file=sys.stderr)
    return 0


def cmd_query(args: argparse.Namespace) -> int:
    """Invoke a method on the deep_link channel."""
    host = _open_host(args)
    response = host.invoke(CHANNEL_NAME, args.method)
    if args.json:
        print(json.dumps(response.to_dict()))
    elif response.ok:
        print(json.dumps(response.value))
    else:
        print("not implemented")
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    """Dump the shared store contents."""
    settings = load_settings(args.store_dir)
    store = FileFlagStore(settings.store_path, lock_timeout_seconds=settings.lock_timeout_seconds)
    values = store.items()
    if args.json:
        print(json.dumps({"path": str(settings.store_path), "values": values}, indent=2))
        return 0

    print(f"Store: {settings.store_path}")
    if not values:
        print("  (empty)")
    for key in sorted(values):
        print(f"  {key} = {json.dumps(values[key])}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="habit-link",
        description="Deep-link intake and flag bridge for the habit reminder app",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--store-dir",
        type=Path,
        default=None,
        help="Directory of the shared store (default: $HABIT_LINK_STORE_DIR or ~/.habit_link)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    open_parser = subparsers.add_parser("open", help="Deliver one activation event")
    open_parser.add_argument("uri")
    open_parser.add_argument("--action", default=ACTION_VIEW, help="Activation action tag")
    open_parser.add_argument(
        "--running", action="store_true", help="Deliver as re-activation instead of cold start"
    )

    replay_parser = subparsers.add_parser("replay", help="Deliver events from a YAML file")
    replay_parser.add_argument("events_file", type=Path)

    query_parser = subparsers.add_parser("query", help="Call a deep_link channel method")
    query_parser.add_argument("method", nargs="?", default=GET_INITIAL_DEEP_LINK)
    query_parser.add_argument("--json", action="store_true", help="Emit machine-readable JSON")

    show_parser = subparsers.add_parser("show", help="Show shared store contents")
    show_parser.add_argument("--json", action="store_true", help="Emit machine-readable JSON")

    args = parser.parse_args(argv)

    configure_logging(run_id=new_run_id(), command=args.command)
    _log = get_logger("cli")
    _log.debug("invocation", extra={"argv": argv if argv is not None else sys.argv[1:]})

    commands = {
        "open": cmd_open,
        "replay": cmd_replay,
        "query": cmd_query,
        "show": cmd_show,
    }
    try:
        return commands[args.command](args)
    except HabitLinkError as exc:
        _log.debug("command_failed", extra={"category": exc.category})
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
