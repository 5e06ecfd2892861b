"""
Command-line interface for administering a dictionary database.
"""
from __future__ import annotations

import argparse
import datetime
import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Optional

from dictionary_editor import __version__
from dictionary_editor.config import EditorConfig, load_config, seed_languages
from dictionary_editor.editor import DictionaryEditor
from dictionary_editor.exceptions import DictionaryEditorError
from dictionary_editor.models import AuditEvent, Page

logger = logging.getLogger(__name__)

_EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)


def main(argv: Optional[list] = None) -> int:
    """Main entry point for the dict-editor CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    _configure_logging(args.verbose)
    try:
        return args.func(args)
    except DictionaryEditorError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="dict-editor",
        description="Administer a multilingual dictionary database",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--db",
        type=str,
        help="Database path (overrides configuration and DICTIONARY_EDITOR_DB)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="YAML configuration file",
    )
    parser.add_argument(
        "--actor",
        type=str,
        default=None,
        help="Identity recorded on audit events (default: system)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log output (-v info, -vv debug)",
    )

    subparsers = parser.add_subparsers(title="commands", dest="command")

    # init command
    init_parser = subparsers.add_parser(
        "init",
        help="Create the database and seed languages from the configuration",
    )
    init_parser.set_defaults(func=cmd_init)

    # seed-languages command
    seed_parser = subparsers.add_parser(
        "seed-languages",
        help="Create languages listed in a YAML file",
    )
    seed_parser.add_argument(
        "file",
        type=Path,
        help="YAML file with a 'languages' list",
    )
    seed_parser.set_defaults(func=cmd_seed_languages)

    # languages command
    languages_parser = subparsers.add_parser(
        "languages",
        help="List languages",
    )
    languages_parser.add_argument(
        "--enabled",
        action="store_true",
        help="Only show enabled languages",
    )
    languages_parser.set_defaults(func=cmd_languages)

    # enable / disable commands
    for name, enabled in (("enable", True), ("disable", False)):
        toggle_parser = subparsers.add_parser(
            name,
            help=f"{name.capitalize()} a language for content writes",
        )
        toggle_parser.add_argument("code", type=str, help="Language code")
        toggle_parser.set_defaults(func=_toggle_command(enabled))

    # timeline command
    timeline_parser = subparsers.add_parser(
        "timeline",
        help="Show the audit history of one entity",
    )
    timeline_parser.add_argument("entity_type", type=str, help="e.g. LEMMA")
    timeline_parser.add_argument("entity_id", type=str, help="Entity ID")
    _add_paging(timeline_parser)
    timeline_parser.set_defaults(func=cmd_timeline)

    # activity command
    activity_parser = subparsers.add_parser(
        "activity",
        help="Show audit events by type or by actor in a time window",
    )
    who = activity_parser.add_mutually_exclusive_group(required=True)
    who.add_argument("--event-type", type=str, help="e.g. LEMMA_STATUS_CHANGED")
    who.add_argument("--by", dest="by_actor", type=str, help="Actor to filter on")
    activity_parser.add_argument(
        "--since",
        type=_parse_timestamp,
        default=None,
        help="Window start, ISO-8601 (default: beginning of time)",
    )
    activity_parser.add_argument(
        "--until",
        type=_parse_timestamp,
        default=None,
        help="Window end, ISO-8601 (default: now)",
    )
    _add_paging(activity_parser)
    activity_parser.set_defaults(func=cmd_activity)

    return parser


def cmd_init(args: argparse.Namespace) -> int:
    """Handle init command."""
    config = _load(args)
    with _open(args, config) as editor:
        created = seed_languages(editor, config.languages, actor=args.actor)
    logger.info("Initialized %s", _database(args, config))
    print(f"Initialized {_database(args, config)}")
    if created:
        print(f"  Languages created: {', '.join(created)}")
    return 0


def cmd_seed_languages(args: argparse.Namespace) -> int:
    """Handle seed-languages command."""
    seeds = load_config(args.file).languages
    with _open(args, _load(args)) as editor:
        created = seed_languages(editor, seeds, actor=args.actor)

    if not created:
        print("No new languages.")
        return 0
    print(f"Created {len(created)} language(s): {', '.join(created)}")
    return 0


def cmd_languages(args: argparse.Namespace) -> int:
    """Handle languages command."""
    with _open(args, _load(args)) as editor:
        languages = (
            editor.list_enabled_languages() if args.enabled
            else editor.list_languages()
        )

    if not languages:
        print("No languages found.")
        return 0

    print(f"{'Code':<8} {'Name':<20} {'Script':<14} {'Enabled'}")
    print("-" * 52)
    for lang in languages:
        flag = "yes" if lang.enabled else "no"
        print(f"{lang.code:<8} {lang.name:<20} {lang.script:<14} {flag}")
    return 0


def _toggle_command(enabled: bool) -> Callable[[argparse.Namespace], int]:
    def cmd_toggle(args: argparse.Namespace) -> int:
        with _open(args, _load(args)) as editor:
            lang = editor.set_language_enabled(args.code, enabled, actor=args.actor)
        state = "enabled" if lang.enabled else "disabled"
        logger.info("Language %s %s", lang.code, state)
        print(f"Language {lang.code} {state}.")
        return 0

    return cmd_toggle


def cmd_timeline(args: argparse.Namespace) -> int:
    """Handle timeline command."""
    with _open(args, _load(args)) as editor:
        result = editor.get_timeline(
            args.entity_type, args.entity_id, page=args.page, size=args.size
        )
    _print_page(result)
    return 0


def cmd_activity(args: argparse.Namespace) -> int:
    """Handle activity command."""
    since = args.since or _EPOCH
    until = args.until or datetime.datetime.now(datetime.timezone.utc)
    with _open(args, _load(args)) as editor:
        if args.event_type:
            result = editor.get_activity_by_event_type(
                args.event_type, since, until, page=args.page, size=args.size
            )
        else:
            result = editor.get_activity_by_actor(
                args.by_actor, since, until, page=args.page, size=args.size
            )
    _print_page(result)
    return 0


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load(args: argparse.Namespace) -> EditorConfig:
    return load_config(args.config)


def _database(args: argparse.Namespace, config: EditorConfig) -> str:
    return args.db or config.database


def _open(args: argparse.Namespace, config: EditorConfig) -> DictionaryEditor:
    return DictionaryEditor(_database(args, config))


def _add_paging(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--page",
        type=int,
        default=0,
        help="Page number, starting at 0 (default: 0)",
    )
    parser.add_argument(
        "--size",
        type=int,
        default=20,
        help="Events per page (default: 20)",
    )


def _parse_timestamp(value: str) -> datetime.datetime:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.datetime.fromisoformat(text)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"invalid ISO-8601 timestamp: {value!r}"
        ) from None


def _print_page(result: Page[AuditEvent]) -> None:
    """Print one page of audit events, newest first."""
    if not result.items:
        print("No events found.")
        return

    for event in result.items:
        print(f"{event.event_ts}  {event.event_type:<32} {event.actor}")
        print(f"    {event.entity_type} {event.entity_id}")
        if event.comment:
            print(f"    comment: {event.comment}")
        if event.details:
            print(f"    details: {event.details}")

    shown_to = result.page * result.size + len(result.items)
    print(f"\nShowing {shown_to} of {result.total} event(s)")
    if result.has_next:
        print(f"Next page: --page {result.page + 1}")


if __name__ == "__main__":
    sys.exit(main())
