#!/usr/bin/env python3
"""
Command line interface for the wiki client.

Prints results as JSON lines on stdout; logs go to stderr.

Usage:
    wikiclient siteinfo
    wikiclient --host de.wikipedia.org pageinfo "Main Page" "Hauptseite"
    wikiclient --config config/wiki.yaml recentchanges --limit 50 --namespace 0
    wikiclient history "Main Page" --limit 20 --oldest-first --verbose
"""

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from .config import WikiConfig
from .core.exceptions import WikiError
from .core.logging import configure_logging, get_logger
from .core.models import Event, Revision
from .wiki import Wiki


def setup_logging(verbose: bool = False, structured: bool = False) -> None:
    """Configure logging."""
    log_level = logging.DEBUG if verbose else logging.INFO
    configure_logging(level=log_level, structured=structured)


def build_wiki(args: argparse.Namespace) -> Wiki:
    """Build the client from configuration and command line overrides."""
    config = WikiConfig(config_path=args.config)
    if args.host:
        config.set("wiki.host", args.host)
    return Wiki.from_config(config)


def _emit(record: Any, index_url: Optional[str] = None) -> None:
    if dataclasses.is_dataclass(record):
        url = record.permanent_url(index_url) if isinstance(record, Revision) and index_url else None
        record = dataclasses.asdict(record)
        if url:
            record["url"] = url
    print(json.dumps(record, default=str, ensure_ascii=False))


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="MediaWiki API client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Path to configuration YAML file",
    )

    parser.add_argument(
        "--host",
        help="Wiki host name, overrides the configuration",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose/debug logging",
    )

    parser.add_argument(
        "--structured-logs",
        action="store_true",
        help="Emit logs as JSON lines",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("siteinfo", help="Show site metadata")

    pageinfo = subparsers.add_parser("pageinfo", help="Show page metadata")
    pageinfo.add_argument("titles", nargs="+", help="Page titles")

    recent = subparsers.add_parser("recentchanges", help="List recent changes")
    recent.add_argument("--limit", type=int, default=10, help="Maximum number of changes")
    recent.add_argument(
        "--namespace",
        type=int,
        action="append",
        help="Restrict to a namespace (repeatable)",
    )

    history = subparsers.add_parser("history", help="List revisions of a page")
    history.add_argument("title", help="Page title")
    history.add_argument("--limit", type=int, default=10, help="Maximum number of revisions")

    for command in (recent, history):
        command.add_argument(
            "--oldest-first",
            action="store_true",
            help="Print in chronological order instead of newest first",
        )

    return parser.parse_args(argv)


def run_command(wiki: Wiki, args: argparse.Namespace) -> None:
    """Run one subcommand and print its results."""
    if args.command == "siteinfo":
        _emit({
            "host": wiki.session.host,
            "version": wiki.site.version(),
            "timezone": wiki.site.timezone(),
            "locale": wiki.site.locale(),
            "capital_links": wiki.site.uses_capital_links(),
            "extensions": sorted(wiki.site.installed_extensions()),
        })
    elif args.command == "pageinfo":
        for info in wiki.get_page_info(args.titles):
            _emit(info)
    elif args.command in ("recentchanges", "history"):
        if args.command == "recentchanges":
            revisions = wiki.recent_changes(limit=args.limit, namespaces=args.namespace)
        else:
            revisions = wiki.get_page_history(args.title, limit=args.limit)
        if args.oldest_first:
            revisions = sorted(revisions, key=Event.sort_key)
        for revision in revisions:
            _emit(revision, wiki.session.index_url)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    setup_logging(verbose=args.verbose, structured=args.structured_logs)
    logger = get_logger(__name__)

    try:
        wiki = build_wiki(args)
    except (FileNotFoundError, WikiError) as e:
        logger.error(f"Configuration error: {e}")
        return 1

    logger.debug(f"Using {wiki.session.api_url}")

    try:
        run_command(wiki, args)
        return 0
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 1
    except WikiError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    finally:
        wiki.close()


if __name__ == "__main__":
    sys.exit(main())
