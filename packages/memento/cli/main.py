"""Command-line interface for memento.

Inspects and maintains the cache store configured in memento.yaml.
"""

from __future__ import annotations

import argparse
from datetime import UTC, datetime
import logging
from pathlib import Path
import sys

from rich.console import Console
from rich.table import Table

from memento.core.caching import MemoCache
from memento.core.config import LoggingConfig, build_cache, configure_logging, load_app_config
from memento.core.errors import MementoError

console = Console()
logger = logging.getLogger(__name__)


def _format_time(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=UTC).strftime("%Y-%m-%d %H:%M:%S")


def cmd_list(cache: MemoCache, args: argparse.Namespace) -> int:
    """Print a table of cache entries, least recently used first."""
    entries = sorted(cache.entries(), key=lambda e: e.last_accessed_at)
    if args.limit is not None:
        entries = entries[: args.limit]

    table = Table(title=f"Cache entries ({cache.store.name})")
    table.add_column("Key")
    table.add_column("Size", justify="right")
    table.add_column("Created")
    table.add_column("Last accessed")

    for entry in entries:
        table.add_row(
            entry.key.decode("ascii", errors="replace"),
            str(entry.size),
            _format_time(entry.created_at),
            _format_time(entry.last_accessed_at),
        )

    console.print(table)
    return 0


def cmd_stats(cache: MemoCache, args: argparse.Namespace) -> int:
    """Print entry count, total size and configured bounds."""
    entries = cache.entries()
    total = sum(e.size for e in entries)

    table = Table(title="Cache stats", show_header=False)
    table.add_row("Store", cache.store.name)
    table.add_row("Entries", str(len(entries)))
    table.add_row("Bytes", str(total))
    table.add_row("Max entries", str(cache.capacity.max_entries or "unbounded"))
    table.add_row("Max bytes", str(cache.capacity.max_bytes or "unbounded"))
    table.add_row("TTL (s)", str(cache.ttl_seconds or "none"))
    table.add_row("Eviction", cache.eviction.value)

    console.print(table)
    return 0


def cmd_clear(cache: MemoCache, args: argparse.Namespace) -> int:
    """Remove every entry."""
    removed = cache.clear()
    console.print(f"[green]Removed {removed} entries[/green]")
    return 0


def cmd_prune(cache: MemoCache, args: argparse.Namespace) -> int:
    """Remove expired entries and enforce capacity."""
    removed = cache.prune(ttl_seconds=args.ttl)
    console.print(f"[green]Pruned {removed} entries[/green]")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="memento", description="memento cache tools")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to memento config (.yaml/.yml/.json); defaults to memento.yaml",
    )
    parser.add_argument("--log-level", default=None, help="Override configured log level")

    sub = parser.add_subparsers(dest="group", required=True)
    cache_parser = sub.add_parser("cache", help="Inspect and maintain the cache store")
    cache_sub = cache_parser.add_subparsers(dest="command", required=True)

    list_parser = cache_sub.add_parser("list", help="List entries")
    list_parser.add_argument("--limit", type=int, default=None, help="Max rows to show")
    list_parser.set_defaults(handler=cmd_list)

    cache_sub.add_parser("stats", help="Show store statistics").set_defaults(handler=cmd_stats)
    cache_sub.add_parser("clear", help="Remove all entries").set_defaults(handler=cmd_clear)

    prune_parser = cache_sub.add_parser("prune", help="Remove expired entries, enforce capacity")
    prune_parser.add_argument("--ttl", type=float, default=None, help="Override configured ttl")
    prune_parser.set_defaults(handler=cmd_prune)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    args = build_parser().parse_args(argv)

    try:
        config = load_app_config(args.config)
        if args.log_level:
            level = args.log_level.upper()
            config.logging = LoggingConfig.model_validate(
                {**config.logging.model_dump(), "level": level}
            )
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]ERROR: could not load config: {e}[/red]")
        return 1

    configure_logging(config)

    try:
        cache = build_cache(config.cache)
        return args.handler(cache, args)
    except (MementoError, ValueError) as e:
        logger.error(f"memento {args.command} failed: {e}")
        console.print(f"[red]ERROR: {e}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
