"""CLI with subcommands: index, transfer, stat, types."""
from __future__ import annotations

import argparse
import logging
import os
import re
import sys
import time
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from .core.config import (
    DEFAULT_CHECKPOINT_INTERVAL,
    DEFAULT_INDEX_FILENAME,
    DEFAULT_TARGET_DIRNAME,
    IndexerConfig,
    TransferConfig,
)
from .core.errors import AccessDeniedError, CorruptDataError, NotFoundError, PhotoTransferError
from .core.models import Period, TransferOutcome
from .logging.rich_logger import RichProgressReporter, QuietProgressReporter

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_NOT_FOUND = 1
EXIT_INVALID = 2
EXIT_PARTIAL = 3
EXIT_FAILED = 4
EXIT_INTERRUPTED = 130

_GLOBAL_FLAGS = {"-v", "--verbose", "-q", "--quiet"}
_PERIOD_ARG = re.compile(r"^--?\d{4}-\d{1,2}$")


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="phototransfer",
        description="Index a photo collection and transfer one month at a time.",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # ============ INDEX command ============
    index_parser = subparsers.add_parser(
        "index",
        help="Index photos in a directory (resumes an interrupted run)",
    )
    index_parser.add_argument(
        "--directory",
        type=Path,
        default=None,
        help="Directory to index (default: current directory)",
    )
    index_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help=f"Index file (default: ./{DEFAULT_INDEX_FILENAME})",
    )
    index_parser.add_argument(
        "--update-base",
        action="store_true",
        help="Re-enumerate files with the current formats, keeping indexed files",
    )
    index_parser.add_argument(
        "--reuse-base",
        action="store_true",
        help="Take the file list from base-index.json instead of walking the tree",
    )
    index_parser.add_argument(
        "--stat",
        action="store_true",
        help="Show statistics grouped by year-month afterwards",
    )
    index_parser.add_argument(
        "--checkpoint-interval",
        type=int,
        default=DEFAULT_CHECKPOINT_INTERVAL,
        help=f"Files between checkpoints (default: {DEFAULT_CHECKPOINT_INTERVAL})",
    )

    # ============ TRANSFER command ============
    transfer_parser = subparsers.add_parser(
        "transfer",
        help="Move or copy the photos of one period",
    )
    transfer_parser.add_argument(
        "period",
        type=str,
        help="Period in format YYYY-MM",
    )
    transfer_parser.add_argument(
        "--copy",
        action="store_true",
        help="Copy files instead of moving them",
    )
    transfer_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be transferred without touching files",
    )
    transfer_parser.add_argument(
        "--target",
        type=Path,
        default=None,
        help=f"Target directory (default: ./{DEFAULT_TARGET_DIRNAME})",
    )
    transfer_parser.add_argument(
        "--duplicates",
        type=str,
        choices=["largest", "suffix"],
        default="largest",
        help="Same-name files: keep the largest, or keep all with (N) suffixes (default: largest)",
    )
    transfer_parser.add_argument(
        "--input",
        type=Path,
        default=None,
        help=f"Index file (default: ./{DEFAULT_INDEX_FILENAME})",
    )

    # ============ STAT command ============
    stat_parser = subparsers.add_parser(
        "stat",
        help="Show indexed photo counts per period",
    )
    stat_parser.add_argument(
        "--input",
        type=Path,
        default=None,
        help=f"Index file (default: ./{DEFAULT_INDEX_FILENAME})",
    )

    # ============ TYPES command ============
    types_parser = subparsers.add_parser(
        "types",
        help="Count all files by extension",
    )
    types_parser.add_argument(
        "--directory",
        type=Path,
        default=None,
        help="Directory to scan (default: current directory)",
    )

    return parser


def normalize_argv(argv: list[str]) -> list[str]:
    """Accept ``--2012-01`` style periods, with or without ``transfer``."""
    result = []
    command_seen = False
    for arg in argv:
        if _PERIOD_ARG.match(arg):
            if not command_seen:
                result.append("transfer")
                command_seen = True
            result.append(arg.lstrip("-"))
            continue
        if not command_seen and arg not in _GLOBAL_FLAGS:
            command_seen = True
        result.append(arg)
    return result


def configure_logging(verbose: bool) -> None:
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )


def _default_index_path(path: Optional[Path]) -> Path:
    return (path or Path.cwd() / DEFAULT_INDEX_FILENAME).expanduser().absolute()


# ============ Command Handlers ============

def cmd_index(args: argparse.Namespace, reporter) -> int:
    """Handle the index command."""
    from .services.indexer import MediaIndexer
    from .services.stats import period_statistics

    directory = (args.directory or Path.cwd()).expanduser().absolute()
    output = _default_index_path(args.output)

    if not directory.is_dir():
        reporter.error(f"Directory not found: {directory}")
        return EXIT_NOT_FOUND

    if output.parent.is_dir() and not os.access(output.parent, os.W_OK):
        reporter.error(f"Permission denied - cannot write index to {output.parent}")
        return EXIT_INVALID

    try:
        config = IndexerConfig(checkpoint_interval=args.checkpoint_interval)
    except ValueError as e:
        reporter.error(str(e))
        return EXIT_INVALID

    reporter.print_header("phototransfer index")
    reporter.print_config({
        "Directory": str(directory),
        "Index File": str(output),
        "Update Base": args.update_base,
        "Checkpoint Interval": config.checkpoint_interval,
    })

    start = time.monotonic()
    try:
        with MediaIndexer(config=config, progress=reporter) as indexer:
            index = indexer.index(
                directory,
                output,
                update_base=args.update_base,
                on_progress=reporter.debug,
                reuse_base=args.reuse_base,
            )
            stats = indexer.stats
    except NotFoundError as e:
        reporter.error(str(e))
        return EXIT_NOT_FOUND
    except PermissionError as e:
        reporter.error(f"Permission denied: {e}")
        return EXIT_INVALID
    except (PhotoTransferError, OSError) as e:
        reporter.error(str(e))
        return EXIT_PARTIAL

    reporter.print_index_stats(stats, time.monotonic() - start)
    reporter.success(f"Index complete - {index.total_count} photos indexed")

    if args.stat:
        rows = period_statistics(index)
        if rows:
            reporter.print_period_table(rows)
        else:
            reporter.info("No photos found.")
    return EXIT_OK


def cmd_transfer(args: argparse.Namespace, reporter) -> int:
    """Handle the transfer command."""
    from .persistence.store import IndexStore
    from .services.file_ops import TransferExecutor, update_index_after_transfer
    from .services.planner import TransferPlanner, records_for_period

    try:
        period = Period.parse(args.period)
    except ValueError as e:
        reporter.error(str(e))
        return EXIT_INVALID

    config = TransferConfig.from_flags(
        copy=args.copy, duplicates=args.duplicates, dry_run=args.dry_run,
    )

    store = IndexStore()
    try:
        snapshot_path, index = store.load_latest(_default_index_path(args.input))
    except NotFoundError:
        reporter.error("No index files found. Run 'phototransfer index' first.")
        return EXIT_NOT_FOUND
    except CorruptDataError as e:
        reporter.error(f"Invalid index: {e}")
        return EXIT_NOT_FOUND
    reporter.debug(f"Loaded index from {snapshot_path}")

    records = records_for_period(index, period)
    if not records:
        reporter.error(f"No photos found for period: {period}")
        return EXIT_INVALID
    reporter.info(f"Found {len(records)} photos for period: {period}")

    target_root = (args.target or Path.cwd() / DEFAULT_TARGET_DIRNAME).expanduser().absolute()
    target_dir = target_root / str(period)
    reporter.debug(f"Target directory: {target_dir}")

    operations = TransferPlanner(config.duplicate_policy).plan(records, target_dir, config.mode)
    executor = TransferExecutor(dry_run=config.dry_run, progress=reporter)

    if config.dry_run:
        executor.execute(operations)
        reporter.print_transfer_plan(operations)
        return EXIT_OK

    reporter.info(f"Starting transfer of {len(operations)} files...")
    summary = executor.execute(operations)
    reporter.print_transfer_summary(summary)

    if summary.completed:
        updated = update_index_after_transfer(store, snapshot_path, operations)
        reporter.debug(f"Marked {updated} records transferred in {snapshot_path.name}")

    match summary.outcome:
        case TransferOutcome.PARTIAL:
            reporter.warning(f"{summary.failed} files failed to transfer")
            return EXIT_PARTIAL
        case TransferOutcome.FAILED:
            reporter.error("All transfers failed")
            return EXIT_FAILED
        case _:
            reporter.success(f"Transfer complete - {summary.completed} files transferred")
            return EXIT_OK


def cmd_stat(args: argparse.Namespace, reporter) -> int:
    """Handle the stat command."""
    from .persistence.store import IndexStore
    from .services.stats import period_statistics, transferred_count

    try:
        snapshot_path, index = IndexStore().load_latest(_default_index_path(args.input))
    except NotFoundError:
        reporter.error("No index files found. Run 'phototransfer index' first.")
        return EXIT_NOT_FOUND
    except CorruptDataError as e:
        reporter.error(f"Invalid index: {e}")
        return EXIT_NOT_FOUND

    reporter.debug(f"Statistics from {snapshot_path}")
    rows = period_statistics(index)
    if not rows:
        reporter.info("No photos found.")
        return EXIT_OK
    reporter.print_period_table(rows, transferred=transferred_count(index))
    return EXIT_OK


def cmd_types(args: argparse.Namespace, reporter) -> int:
    """Handle the types command."""
    from .services.scanner import FileEnumerator
    from .services.stats import extension_statistics

    directory = args.directory or Path.cwd()
    try:
        counts = FileEnumerator().count_by_extension(directory)
    except NotFoundError as e:
        reporter.error(str(e))
        return EXIT_NOT_FOUND
    except AccessDeniedError as e:
        reporter.error(str(e))
        return EXIT_INVALID

    if not counts:
        reporter.info("No files found.")
        return EXIT_OK
    reporter.print_extension_table(extension_statistics(counts))
    return EXIT_OK


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(normalize_argv(sys.argv[1:] if argv is None else argv))

    configure_logging(args.verbose)
    if args.quiet:
        reporter = QuietProgressReporter()
    else:
        reporter = RichProgressReporter(verbose=args.verbose)

    if not args.command:
        parser.print_help()
        return EXIT_OK

    try:
        match args.command:
            case "index":
                return cmd_index(args, reporter)
            case "transfer":
                return cmd_transfer(args, reporter)
            case "stat":
                return cmd_stat(args, reporter)
            case "types":
                return cmd_types(args, reporter)
            case _:
                reporter.error(f"Unknown command: {args.command}")
                return EXIT_NOT_FOUND
    except KeyboardInterrupt:
        # Checkpoint on disk is already consistent
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
