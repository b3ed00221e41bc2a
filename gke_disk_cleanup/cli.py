"""
Command line entry point.

Usage:
    # Dry run (default) - show which GKE volumes would be marked
    gke-disk-cleanup --project-id my-project --zone us-east1-a mark

    # Mark volumes not attached for 60 days
    gke-disk-cleanup --project-id my-project --no-dry-run mark --cutoff 60

    # Snapshot and delete everything marked for deletion
    gke-disk-cleanup --project-id my-project --no-dry-run cleanup

    # Delete without snapshots, four disks at a time
    gke-disk-cleanup --project-id my-project --no-dry-run --workers 4 cleanup --no-do-snapshot
"""

import argparse
import logging
import signal
import sys
import threading
from datetime import timedelta

from rich.logging import RichHandler

from .cleanup import run_cleanup
from .config import Settings
from .labels import FILTER_GKE_VOLUME
from .mark import run_mark
from .pipeline import InventoryError
from .providers import ProviderError, get_disk_service
from .report import Tally, log_outcome, render_summary

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CANCELLED = 130


def _positive_int(value: str) -> int:
    parsed = int(value)
    if parsed < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {parsed}")
    return parsed


def _positive_float(value: str) -> float:
    parsed = float(value)
    if parsed <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {parsed}")
    return parsed


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gke-disk-cleanup",
        description="Mark and delete unused GKE persistent disks",
    )
    parser.add_argument("--project-id", default=settings.project_id,
                        help=f"GCP project ID (default: {settings.project_id})")
    parser.add_argument("--zone", default=settings.zone,
                        help=f"Compute zone (default: {settings.zone})")
    parser.add_argument("--dry-run", action=argparse.BooleanOptionalAction, default=settings.dry_run,
                        help="Only report what would change (default: on)")
    parser.add_argument("--verbose", action="store_true", default=settings.verbose,
                        help="Enable debug logging")
    parser.add_argument("--workers", type=_positive_int, default=settings.workers,
                        help=f"Disks processed concurrently (default: {settings.workers})")

    subparsers = parser.add_subparsers(dest="command", required=True)

    mark = subparsers.add_parser("mark", help="Label disks that have not been attached recently")
    mark.add_argument("--filter", default=FILTER_GKE_VOLUME,
                      help=f"Disk list filter (default: {FILTER_GKE_VOLUME})")
    mark.add_argument("--cutoff", type=_positive_int, default=30,
                      help="Days since last attach before a disk is marked (default: 30)")

    cleanup = subparsers.add_parser("cleanup", help="Delete disks marked for deletion")
    cleanup.add_argument("--do-snapshot", action=argparse.BooleanOptionalAction, default=True,
                         help="Snapshot each disk before deleting it (default: on)")
    cleanup.add_argument("--poll-interval", type=_positive_float, default=settings.poll_interval,
                         help=f"Seconds between snapshot status checks (default: {settings.poll_interval})")
    cleanup.add_argument("--snapshot-timeout", type=_positive_float, default=settings.snapshot_timeout,
                         help="Give up on a snapshot after this many seconds (default: wait forever)")

    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(name)s - %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=verbose)],
        force=True,
    )
    if not verbose:
        # google-auth and urllib3 are noisy at INFO
        logging.getLogger("google").setLevel(logging.WARNING)
        logging.getLogger("urllib3").setLevel(logging.WARNING)


def install_signal_handlers(cancel: threading.Event) -> dict:
    """Set cancel on SIGINT/SIGTERM; returns the previous handlers."""

    def handle(signum, frame):
        logger.warning(f"Received {signal.Signals(signum).name}, finishing current disk and stopping")
        cancel.set()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, handle)
    return previous


def restore_signal_handlers(previous: dict) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)


def run(args: argparse.Namespace, settings: Settings, cancel: threading.Event) -> int:
    """Run the selected sub-command and return the exit code."""
    if args.dry_run:
        logger.info("Running in dry-run mode, no disks will be modified")

    try:
        service = get_disk_service(settings.provider, project=args.project_id, zone=args.zone)
    except (ValueError, ProviderError) as e:
        logger.error(f"Failed to create disk service: {e}")
        return EXIT_FATAL

    if args.command == "mark":
        outcomes = run_mark(
            service,
            args.filter,
            timedelta(days=args.cutoff),
            args.dry_run,
            cancel=cancel,
            workers=args.workers,
        )
    else:
        outcomes = run_cleanup(
            service,
            args.do_snapshot,
            args.dry_run,
            cancel=cancel,
            workers=args.workers,
            poll_interval=args.poll_interval,
            snapshot_timeout=args.snapshot_timeout,
        )

    tally = Tally()
    exit_code = EXIT_OK
    try:
        for outcome in outcomes:
            log_outcome(outcome)
            tally.add(outcome)
    except InventoryError as e:
        logger.error(f"Aborting {args.command} pass: {e}", exc_info=args.verbose)
        exit_code = EXIT_FATAL

    title = f"{args.command} {args.project_id}/{args.zone}" + (" (dry run)" if args.dry_run else "")
    render_summary(tally, title)

    if exit_code == EXIT_OK and cancel.is_set():
        logger.warning(f"{args.command} pass cancelled after {tally.total} outcome(s)")
        return EXIT_CANCELLED
    return exit_code


def main(argv: list[str] | None = None) -> int:
    try:
        settings = Settings.from_env()
    except ValueError as e:
        print(f"gke-disk-cleanup: configuration error: {e}", file=sys.stderr)
        return EXIT_FATAL

    args = build_parser(settings).parse_args(argv)
    configure_logging(args.verbose)

    cancel = threading.Event()
    previous = install_signal_handlers(cancel)
    try:
        return run(args, settings, cancel)
    finally:
        restore_signal_handlers(previous)


if __name__ == "__main__":
    sys.exit(main())
