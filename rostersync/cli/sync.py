"""Operator CLI for the artist sync.

Usage::

    python -m rostersync.cli sync --limit 5
    python -m rostersync.cli sync --use-cached
    python -m rostersync.cli populate-queue
    python -m rostersync.cli status
    python -m rostersync.cli missing
    python -m rostersync.cli queue-stats
    python -m rostersync.cli queue-reset some-artist
    python -m rostersync.cli queue-cleanup
    python -m rostersync.cli lock-info
    python -m rostersync.cli force-unlock
    python -m rostersync.cli audit-duplicates

Exit codes: 0 on success, 1 on failure (including a run with failed
artists), 2 when another run holds the sync lock.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from rostersync.bootstrap import build_components, initialize_stores
from rostersync.config.loader import load_config
from rostersync.config.settings import Settings
from rostersync.models.sync import RunPhase, SyncLockInfo
from rostersync.pipeline.progress_tracker import ALL_RUNS
from rostersync.utils.errors import ConfigurationError, ConflictError, InvalidTransitionError, RosterSyncError
from rostersync.utils.logging import configure_logging

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFLICT = 2

Handler = Callable[[argparse.Namespace, dict[str, Any]], Awaitable[int]]


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _print_lock(info: SyncLockInfo) -> None:
    print(f"  Request ID:   {info.request_id}")
    print(f"  Acquired at:  {info.acquired_at.isoformat()}")
    print(f"  Owner PID:    {info.owner_pid}")
    print(f"  Max age:      {info.max_age_seconds:.0f}s")
    if info.metadata:
        print(f"  Metadata:     {info.metadata}")


def _print_progress(request_id: str, phase: RunPhase, done: int, total: int, message: str) -> None:
    if phase == RunPhase.PROCESSING_ARTISTS and total:
        print(f"[{done}/{total}] {message}")
    elif message:
        print(f"[{phase.value}] {message}")


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _handle_sync(args: argparse.Namespace, components: dict[str, Any]) -> int:
    orchestrator = components["orchestrator"]
    orchestrator.progress_tracker.register_listener(ALL_RUNS, _print_progress)
    try:
        report = await orchestrator.run(
            max_artists=args.limit,
            use_cached_upstream_snapshot=args.use_cached,
            metadata={"trigger": "cli"},
        )
    except ConflictError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return EXIT_CONFLICT

    print("\nSync complete:")
    print(f"  Published: {len(report.success)}")
    print(f"  Failed:    {len(report.failed)}")
    print(f"  Skipped:   {len(report.skipped)}")
    print(f"  Duration:  {report.duration_seconds:.1f}s")
    for failure in report.failed:
        print(f"    - {failure.name} [{failure.stage.value}]: {failure.error}")
    return EXIT_FAILURE if report.failed else EXIT_OK


async def _handle_populate_queue(args: argparse.Namespace, components: dict[str, Any]) -> int:
    result = await components["orchestrator"].populate_queue_only(
        use_cached_upstream_snapshot=args.use_cached
    )
    print(f"Missing artists: {result.missing}")
    print(f"Newly queued:    {result.added}")
    print(f"Queue pending:   {result.stats.pending}")
    return EXIT_OK


async def _handle_status(args: argparse.Namespace, components: dict[str, Any]) -> int:
    status = await components["orchestrator"].status()
    holder = await components["sync_lock"].info()

    print("Sync Status")
    print("=" * 40)
    print(f"  Status:    {status.status.value}")
    print(f"  Last run:  {status.last_run.isoformat() if status.last_run else 'never'}")
    print(f"  Running:   {'yes' if holder else 'no'}")
    if status.error:
        print(f"  Error:     {status.error}")
    if status.report is not None:
        report = status.report
        print(f"  Published: {len(report.success)}")
        print(f"  Failed:    {len(report.failed)}")
        print(f"  Skipped:   {len(report.skipped)}")
        print(f"  Duration:  {report.duration_seconds:.1f}s")
    return EXIT_OK


async def _handle_missing(args: argparse.Namespace, components: dict[str, Any]) -> int:
    diff = await components["orchestrator"].find_missing(use_cached_upstream_snapshot=args.use_cached)
    print(f"Upstream: {diff.upstream_total}  Published pages: {diff.published_total}")
    print(f"Missing:  {len(diff.missing)}")
    for candidate in diff.missing:
        genres = ", ".join(candidate.genres[:3]) or "-"
        print(f"  {candidate.display_name}  ({candidate.canonical_identity}; {genres})")
    if diff.unresolvable:
        print(f"Unresolvable names: {', '.join(diff.unresolvable)}")
    return EXIT_OK


async def _handle_queue_stats(args: argparse.Namespace, components: dict[str, Any]) -> int:
    stats = await components["research_queue"].stats()
    print("Research Queue")
    print("=" * 40)
    print(f"  Total:       {stats.total}")
    print(f"  Pending:     {stats.pending}")
    print(f"  Processing:  {stats.processing}")
    print(f"  Completed:   {stats.completed}")
    print(f"  Failed:      {stats.failed}")
    print(f"  Researched:  {stats.total_researched}")
    return EXIT_OK


async def _handle_queue_reset(args: argparse.Namespace, components: dict[str, Any]) -> int:
    try:
        await components["research_queue"].reset(args.identity)
    except InvalidTransitionError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return EXIT_FAILURE
    print(f"Reset {args.identity} to pending.")
    return EXIT_OK


async def _handle_queue_cleanup(args: argparse.Namespace, components: dict[str, Any]) -> int:
    removed = await components["research_queue"].cleanup_completed()
    print(f"Removed {removed} completed entries (research results kept).")
    return EXIT_OK


async def _handle_lock_info(args: argparse.Namespace, components: dict[str, Any]) -> int:
    info = await components["sync_lock"].info()
    if info is None:
        print("Sync lock is free.")
        return EXIT_OK
    print("Sync lock is held:")
    _print_lock(info)
    return EXIT_OK


async def _handle_force_unlock(args: argparse.Namespace, components: dict[str, Any]) -> int:
    previous = await components["sync_lock"].force_release()
    if previous is None:
        print("Sync lock was not held.")
        return EXIT_OK
    print("Released sync lock:")
    _print_lock(previous)
    return EXIT_OK


async def _handle_audit_duplicates(args: argparse.Namespace, components: dict[str, Any]) -> int:
    report = await components["duplicate_audit"].audit()
    print(f"Published pages: {report.total_pages}  Artists: {report.total_identities}")
    print(f"Duplicate groups: {len(report.duplicates)}")
    for group in report.duplicates:
        extra = ", ".join(str(page_id) for page_id in group.extra_page_ids)
        print(f"  {group.canonical_identity} [{group.locale}] keep {group.keep_page_id}, extra: {extra}")
    if report.near_duplicates:
        print(f"Possible duplicates: {len(report.near_duplicates)}")
        for near in report.near_duplicates:
            print(f"  {near.identity} ~ {near.other} ({near.score:.2f})")
    if report.unresolvable:
        print(f"Unresolvable page titles: {', '.join(report.unresolvable)}")
    return EXIT_OK


_HANDLERS: dict[str, Handler] = {
    "sync": _handle_sync,
    "populate-queue": _handle_populate_queue,
    "status": _handle_status,
    "missing": _handle_missing,
    "queue-stats": _handle_queue_stats,
    "queue-reset": _handle_queue_reset,
    "queue-cleanup": _handle_queue_cleanup,
    "lock-info": _handle_lock_info,
    "force-unlock": _handle_force_unlock,
    "audit-duplicates": _handle_audit_duplicates,
}


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _positive_int(value: str) -> int:
    """argparse type for counts that must be at least 1."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the sync CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m rostersync.cli",
        description="Synchronize the published artist catalog with the upstream roster.",
    )
    parser.add_argument(
        "--config",
        default="config/config.yaml",
        help="Path to the YAML configuration (default: config/config.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Sync commands")

    # -- sync --
    sync_parser = subparsers.add_parser("sync", help="Run a full sync")
    sync_parser.add_argument("--limit", type=_positive_int, default=None, help="Publish at most N artists")
    sync_parser.add_argument(
        "--use-cached",
        action="store_true",
        dest="use_cached",
        help="Read the roster from the last Spotify snapshot",
    )

    # -- populate-queue --
    populate_parser = subparsers.add_parser("populate-queue", help="Queue missing artists for research")
    populate_parser.add_argument("--use-cached", action="store_true", dest="use_cached")

    # -- status / missing --
    subparsers.add_parser("status", help="Show the last run status")
    missing_parser = subparsers.add_parser("missing", help="List upstream artists without a page")
    missing_parser.add_argument("--use-cached", action="store_true", dest="use_cached")

    # -- research queue --
    subparsers.add_parser("queue-stats", help="Show research queue counters")
    reset_parser = subparsers.add_parser("queue-reset", help="Return a failed entry to pending")
    reset_parser.add_argument("identity", help="Canonical identity (slug) of the entry")
    subparsers.add_parser("queue-cleanup", help="Delete completed queue entries")

    # -- lock --
    subparsers.add_parser("lock-info", help="Show the sync lock holder")
    subparsers.add_parser("force-unlock", help="Force-release the sync lock")

    # -- audit --
    subparsers.add_parser("audit-duplicates", help="Report duplicate published pages")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    """Build the components, dispatch *args.command* and close the HTTP client."""
    app_config = load_config(args.config, settings=app_settings)
    async with httpx.AsyncClient(timeout=30.0) as http_client:
        components = build_components(app_settings, app_config, http_client=http_client)
        await initialize_stores(components)
        try:
            return await _HANDLERS[args.command](args, components)
        except ConfigurationError as exc:
            print(f"Configuration error: {exc.message}", file=sys.stderr)
            missing = app_settings.missing_sync_requirements()
            if missing:
                print(f"  Missing: {', '.join(missing)}", file=sys.stderr)
            return EXIT_FAILURE
        except RosterSyncError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return EXIT_FAILURE


def main() -> None:
    """CLI entry point: parse arguments, run the command, exit with its code."""
    parser = _build_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(EXIT_FAILURE)

    app_settings = Settings()
    configure_logging(
        log_level=app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
    )
    sys.exit(asyncio.run(_run(args, app_settings)))


if __name__ == "__main__":
    main()
