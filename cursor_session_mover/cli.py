"""CLI for cursor-session-mover."""

from __future__ import annotations

import argparse
import sqlite3
import sys
from pathlib import Path

from cursor_session_mover.console import detail, error, info, success, warn
from cursor_session_mover.cursor_paths import StorageContext
from cursor_session_mover.errors import MigrationError
from cursor_session_mover.migrate import (
    MigrationMode,
    MigrationOptions,
    SessionMigrationResult,
    migrate_session,
    migrate_sessions,
    migrate_workspace,
)


EXIT_OK = 0
EXIT_PARTIAL_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def main(argv: list[str] | None = None) -> int:
    try:
        if argv is None:
            argv = sys.argv[1:]

        parser = _build_parser()
        args = parser.parse_args(argv)
        ctx = StorageContext.default(args.cursor_user_dir)

        try:
            if args.cmd == "migrate-session":
                return _cmd_migrate_session(ctx, args)
            if args.cmd == "migrate":
                return _cmd_migrate_workspace(ctx, args)
        except MigrationError as exc:
            error(str(exc))
            return EXIT_USAGE
        except (FileNotFoundError, PermissionError, ValueError, sqlite3.Error) as exc:
            error(str(exc))
            return EXIT_USAGE

        raise RuntimeError(f"Unhandled command: {args.cmd}")
    except KeyboardInterrupt:
        print(file=sys.stderr, flush=True)
        warn("Interrupted by user (Ctrl+C).")
        return EXIT_INTERRUPTED


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cursor-session-mover")
    parser.add_argument(
        "--cursor-user-dir",
        type=Path,
        default=None,
        help="Override Cursor User directory (default: CURSOR_DATA_PATH or auto-detect).",
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    session_cmd = sub.add_parser(
        "migrate-session",
        help="Move or copy one or more chat sessions to another workspace.",
    )
    session_cmd.add_argument("session_ids", nargs="+", metavar="SESSION_ID", help="Composer id(s).")
    session_cmd.add_argument("--dst", required=True, help="Destination workspace folder.")
    _add_common_flags(session_cmd)

    workspace_cmd = sub.add_parser(
        "migrate",
        help="Move or copy every chat session of a workspace to another workspace.",
    )
    workspace_cmd.add_argument("--src", required=True, help="Source workspace folder.")
    workspace_cmd.add_argument("--dst", required=True, help="Destination workspace folder.")
    workspace_cmd.add_argument(
        "--force",
        action="store_true",
        help="Proceed even if the destination already has chat sessions.",
    )
    _add_common_flags(workspace_cmd)
    return parser


def _add_common_flags(cmd: argparse.ArgumentParser) -> None:
    cmd.add_argument(
        "--copy",
        action="store_true",
        help="Copy instead of move (the original sessions are left untouched).",
    )
    cmd.add_argument("--dry-run", action="store_true", help="Preview without writing anything.")
    cmd.add_argument(
        "--debug",
        action="store_true",
        help="Print every rewritten or skipped file path to stderr.",
    )
    cmd.add_argument(
        "--unsafe-db",
        "--unlock",
        dest="unsafe_db",
        action="store_true",
        help="Skip the database lock check (unsafe while Cursor is running).",
    )


def _options_from_args(args: argparse.Namespace) -> MigrationOptions:
    return MigrationOptions(
        destination=args.dst,
        mode=MigrationMode.COPY if args.copy else MigrationMode.MOVE,
        dry_run=args.dry_run,
        force=getattr(args, "force", False),
        debug=args.debug,
        unsafe_db=args.unsafe_db,
        progress=True,
    )


def _cmd_migrate_session(ctx: StorageContext, args: argparse.Namespace) -> int:
    options = _options_from_args(args)
    if len(args.session_ids) == 1:
        # * A single session reports precondition errors directly.
        results = [migrate_session(ctx, args.session_ids[0], options)]
    else:
        results = migrate_sessions(ctx, args.session_ids, options)

    for result in results:
        _print_session_result(result)
    return _print_totals(results, dry_run=options.dry_run)


def _cmd_migrate_workspace(ctx: StorageContext, args: argparse.Namespace) -> int:
    options = _options_from_args(args)
    result = migrate_workspace(ctx, args.src, options)

    info(f"{result.mode.value.capitalize()}: {result.source} -> {result.destination}")
    for item in result.results:
        _print_session_result(item)
    return _print_totals(result.results, dry_run=result.dry_run)


def _print_session_result(result: SessionMigrationResult) -> None:
    if not result.success:
        error(f"FAILED {result.session_id}: {result.error}")
        return

    if result.dry_run:
        line = f"Would {result.mode.value} {result.session_id}: {result.source_workspace} -> {result.destination_workspace}"
        if result.paths_will_be_updated:
            line += " (file paths will be updated)"
        info(line)
        return

    target = result.session_id
    if result.new_session_id:
        target = f"{result.session_id} -> {result.new_session_id}"
    success(f"OK {target}")
    detail(f"paths: {result.paths.transformed} updated, {result.paths.skipped} outside workspace")


def _print_totals(results: list[SessionMigrationResult], *, dry_run: bool) -> int:
    ok = sum(1 for r in results if r.success)
    failed = len(results) - ok
    prefix = "Dry run: " if dry_run else ""
    summary = f"{prefix}{ok}/{len(results)} session(s) succeeded"
    if failed:
        warn(f"{summary}, {failed} failed.")
        return EXIT_PARTIAL_FAILURE
    success(summary + ".")
    return EXIT_OK
