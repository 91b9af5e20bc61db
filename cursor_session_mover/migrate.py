"""Session and workspace migration between Cursor workspaces.

A session lives in two places:

  - its summary record in the owning workspace's `composer.composerData`;
  - its header and bubbles in the shared global `cursorDiskKV` table.

Move relocates the summary record and rewrites bubble paths in place. Copy
duplicates header, bubbles and summary under fresh ids, rewriting paths in
the copies only.

Error policy:
  - Precondition problems (unknown session/workspace, same or nested paths)
    raise `MigrationError` subclasses before anything is written.
  - Failures while mutating are captured into `SessionMigrationResult.error`
    so a batch keeps going. Nothing is rolled back across stores.
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Sequence

from cursor_session_mover.console import DiagnosticSink, debug_sink
from cursor_session_mover.cursor_paths import StorageContext
from cursor_session_mover.detail_store import DetailStore, open_detail_store
from cursor_session_mover.errors import (
    DestinationHasSessionsError,
    NoSessionsFoundError,
    SameWorkspaceError,
    SessionNotFoundError,
    WorkspaceNotFoundError,
)
from cursor_session_mover.locks import assert_stores_unlocked
from cursor_session_mover.path_guard import ensure_not_nested, normalize_path, paths_equal
from cursor_session_mover.path_rewrite import PathTransformResult, transform_record_paths
from cursor_session_mover.progress import iter_with_progress
from cursor_session_mover.summary_store import SummaryList, SummaryStore, drop_from_selection, open_summary_store
from cursor_session_mover.workspace_storage import find_workspace_by_path, find_workspace_for_session


CONVERSATION_HEADERS_KEY = "fullConversationHeadersOnly"
UNKNOWN_WORKSPACE = "unknown"


class MigrationMode(str, Enum):
    MOVE = "move"
    COPY = "copy"


@dataclass(frozen=True, slots=True)
class MigrationOptions:
    """Options shared by every session of one migration request."""

    destination: str
    mode: MigrationMode = MigrationMode.MOVE
    dry_run: bool = False
    force: bool = False
    debug: bool = False
    unsafe_db: bool = False
    progress: bool = False


@dataclass(slots=True)
class SessionMigrationResult:
    success: bool
    session_id: str
    source_workspace: str
    destination_workspace: str
    mode: MigrationMode
    dry_run: bool
    new_session_id: str | None = None
    error: str | None = None
    paths_will_be_updated: bool = False
    paths: PathTransformResult = field(default_factory=PathTransformResult)


@dataclass(slots=True)
class WorkspaceMigrationResult:
    success: bool
    source: str
    destination: str
    mode: MigrationMode
    total_sessions: int
    success_count: int
    failure_count: int
    results: list[SessionMigrationResult]
    dry_run: bool


def generate_id() -> str:
    """Returns a new random UUID4 string (format used for composer and bubble ids)."""
    return str(uuid.uuid4())


def migrate_session(
    ctx: StorageContext,
    session_id: str,
    options: MigrationOptions,
    *,
    sink: DiagnosticSink | None = None,
) -> SessionMigrationResult:
    """Moves or copies one session to `options.destination`.

    Args:
        ctx: Cursor storage to operate on.
        session_id: Canonical composer id.
        options: Destination and mode flags.
        sink: Debug diagnostic line writer (default: stderr).

    Returns:
        SessionMigrationResult. Runtime failures are reported with
        `success=False` instead of being raised.

    Raises:
        SessionNotFoundError: If no workspace owns `session_id`.
        SameWorkspaceError: If the session already lives in the destination.
        NestedPathError: If the destination is inside the source workspace.
        WorkspaceNotFoundError: If Cursor has never opened the destination.
    """
    destination = normalize_path(options.destination)
    mode = MigrationMode(options.mode)

    location = find_workspace_for_session(ctx, session_id, avoid_path=destination)
    if location is None:
        raise SessionNotFoundError(session_id)
    source = location.workspace.path

    if paths_equal(source, destination):
        raise SameWorkspaceError(destination)
    ensure_not_nested(source, destination)

    dest_workspace = find_workspace_by_path(ctx, destination)
    if dest_workspace is None:
        raise WorkspaceNotFoundError(destination)

    result = SessionMigrationResult(
        success=True,
        session_id=session_id,
        source_workspace=source,
        destination_workspace=destination,
        mode=mode,
        dry_run=options.dry_run,
    )
    if options.dry_run:
        result.paths_will_be_updated = True
        return result

    emit = debug_sink(options.debug, sink)
    try:
        if not options.unsafe_db:
            assert_stores_unlocked(
                [location.summary_store_path, dest_workspace.summary_store_path, ctx.global_db_path]
            )

        with open_summary_store(location.summary_store_path) as src_store, open_summary_store(
            dest_workspace.summary_store_path
        ) as dst_store:
            src_list = src_store.read_all()
            dst_list = dst_store.read_all()

            index = src_list.index_of(session_id)
            if index == -1:
                # * Deleted between lookup and mutation.
                raise SessionNotFoundError(session_id)

            if mode is MigrationMode.MOVE:
                _move_summary(src_store, src_list, dst_store, dst_list, index, session_id)
                result.paths = _rewrite_paths_in_place(ctx, session_id, source, destination, emit)
            else:
                new_session_id = generate_id()
                result.paths = _duplicate_details(ctx, session_id, new_session_id, source, destination, emit)
                _append_copied_summary(dst_store, dst_list, src_list, index, new_session_id)
                result.new_session_id = new_session_id
    except Exception as exc:  # noqa: BLE001 - reported per session
        result.success = False
        result.error = str(exc) or type(exc).__name__
    return result


def migrate_sessions(
    ctx: StorageContext,
    session_ids: Sequence[str],
    options: MigrationOptions,
    *,
    sink: DiagnosticSink | None = None,
) -> list[SessionMigrationResult]:
    """Migrates each id in order; one result per id, failures never stop the batch."""
    destination = normalize_path(options.destination)
    mode = MigrationMode(options.mode)
    results: list[SessionMigrationResult] = []

    # * Progress bar and debug lines would interleave on stderr.
    show_progress = options.progress and not options.debug
    for session_id in iter_with_progress(session_ids, desc=f"{mode.value} sessions", enabled=show_progress):
        try:
            results.append(migrate_session(ctx, session_id, options, sink=sink))
        except Exception as exc:  # noqa: BLE001 - reported per session
            results.append(
                SessionMigrationResult(
                    success=False,
                    session_id=session_id,
                    source_workspace=UNKNOWN_WORKSPACE,
                    destination_workspace=destination,
                    mode=mode,
                    dry_run=options.dry_run,
                    error=str(exc) or type(exc).__name__,
                )
            )
    return results


def migrate_workspace(
    ctx: StorageContext,
    source: str,
    options: MigrationOptions,
    *,
    sink: DiagnosticSink | None = None,
) -> WorkspaceMigrationResult:
    """Migrates every session of the `source` workspace to `options.destination`.

    Raises:
        SameWorkspaceError: If source and destination are the same folder.
        NestedPathError: If the destination is inside the source.
        WorkspaceNotFoundError: If either folder has no workspace.
        NoSessionsFoundError: If the source has no sessions.
        DestinationHasSessionsError: If the destination has sessions and
            `options.force` is not set.
    """
    source = normalize_path(source)
    destination = normalize_path(options.destination)
    mode = MigrationMode(options.mode)

    if paths_equal(source, destination):
        raise SameWorkspaceError(source)
    ensure_not_nested(source, destination)

    source_workspace = find_workspace_by_path(ctx, source)
    if source_workspace is None:
        raise WorkspaceNotFoundError(source)
    dest_workspace = find_workspace_by_path(ctx, destination)
    if dest_workspace is None:
        raise WorkspaceNotFoundError(destination)

    with open_summary_store(source_workspace.summary_store_path, readonly=True) as store:
        session_ids = store.read_all().session_ids()
    if not session_ids:
        raise NoSessionsFoundError(source)

    if not options.force:
        with open_summary_store(dest_workspace.summary_store_path, readonly=True) as store:
            existing = len(store.read_all().records)
        if existing:
            raise DestinationHasSessionsError(destination, existing)

    results = migrate_sessions(ctx, session_ids, replace(options, destination=destination, mode=mode), sink=sink)
    success_count = sum(1 for r in results if r.success)
    failure_count = len(results) - success_count
    return WorkspaceMigrationResult(
        success=failure_count == 0,
        source=source,
        destination=destination,
        mode=mode,
        total_sessions=len(results),
        success_count=success_count,
        failure_count=failure_count,
        results=results,
        dry_run=options.dry_run,
    )


def _move_summary(
    src_store: SummaryStore,
    src_list: SummaryList,
    dst_store: SummaryStore,
    dst_list: SummaryList,
    index: int,
    session_id: str,
) -> None:
    # * Destination is written first: a crash in between leaves a duplicate, never a lost session.
    # * A retry after such a crash finds the id already listed there and only finishes the source side.
    if dst_list.index_of(session_id) == -1:
        dst_store.write_all(
            [*dst_list.records, src_list.records[index]],
            is_alternate_format=_target_format(dst_list, src_list),
            raw_envelope=dst_list.raw_envelope,
        )

    remaining = [item for i, item in enumerate(src_list.records) if i != index]
    drop_from_selection(src_list.raw_envelope, session_id)
    src_store.write_all(
        remaining,
        is_alternate_format=src_list.is_alternate_format,
        raw_envelope=src_list.raw_envelope,
    )


def _append_copied_summary(
    dst_store: SummaryStore,
    dst_list: SummaryList,
    src_list: SummaryList,
    index: int,
    new_session_id: str,
) -> None:
    copied = copy.deepcopy(src_list.records[index])
    copied["composerId"] = new_session_id
    dst_store.write_all(
        [*dst_list.records, copied],
        is_alternate_format=_target_format(dst_list, src_list),
        raw_envelope=dst_list.raw_envelope,
    )


def _target_format(dst_list: SummaryList, src_list: SummaryList) -> bool:
    # * A destination without any session list yet adopts the source's shape.
    return dst_list.is_alternate_format if dst_list.present else src_list.is_alternate_format


def _rewrite_paths_in_place(
    ctx: StorageContext,
    session_id: str,
    source: str,
    destination: str,
    emit: DiagnosticSink | None,
) -> PathTransformResult:
    totals = PathTransformResult()
    if not ctx.global_db_path.exists():
        return totals

    with open_detail_store(ctx.global_db_path) as detail:
        for bubble in detail.read_bubbles_for_session(session_id):
            if emit is not None:
                emit(f"[DEBUG] Processing bubble: {bubble.bubble_id}")
            counts = transform_record_paths(bubble.payload, source, destination, emit is not None, emit)
            if counts.transformed:
                detail.write_bubble(session_id, bubble.bubble_id, bubble.payload)
            totals += counts
    return totals


def _duplicate_details(
    ctx: StorageContext,
    session_id: str,
    new_session_id: str,
    source: str,
    destination: str,
    emit: DiagnosticSink | None,
) -> PathTransformResult:
    totals = PathTransformResult()
    if not ctx.global_db_path.exists():
        return totals

    bubble_ids: dict[str, str] = {}
    with open_detail_store(ctx.global_db_path) as detail:
        _duplicate_header(detail, session_id, new_session_id, bubble_ids)

        for bubble in detail.read_bubbles_for_session(session_id):
            new_bubble_id = bubble_ids.get(bubble.bubble_id)
            if new_bubble_id is None:
                # * Bubble not listed in the header: still copy it.
                new_bubble_id = bubble_ids[bubble.bubble_id] = generate_id()
            if emit is not None:
                emit(f"[DEBUG] Processing bubble: {bubble.bubble_id} -> {new_bubble_id}")

            payload = copy.deepcopy(bubble.payload)
            payload["bubbleId"] = new_bubble_id
            totals += transform_record_paths(payload, source, destination, emit is not None, emit)
            detail.write_bubble(new_session_id, new_bubble_id, payload)
    return totals


def _duplicate_header(
    detail: DetailStore,
    session_id: str,
    new_session_id: str,
    bubble_ids: dict[str, str],
) -> None:
    header = detail.read_summary_header(session_id)
    if header is None:
        return

    new_header = copy.deepcopy(header)
    new_header["composerId"] = new_session_id
    entries = header.get(CONVERSATION_HEADERS_KEY)
    if isinstance(entries, list):
        remapped: list = []
        for entry in entries:
            old_id = entry.get("bubbleId") if isinstance(entry, dict) else None
            if not isinstance(old_id, str) or not old_id:
                remapped.append(copy.deepcopy(entry))
                continue
            new_id = bubble_ids.setdefault(old_id, generate_id())
            remapped.append({**copy.deepcopy(entry), "bubbleId": new_id})
        new_header[CONVERSATION_HEADERS_KEY] = remapped
    detail.write_summary_header(new_session_id, new_header)
