"""Precondition errors raised by session/workspace migration.

These are raised before any store is mutated and mean the request as a whole
is invalid. Runtime failures during mutation are reported through migration
results instead (see `cursor_session_mover.migrate`).
"""

from __future__ import annotations


class MigrationError(RuntimeError):
    """Base class for migration precondition errors."""


class SessionNotFoundError(MigrationError):
    """Raised when no workspace owns the requested session (composer) id."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class WorkspaceNotFoundError(MigrationError):
    """Raised when Cursor has never opened the given folder."""

    def __init__(self, path: str) -> None:
        super().__init__(
            f"No workspace found for path: {path}\n"
            "Open the folder once in Cursor so it gets a workspaceStorage entry, then retry."
        )
        self.path = path


class SameWorkspaceError(MigrationError):
    """Raised when source and destination resolve to the same workspace."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Source and destination are the same workspace: {path}")
        self.path = path


class NestedPathError(MigrationError):
    """Raised when the destination is inside the source workspace."""

    def __init__(self, source: str, destination: str) -> None:
        super().__init__(
            f"Destination {destination} is nested inside source {source}. "
            "Path rewriting cannot be done safely for nested workspaces."
        )
        self.source = source
        self.destination = destination


class NoSessionsFoundError(MigrationError):
    """Raised when the source workspace has no sessions to migrate."""

    def __init__(self, path: str) -> None:
        super().__init__(f"No sessions found in workspace: {path}")
        self.path = path


class DestinationHasSessionsError(MigrationError):
    """Raised when the destination already has sessions and `force` is not set."""

    def __init__(self, path: str, count: int) -> None:
        super().__init__(
            f"Destination workspace already has {count} session(s): {path}\n"
            "Use --force to merge into it anyway."
        )
        self.path = path
        self.count = count
