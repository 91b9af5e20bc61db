"""Console output for migration runs.

Per-session results go to stdout. Warnings, errors and `--debug` path
diagnostics go to stderr, so results can be piped on their own. Colors are
applied only for TTY streams and never when `NO_COLOR` is set.
"""

from __future__ import annotations

import os
import sys
from typing import Callable, TextIO


try:
    from colorama import just_fix_windows_console  # type: ignore
except ImportError:  # pragma: no cover
    just_fix_windows_console = None


DiagnosticSink = Callable[[str], None]

_RESET = "\x1b[0m"
_BOLD = "\x1b[1m"
_COLORS = {
    "red": "\x1b[31m",
    "green": "\x1b[32m",
    "yellow": "\x1b[33m",
    "cyan": "\x1b[36m",
    "gray": "\x1b[90m",
}

_windows_console_fixed = False


def _fix_windows_console() -> None:
    global _windows_console_fixed
    if _windows_console_fixed or just_fix_windows_console is None:
        return
    _windows_console_fixed = True
    try:
        just_fix_windows_console()
    except Exception:
        # ! Coloring must never break a migration.
        return


def _color_enabled(stream: TextIO) -> bool:
    if os.environ.get("NO_COLOR", "").strip():
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def style(text: str, color: str | None = None, *, bold: bool = False, stream: TextIO | None = None) -> str:
    """Wraps `text` in ANSI codes when `stream` (default stdout) is a color TTY."""
    stream = stream if stream is not None else sys.stdout
    if not _color_enabled(stream):
        return text
    _fix_windows_console()
    prefix = (_BOLD if bold else "") + (_COLORS[color] if color else "")
    return f"{prefix}{text}{_RESET}" if prefix else text


def _emit(text: str, color: str, *, bold: bool = True, to_stderr: bool = False) -> None:
    stream = sys.stderr if to_stderr else sys.stdout
    print(style(text, color, bold=bold, stream=stream), file=stream, flush=True)


def info(text: str) -> None:
    _emit(text, "cyan")


def success(text: str) -> None:
    _emit(text, "green")


def detail(text: str) -> None:
    """Indented secondary line under a session result."""
    _emit(f"  {text}", "gray", bold=False)


def warn(text: str) -> None:
    _emit(text, "yellow", to_stderr=True)


def error(text: str) -> None:
    _emit(text, "red", to_stderr=True)


def diagnostic(text: str) -> None:
    """Writes one `[DEBUG]`/`[SKIP]` line to stderr."""
    _emit(text, "gray", bold=False, to_stderr=True)


def debug_sink(debug: bool, sink: DiagnosticSink | None = None) -> DiagnosticSink | None:
    """Returns where debug lines go: `sink`, else stderr. None when debug is off."""
    if not debug:
        return None
    return sink if sink is not None else diagnostic
