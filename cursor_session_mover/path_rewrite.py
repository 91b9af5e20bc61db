"""Rewrites absolute workspace paths inside bubble (message) records.

Only an explicit, ordered set of known fields is touched:

  - `toolFormerData.params` (a JSON-encoded string): `relativeWorkspacePath`,
    `targetFile`, `filePath`, `path`;
  - `codeBlocks[i].uri`: `path`, `_fsPath` and `_formatted` (`file://` form).

A path is rewritten only if it equals the source prefix or lives below it.
Everything else (e.g. library files read during the chat) is left as-is.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

from cursor_session_mover.console import DiagnosticSink, debug_sink


TOOL_PARAM_PATH_FIELDS: tuple[str, ...] = ("relativeWorkspacePath", "targetFile", "filePath", "path")
URI_PATH_FIELDS: tuple[str, ...] = ("path", "_fsPath")
URI_FORMATTED_FIELD = "_formatted"
FILE_URL_PREFIX = "file://"

@dataclass(slots=True)
class PathTransformResult:
    """Counts of rewritten and out-of-scope paths for one or more records."""

    transformed: int = 0
    skipped: int = 0

    def __add__(self, other: "PathTransformResult") -> "PathTransformResult":
        return PathTransformResult(
            transformed=self.transformed + other.transformed,
            skipped=self.skipped + other.skipped,
        )


def transform_path(path: str, source_prefix: str, dest_prefix: str) -> str | None:
    """Replaces `source_prefix` with `dest_prefix` at the start of `path`.

    Returns:
        The rewritten path, or None when `path` is outside `source_prefix`.
    """
    source = source_prefix.rstrip("/") or "/"
    dest = dest_prefix.rstrip("/") or "/"
    if path == source:
        return dest
    boundary = source if source.endswith("/") else source + "/"
    if not path.startswith(boundary):
        return None
    rest = path[len(boundary) - 1:]
    if dest.endswith("/"):
        rest = rest[1:]
    return dest + rest


def transform_record_paths(
    record: dict,
    source_prefix: str,
    dest_prefix: str,
    debug: bool = False,
    sink: DiagnosticSink | None = None,
) -> PathTransformResult:
    """Rewrites known path fields of one bubble payload in place.

    Args:
        record: Parsed bubble payload (mutated).
        source_prefix: Normalized source workspace path.
        dest_prefix: Normalized destination workspace path.
        debug: Emit one diagnostic line per rewritten or skipped path.
        sink: Diagnostic line writer (default: stderr).

    Returns:
        PathTransformResult for this record.
    """
    emit = debug_sink(debug, sink)
    result = PathTransformResult()

    tool_former = record.get("toolFormerData")
    if isinstance(tool_former, dict) and tool_former.get("params"):
        result += _transform_tool_params(tool_former, source_prefix, dest_prefix, emit)

    code_blocks = record.get("codeBlocks")
    if isinstance(code_blocks, list):
        for index, block in enumerate(code_blocks):
            if not isinstance(block, dict):
                continue
            uri = block.get("uri")
            if isinstance(uri, dict):
                result += _transform_code_block_uri(uri, index, source_prefix, dest_prefix, emit)

    return result


def _transform_tool_params(
    tool_former: dict,
    source_prefix: str,
    dest_prefix: str,
    emit: DiagnosticSink | None,
) -> PathTransformResult:
    result = PathTransformResult()
    raw = tool_former["params"]
    try:
        params = json.loads(raw) if isinstance(raw, str) else None
    except json.JSONDecodeError:
        # ! One corrupt tool call must not abort the record.
        return result
    if not isinstance(params, dict):
        return result

    for field in TOOL_PARAM_PATH_FIELDS:
        value = params.get(field)
        if not isinstance(value, str):
            continue
        label = f"toolFormerData.params.{field}"
        new_value = transform_path(value, source_prefix, dest_prefix)
        if new_value is None:
            _report_skip(emit, label, value)
            result.skipped += 1
            continue
        _report_change(emit, label, value, new_value)
        params[field] = new_value
        result.transformed += 1

    if result.transformed:
        tool_former["params"] = json.dumps(params, ensure_ascii=False, separators=(",", ":"))
    return result


def _transform_code_block_uri(
    uri: dict,
    index: int,
    source_prefix: str,
    dest_prefix: str,
    emit: DiagnosticSink | None,
) -> PathTransformResult:
    result = PathTransformResult()

    for field in URI_PATH_FIELDS:
        value = uri.get(field)
        if not isinstance(value, str):
            continue
        label = f"codeBlocks[{index}].uri.{field}"
        new_value = transform_path(value, source_prefix, dest_prefix)
        if new_value is None:
            _report_skip(emit, label, value)
            result.skipped += 1
            continue
        _report_change(emit, label, value, new_value)
        uri[field] = new_value
        result.transformed += 1

    formatted = uri.get(URI_FORMATTED_FIELD)
    if isinstance(formatted, str) and formatted.startswith(FILE_URL_PREFIX):
        label = f"codeBlocks[{index}].uri.{URI_FORMATTED_FIELD}"
        new_path = transform_path(formatted[len(FILE_URL_PREFIX):], source_prefix, dest_prefix)
        if new_path is None:
            _report_skip(emit, label, formatted)
            result.skipped += 1
        else:
            new_value = FILE_URL_PREFIX + new_path
            _report_change(emit, label, formatted, new_value)
            uri[URI_FORMATTED_FIELD] = new_value
            result.transformed += 1

    return result


def _report_change(emit: DiagnosticSink | None, label: str, old: str, new: str) -> None:
    if emit is not None:
        emit(f"[DEBUG] {label}: {old} -> {new}")


def _report_skip(emit: DiagnosticSink | None, label: str, value: str) -> None:
    if emit is not None:
        emit(f"[SKIP] {label}: {value} (outside workspace)")
