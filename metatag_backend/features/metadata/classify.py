"""
Classify ExifTool failure text into the error taxonomy.

ExifTool reports failures as free text only. This module is the single place
that pattern-matches that text; the expected formats are the ones produced by
``adapters.tools.exiftool`` and are pinned in tests/metadata/test_classify.py.

The adapter quotes whatever ExifTool printed (``'...'``). Timeout and process
markers are only looked for in the adapter's own text before that quote, since
ExifTool output echoes the file path. Unsupported-format markers come from
ExifTool itself and are looked for in the whole message.
"""
from __future__ import annotations

import re
from typing import Any, Optional

from ...shared import ErrorCode, Result, errors

UNSUPPORTED_NEEDLES = ("format not recognized", "unknown file type")
TIMEOUT_NEEDLES = ("timed out", "timeout")
PROCESS_NEEDLES = ("exited with status", "could not be started", "process error")

_EXIT_CODE_RE = re.compile(r"exited with status (\d+)")
_STDERR_RE = re.compile(r"stderr: '([^']*)'")

HEAD = "head"
FULL = "full"

# Checked in order; the first rule whose needles match wins.
RULES: dict[str, tuple[tuple[ErrorCode, tuple[str, ...], str], ...]] = {
    "read": (
        (ErrorCode.EXIFTOOL_TIMEOUT, TIMEOUT_NEEDLES, HEAD),
        (ErrorCode.EXIFTOOL_PROCESS_ERROR, PROCESS_NEEDLES, HEAD),
    ),
    "write": (
        (ErrorCode.UNSUPPORTED_FORMAT, UNSUPPORTED_NEEDLES, FULL),
        (ErrorCode.EXIFTOOL_PROCESS_ERROR, PROCESS_NEEDLES, HEAD),
        (ErrorCode.EXIFTOOL_TIMEOUT, TIMEOUT_NEEDLES, HEAD),
    ),
}


def extract_exit_code(message: str) -> Optional[int]:
    match = _EXIT_CODE_RE.search(message or "")
    return int(match.group(1)) if match else None


def extract_stderr(message: str) -> Optional[str]:
    match = _STDERR_RE.search(message or "")
    if match and match.group(1):
        return match.group(1)
    return None


def message_head(message: str) -> str:
    """Adapter-authored part of a failure message, before any quoted tool output."""
    return (message or "").split("'", 1)[0]


def match_kind(message: str, operation: str) -> Optional[ErrorCode]:
    """First matching error kind for a failure message, or None for a generic failure."""
    scopes = {HEAD: message_head(message).lower(), FULL: (message or "").lower()}
    for kind, needles, scope in RULES.get(operation, RULES["read"]):
        if any(needle in scopes[scope] for needle in needles):
            return kind
    return None


def classify_tool_failure(
    message: Any,
    *,
    operation: str,
    path: str,
    timeout_ms: int,
    fmt: str = "",
    stderr: Optional[str] = None,
) -> Result[Any]:
    """
    Turn an ExifTool failure into a typed error result.

    Args:
        message: Failure text from the adapter (or any exception text)
        operation: "read" or "write"
        path: File the operation targeted
        timeout_ms: Timeout in force, reported on timeouts
        fmt: File extension, reported on unsupported formats
        stderr: Raw stderr when the adapter captured it separately

    Returns:
        Result.Err carrying one taxonomy code
    """
    text = str(message or "")
    kind = match_kind(text, operation)

    if kind is ErrorCode.UNSUPPORTED_FORMAT:
        return errors.unsupported_format(path, fmt)
    if kind is ErrorCode.EXIFTOOL_TIMEOUT:
        return errors.exiftool_timeout(path, operation, timeout_ms)
    if kind is ErrorCode.EXIFTOOL_PROCESS_ERROR:
        return errors.exiftool_process_error(
            path,
            exit_code=extract_exit_code(text),
            stderr=extract_stderr(text) or (stderr or None),
        )
    if operation == "write":
        return errors.metadata_write_failed(path, text or None)
    return errors.metadata_read_failed(path, text or None)
