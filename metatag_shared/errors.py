"""
Error taxonomy constructors.

Every failure in the service is a ``Result.Err`` whose ``code`` is an
``ErrorCode`` value and whose ``meta`` carries the structured context for that
kind. Messages are always rebuilt from ``meta`` by ``describe_error`` so callers
never need to parse prose.
"""
from __future__ import annotations

from typing import Any, Optional

from .result import Result
from .types import (
    RPC_CODES,
    RPC_FILE_NOT_READABLE,
    RPC_FILE_NOT_WRITABLE,
    RPC_INTERNAL_ERROR,
    ErrorCode,
    FileOperation,
)

INTERNAL_ERROR_MESSAGE = "Internal error while writing metadata"


def _fmt_file_not_found(meta: dict[str, Any]) -> str:
    return f"File not found: {meta.get('filePath')}"


def _fmt_access_denied(meta: dict[str, Any]) -> str:
    op = meta.get("operation") or "read"
    return f"Permission denied: cannot {op} file {meta.get('filePath')}"


def _fmt_unsupported(meta: dict[str, Any]) -> str:
    fmt = meta.get("format") or "(none)"
    return (
        f"Unsupported file format: {fmt}, file: {meta.get('filePath')}. "
        "Only JPG, PNG and HEIC images are supported."
    )


def _fmt_relative(meta: dict[str, Any]) -> str:
    return (
        f"Relative paths are not allowed: {meta.get('filePath')}. "
        "Use an absolute path to the file."
    )


def _fmt_invalid(meta: dict[str, Any]) -> str:
    return f"Invalid metadata: {meta.get('reason') or 'malformed input'}"


def _fmt_read_failed(meta: dict[str, Any]) -> str:
    cause = meta.get("cause")
    base = f"Failed to read metadata from {meta.get('filePath')}"
    return f"{base}: {cause}" if cause else base


def _fmt_write_failed(meta: dict[str, Any]) -> str:
    cause = meta.get("cause")
    base = f"Failed to write metadata to {meta.get('filePath')}"
    return f"{base}: {cause}" if cause else base


def _fmt_timeout(meta: dict[str, Any]) -> str:
    return (
        f"ExifTool operation '{meta.get('operation')}' on {meta.get('filePath')} "
        f"timed out after {meta.get('timeoutMs')}ms"
    )


def _fmt_process(meta: dict[str, Any]) -> str:
    parts = ["ExifTool process error"]
    if meta.get("filePath"):
        parts.append(f" while processing {meta.get('filePath')}")
    if meta.get("exitCode") is not None:
        parts.append(f" (exit code {meta.get('exitCode')})")
    if meta.get("stderr"):
        parts.append(f". ExifTool stderr: {meta.get('stderr')}")
    return "".join(parts)


def _fmt_internal(_meta: dict[str, Any]) -> str:
    return INTERNAL_ERROR_MESSAGE


_FORMATTERS = {
    ErrorCode.FILE_NOT_FOUND.value: _fmt_file_not_found,
    ErrorCode.FILE_ACCESS_DENIED.value: _fmt_access_denied,
    ErrorCode.UNSUPPORTED_FORMAT.value: _fmt_unsupported,
    ErrorCode.RELATIVE_PATH_NOT_ALLOWED.value: _fmt_relative,
    ErrorCode.INVALID_METADATA.value: _fmt_invalid,
    ErrorCode.METADATA_READ_FAILED.value: _fmt_read_failed,
    ErrorCode.METADATA_WRITE_FAILED.value: _fmt_write_failed,
    ErrorCode.EXIFTOOL_TIMEOUT.value: _fmt_timeout,
    ErrorCode.EXIFTOOL_PROCESS_ERROR.value: _fmt_process,
    ErrorCode.INTERNAL_ERROR.value: _fmt_internal,
}


def describe_error(code: ErrorCode | str, meta: Optional[dict[str, Any]] = None) -> str:
    """
    Build the human-readable message for an error kind.

    Args:
        code: ErrorCode (or its string value)
        meta: Structured data attached to the error

    Returns:
        A message; unknown codes get the internal error wording.
    """
    key = code.value if isinstance(code, ErrorCode) else str(code)
    formatter = _FORMATTERS.get(key, _fmt_internal)
    return formatter(meta or {})


def rpc_code(code: ErrorCode | str, meta: Optional[dict[str, Any]] = None) -> int:
    """Stable JSON-RPC number for an error kind."""
    try:
        kind = code if isinstance(code, ErrorCode) else ErrorCode(str(code))
    except ValueError:
        return RPC_INTERNAL_ERROR
    if kind is ErrorCode.FILE_ACCESS_DENIED:
        op = (meta or {}).get("operation")
        return RPC_FILE_NOT_WRITABLE if op == "write" else RPC_FILE_NOT_READABLE
    return RPC_CODES.get(kind, RPC_INTERNAL_ERROR)


def _err(code: ErrorCode, **meta: Any) -> Result[Any]:
    return Result.Err(code, describe_error(code, meta), **meta)


def file_not_found(path: str) -> Result[Any]:
    return _err(ErrorCode.FILE_NOT_FOUND, filePath=path)


def file_access_denied(path: str, operation: FileOperation) -> Result[Any]:
    return _err(ErrorCode.FILE_ACCESS_DENIED, filePath=path, operation=operation)


def unsupported_format(path: str, fmt: str) -> Result[Any]:
    return _err(ErrorCode.UNSUPPORTED_FORMAT, filePath=path, format=fmt)


def relative_path_not_allowed(path: str) -> Result[Any]:
    return _err(ErrorCode.RELATIVE_PATH_NOT_ALLOWED, filePath=path)


def invalid_metadata(reason: str, **details: Any) -> Result[Any]:
    """Shape violation; ``details`` names the field, offending values and limits."""
    return _err(ErrorCode.INVALID_METADATA, reason=reason, **details)


def metadata_read_failed(path: str, cause: Any = None) -> Result[Any]:
    return _err(ErrorCode.METADATA_READ_FAILED, filePath=path, cause=_cause_text(cause))


def metadata_write_failed(path: str, cause: Any = None) -> Result[Any]:
    return _err(ErrorCode.METADATA_WRITE_FAILED, filePath=path, cause=_cause_text(cause))


def exiftool_timeout(path: str, operation: str, timeout_ms: int) -> Result[Any]:
    return _err(ErrorCode.EXIFTOOL_TIMEOUT, filePath=path, operation=operation, timeoutMs=int(timeout_ms))


def exiftool_process_error(
    path: Optional[str] = None,
    exit_code: Optional[int] = None,
    stderr: Optional[str] = None,
) -> Result[Any]:
    return _err(ErrorCode.EXIFTOOL_PROCESS_ERROR, filePath=path, exitCode=exit_code, stderr=stderr)


def internal_error(message: Any) -> Result[Any]:
    """Unclassified failure; the original text is kept for diagnostics only."""
    return _err(ErrorCode.INTERNAL_ERROR, errorMessage=_cause_text(message))


def _cause_text(cause: Any) -> Optional[str]:
    if cause is None:
        return None
    try:
        text = str(cause).strip()
    except Exception:
        return None
    return text or None
