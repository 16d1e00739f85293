"""
Shared types, enums, and constants.
"""
import os
from enum import Enum
from typing import Final, Literal

# Which side of a file a permission failure concerns
FileOperation = Literal["read", "write"]


# Error codes
class ErrorCode(str, Enum):
    """Error kinds reported by every layer (string enum, compared by value)."""

    # File preconditions
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    FILE_ACCESS_DENIED = "FILE_ACCESS_DENIED"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"

    # Request validation
    RELATIVE_PATH_NOT_ALLOWED = "RELATIVE_PATH_NOT_ALLOWED"
    INVALID_METADATA = "INVALID_METADATA"

    # Metadata operations
    METADATA_READ_FAILED = "METADATA_READ_FAILED"
    METADATA_WRITE_FAILED = "METADATA_WRITE_FAILED"

    # ExifTool
    EXIFTOOL_TIMEOUT = "EXIFTOOL_TIMEOUT"
    EXIFTOOL_PROCESS_ERROR = "EXIFTOOL_PROCESS_ERROR"

    # Anything unclassified
    INTERNAL_ERROR = "INTERNAL_ERROR"


# JSON-RPC error numbers. These are part of the public API: never renumber.
# Server-defined codes live in the reserved -32000..-32099 range.
RPC_FILE_NOT_FOUND: Final[int] = -32001
RPC_FILE_NOT_READABLE: Final[int] = -32002
RPC_FILE_NOT_WRITABLE: Final[int] = -32003
RPC_UNSUPPORTED_FILE_FORMAT: Final[int] = -32004
RPC_METADATA_WRITE_FAILED: Final[int] = -32005
RPC_METADATA_READ_FAILED: Final[int] = -32006
RPC_INVALID_METADATA_STRUCTURE: Final[int] = -32007
RPC_EXIFTOOL_TIMEOUT: Final[int] = -32008
RPC_EXIFTOOL_PROCESS_ERROR: Final[int] = -32009
RPC_RELATIVE_PATH_NOT_ALLOWED: Final[int] = -32010
RPC_INTERNAL_ERROR: Final[int] = -32603

RPC_CODES: Final[dict[ErrorCode, int]] = {
    ErrorCode.FILE_NOT_FOUND: RPC_FILE_NOT_FOUND,
    # FILE_ACCESS_DENIED resolves to readable/writable by operation, see errors.rpc_code()
    ErrorCode.FILE_ACCESS_DENIED: RPC_FILE_NOT_READABLE,
    ErrorCode.UNSUPPORTED_FORMAT: RPC_UNSUPPORTED_FILE_FORMAT,
    ErrorCode.METADATA_WRITE_FAILED: RPC_METADATA_WRITE_FAILED,
    ErrorCode.METADATA_READ_FAILED: RPC_METADATA_READ_FAILED,
    ErrorCode.INVALID_METADATA: RPC_INVALID_METADATA_STRUCTURE,
    ErrorCode.EXIFTOOL_TIMEOUT: RPC_EXIFTOOL_TIMEOUT,
    ErrorCode.EXIFTOOL_PROCESS_ERROR: RPC_EXIFTOOL_PROCESS_ERROR,
    ErrorCode.RELATIVE_PATH_NOT_ALLOWED: RPC_RELATIVE_PATH_NOT_ALLOWED,
    ErrorCode.INTERNAL_ERROR: RPC_INTERNAL_ERROR,
}

# Supported image extensions (lowercase, no dot)
SUPPORTED_EXTENSIONS: Final[frozenset[str]] = frozenset({"jpg", "jpeg", "png", "heic"})

# Display names used in success messages
FORMAT_LABELS: Final[dict[str, str]] = {
    "jpg": "JPG",
    "jpeg": "JPG",
    "png": "PNG",
    "heic": "HEIC",
}


def file_extension(path: str) -> str:
    """
    Lowercase extension of a path without the leading dot.

    Args:
        path: File name or path

    Returns:
        Extension such as "jpg", or "" when the name has none
    """
    return os.path.splitext(str(path or ""))[1].lower().lstrip(".")


def is_supported_image(path: str) -> bool:
    """True if the extension is one the writer accepts."""
    return file_extension(path) in SUPPORTED_EXTENSIONS
