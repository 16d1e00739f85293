"""Shared utilities for MetaTag Genie."""
from .errors import describe_error, rpc_code
from .log import get_logger, log_structured, log_success, new_request_id, request_id_var, set_log_level
from .result import Result
from .time import now, timer
from .types import (
    FORMAT_LABELS,
    SUPPORTED_EXTENSIONS,
    ErrorCode,
    FileOperation,
    file_extension,
    is_supported_image,
)
from .version import get_version

__all__ = [
    "Result",
    "get_logger",
    "log_success",
    "log_structured",
    "new_request_id",
    "request_id_var",
    "set_log_level",
    "now",
    "timer",
    "ErrorCode",
    "FileOperation",
    "SUPPORTED_EXTENSIONS",
    "FORMAT_LABELS",
    "file_extension",
    "is_supported_image",
    "describe_error",
    "rpc_code",
    "get_version",
]
