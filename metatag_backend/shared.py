"""Backend-facing alias for shared utilities."""

from __future__ import annotations

from metatag_shared import (
    FORMAT_LABELS,
    SUPPORTED_EXTENSIONS,
    ErrorCode,
    Result,
    describe_error,
    file_extension,
    get_logger,
    is_supported_image,
    log_structured,
    log_success,
    new_request_id,
    request_id_var,
    rpc_code,
    timer,
)
from metatag_shared import errors

__all__ = [
    "Result",
    "ErrorCode",
    "errors",
    "get_logger",
    "log_success",
    "log_structured",
    "new_request_id",
    "request_id_var",
    "timer",
    "describe_error",
    "rpc_code",
    "file_extension",
    "is_supported_image",
    "SUPPORTED_EXTENSIONS",
    "FORMAT_LABELS",
]
