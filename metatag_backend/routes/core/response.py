"""
Response utilities for tool handlers.
"""

import math
from typing import Any, Optional

from metatag_backend.shared import FORMAT_LABELS, Result, describe_error, file_extension, rpc_code

GENERIC_SUCCESS_MESSAGE = "Metadata successfully written to image."


def success_message(file_path: str) -> str:
    """Format-specific success wording, e.g. "Metadata successfully written to JPG image."."""
    label = FORMAT_LABELS.get(file_extension(file_path))
    if not label:
        return GENERIC_SUCCESS_MESSAGE
    return f"Metadata successfully written to {label} image."


def _tool_response(result: Result, file_path: Optional[str]) -> dict[str, Any]:
    """
    Convert a write Result to the tool response object.

    Policy: every outcome, including failures, is a response object with
    success=false and a numeric errorCode. Nothing is raised to the transport.
    """
    path = file_path if isinstance(file_path, str) else ""

    if result.ok:
        return {"success": True, "filePath": path, "message": success_message(path)}

    meta = result.meta if isinstance(result.meta, dict) else {}
    message = result.error or describe_error(result.code, meta)
    payload: dict[str, Any] = {
        "success": False,
        "filePath": path,
        "message": message,
        "errorCode": rpc_code(result.code, meta),
    }
    error_data = {k: v for k, v in meta.items() if v is not None}
    if error_data:
        payload["errorData"] = error_data
    return _sanitize_json_payload(payload)


def _sanitize_json_payload(value):
    """
    Normalize payload values so they are always valid strict JSON.
    - Converts NaN/Infinity floats to None.
    - Recurses through dict/list/tuple containers.
    """
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, dict):
        return {k: _sanitize_json_payload(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_sanitize_json_payload(v) for v in value]
    if isinstance(value, tuple):
        return [_sanitize_json_payload(v) for v in value]
    return value
