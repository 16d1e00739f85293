"""
Core utilities for tool handlers.
"""
from .response import _sanitize_json_payload, _tool_response, success_message
from .validation import WriteRequest, validate_write_request

__all__ = [
    "_tool_response",
    "_sanitize_json_payload",
    "success_message",
    "WriteRequest",
    "validate_write_request",
]
