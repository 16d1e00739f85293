"""
Tool handlers.
"""
from .write_image_metadata import INPUT_SCHEMA, TOOL_DESCRIPTION, TOOL_NAME, WriteImageMetadataHandler

__all__ = [
    "INPUT_SCHEMA",
    "TOOL_DESCRIPTION",
    "TOOL_NAME",
    "WriteImageMetadataHandler",
]
