"""
Tool registration.
Builds the MCP tool list and the name -> handler table the server dispatches on.
"""
from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from mcp.types import Tool

from metatag_backend.features.metadata import MetadataWriterService

from .handlers import INPUT_SCHEMA, TOOL_DESCRIPTION, TOOL_NAME, WriteImageMetadataHandler

ToolHandler = Callable[[Any], Awaitable[dict[str, Any]]]


def build_tools() -> list[Tool]:
    return [
        Tool(
            name=TOOL_NAME,
            description=TOOL_DESCRIPTION,
            inputSchema=INPUT_SCHEMA,
        ),
    ]


def build_tool_handlers(writer: MetadataWriterService) -> dict[str, ToolHandler]:
    write_handler = WriteImageMetadataHandler(writer)
    return {TOOL_NAME: write_handler.handle}
