"""
MCP tool routes.
"""
from .registry import ToolHandler, build_tool_handlers, build_tools

__all__ = ["ToolHandler", "build_tool_handlers", "build_tools"]
