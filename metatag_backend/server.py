"""
MetaTag Genie MCP server (stdio transport).
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from metatag_shared.time import now
from metatag_shared.version import SERVER_NAME, get_version

from .features.metadata import MetadataWriterService
from .lifecycle import GracefulShutdown
from .routes import build_tool_handlers, build_tools
from .routes.core import _tool_response
from .shared import errors, get_logger, log_structured

logger = get_logger(__name__)


class MetaTagServer:
    """MCP server exposing the writeImageMetadata tool."""

    def __init__(self, writer: Optional[MetadataWriterService] = None, shutdown_timeout_s: Optional[float] = None):
        self.writer = writer if writer is not None else MetadataWriterService()
        self.version = get_version()
        self.server = Server(SERVER_NAME, version=self.version)
        self.tools: list[Tool] = build_tools()
        self.tool_handlers = build_tool_handlers(self.writer)
        self.shutdown = GracefulShutdown(shutdown_timeout_s)
        self._register_handlers()
        logger.info("%s server initialized (version %s)", SERVER_NAME, self.version)

    def _register_handlers(self) -> None:
        """Register MCP protocol handlers."""

        @self.server.list_tools()
        async def list_tools() -> list[Tool]:
            logger.debug("list_tools called")
            return self.tools

        # Argument checks live in the tool handler so they come back as response objects.
        @self.server.call_tool(validate_input=False)
        async def call_tool(name: str, arguments: dict) -> list[TextContent]:
            return await self.dispatch(name, arguments)

    async def dispatch(self, name: str, arguments: Any) -> list[TextContent]:
        """Run one tool call and wrap its response object as JSON text content."""
        start = now()
        handler = self.tool_handlers.get(name)
        if handler is None:
            logger.warning("Unknown tool requested: %s", name)
            response = _tool_response(errors.internal_error(f"Unknown tool: {name}"), None)
        else:
            response = await handler(arguments or {})
        log_structured(
            logger,
            logging.INFO,
            "call_tool done",
            tool=name,
            success=response.get("success"),
            errorCode=response.get("errorCode"),
            durationMs=round((now() - start) * 1000, 1),
        )
        return [TextContent(type="text", text=json.dumps(response, ensure_ascii=False))]

    async def _serve_stdio(self) -> None:
        async with stdio_server() as (read_stream, write_stream):
            logger.info("%s MCP server listening on stdio", SERVER_NAME)
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options(),
            )

    async def run(self) -> int:
        """
        Serve until stdin closes or a shutdown signal arrives, then clean up.

        Returns:
            Process exit code
        """
        loop = asyncio.get_running_loop()
        self.shutdown.install(loop)
        serve_task = asyncio.create_task(self._serve_stdio(), name="metatag-stdio")
        signal_task = asyncio.create_task(self.shutdown.wait(), name="metatag-shutdown-signal")
        exit_code = 0
        try:
            done, _pending = await asyncio.wait({serve_task, signal_task}, return_when=asyncio.FIRST_COMPLETED)
            if serve_task in done and not serve_task.cancelled() and serve_task.exception() is not None:
                logger.error("MCP transport stopped with an error: %s", serve_task.exception())
                exit_code = 1
            elif serve_task in done:
                logger.info("MCP client disconnected")
        finally:
            self.shutdown.uninstall(loop)
            signal_task.cancel()
            await self.shutdown.run_steps(
                [
                    ("closing MCP server", lambda: _cancel_task(serve_task)),
                    ("releasing metadata writer", self.writer.shutdown),
                ]
            )
        logger.info("Shutdown complete, exit code %s", exit_code)
        return exit_code

    async def close(self) -> None:
        await self.writer.shutdown()


async def _cancel_task(task: asyncio.Task) -> None:
    if task.done():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
