"""
Command-line entry point: ``python -m metatag_backend`` / ``metatag-genie``.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Optional, Sequence

from metatag_shared import set_log_level
from metatag_shared.version import SERVER_NAME, get_version

from .config import CHECK_FILE_PERMISSIONS, EXIFTOOL_TIMEOUT_MS, LOG_LEVEL
from .shared import get_logger
from .tool_detect import get_tool_status

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="metatag-genie",
        description="MetaTag Genie MCP server: write tags, description, people and location into images.",
    )
    parser.add_argument("--version", "-v", action="store_true", help="Print the version and exit")
    parser.add_argument("--check", action="store_true", help="Report ExifTool availability as JSON and exit")
    parser.add_argument(
        "--log-level",
        "-l",
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Override METATAG_LOG_LEVEL",
    )
    parser.add_argument(
        "--timeout-ms",
        type=int,
        default=None,
        help=f"Per-command ExifTool timeout in milliseconds (default {EXIFTOOL_TIMEOUT_MS})",
    )
    parser.add_argument(
        "--no-permission-check",
        action="store_true",
        help="Skip the read/write permission precondition before writing",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.version:
        print(f"MetaTag Genie v{get_version()}")
        return 0

    set_log_level(args.log_level or LOG_LEVEL)

    if args.check:
        status = get_tool_status()
        print(json.dumps(status, indent=2))
        return 0 if status.get("exiftool") else 1

    if args.timeout_ms is not None and args.timeout_ms <= 0:
        logger.error("--timeout-ms must be a positive number of milliseconds, got %s", args.timeout_ms)
        return 2

    status = get_tool_status()
    if status.get("exiftool"):
        logger.info("ExifTool %s ready", status["versions"].get("exiftool"))
    else:
        logger.warning("ExifTool is not available; writeImageMetadata calls will fail until it is installed")

    # Imported late so --version and --check work without the MCP SDK loaded.
    from .features.metadata import MetadataWriterService
    from .server import MetaTagServer

    writer = MetadataWriterService(
        timeout_ms=args.timeout_ms,
        check_permissions=False if args.no_permission_check else CHECK_FILE_PERMISSIONS,
    )
    logger.info("Starting %s MCP server (stdio transport)", SERVER_NAME)
    try:
        server = MetaTagServer(writer)
        return asyncio.run(server.run())
    except KeyboardInterrupt:
        return 0
    except Exception as exc:
        logger.exception("Failed to start %s MCP server: %s", SERVER_NAME, exc)
        asyncio.run(writer.shutdown())
        return 1


if __name__ == "__main__":
    sys.exit(main())
