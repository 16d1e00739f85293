"""
Logging utilities with consistent formatting and emoji indicators.

Everything goes to stderr: stdout is reserved for MCP protocol frames.
"""
import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Final

# Emoji indicators for log levels
EMOJI_MAP: Final[dict[str, str]] = {
    "DEBUG": "🔍",
    "INFO": "ℹ️",
    "WARNING": "⚠️",
    "ERROR": "❌",
    "CRITICAL": "🔥",
    "SUCCESS": "✅",
}

# Global logger prefix
PREFIX: Final[str] = "🏷️ MetaTag"
ROOT_LOGGER_NAME: Final[str] = "metatag"

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

_default_level: int = logging.INFO


class CorrelationFilter(logging.Filter):
    """Inject `request_id` from `request_id_var` into each log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            record.request_id = request_id_var.get("")
        except Exception:
            record.request_id = ""
        return True


class EmojiFormatter(logging.Formatter):
    """Custom formatter that adds emoji based on log level."""

    def format(self, record: logging.LogRecord) -> str:
        emoji = EMOJI_MAP.get(record.levelname, "🏷️")

        # Format: 🏷️ MetaTag [✅] backend.module [rid]: message
        rid = str(getattr(record, "request_id", "") or "").strip()
        rid_part = f" [{rid}]" if rid else ""
        log_format = f"{PREFIX} [{emoji}] %(name)s{rid_part}: %(message)s"
        formatter = logging.Formatter(log_format)
        return formatter.format(record)


def _has_correlation_filter(logger: logging.Logger) -> bool:
    return any(isinstance(f, CorrelationFilter) for f in list(logger.filters or []))


def _clean_name(name: str) -> str:
    if name.startswith("__main__"):
        return "main"
    if "." in name:
        parts = name.split(".")
        for anchor in ("metatag_backend", "metatag_shared"):
            if anchor in parts:
                idx = parts.index(anchor)
                tail = parts[idx + 1:]
                return ".".join(tail) if tail else anchor
    return name


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Get a logger with MetaTag prefix and emoji indicators.

    Args:
        name: Logger name (usually __name__)
        level: Optional logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured logger instance with emoji formatting
    """
    logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{_clean_name(name)}")
    if not _has_correlation_filter(logger):
        logger.addFilter(CorrelationFilter())

    if level is not None:
        logger.setLevel(level)
    elif not logger.handlers:
        logger.setLevel(_default_level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(EmojiFormatter())
        logger.addHandler(handler)

        # Prevent propagation to avoid duplicate logs
        logger.propagate = False

    return logger


def set_log_level(level: int | str) -> int:
    """
    Apply a level to every MetaTag logger created so far and to future ones.

    Args:
        level: Numeric level or a name such as "debug"

    Returns:
        The numeric level applied
    """
    global _default_level
    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper())
        numeric = resolved if isinstance(resolved, int) else logging.INFO
    else:
        numeric = int(level)
    _default_level = numeric
    prefix = f"{ROOT_LOGGER_NAME}."
    for name, obj in list(logging.Logger.manager.loggerDict.items()):
        if isinstance(obj, logging.Logger) and (name == ROOT_LOGGER_NAME or name.startswith(prefix)):
            obj.setLevel(numeric)
    return numeric


def new_request_id() -> str:
    """Short id used to correlate the log lines of one tool call."""
    return uuid.uuid4().hex[:8]


# Add SUCCESS level
SUCCESS_LEVEL: Final[int] = 25  # Between INFO (20) and WARNING (30)
logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")

def log_success(logger: logging.Logger, message: str) -> None:
    """
    Log a success message with ✅ emoji.

    Args:
        logger: Logger instance
        message: Success message
    """
    logger.log(SUCCESS_LEVEL, message)

def log_structured(logger: logging.Logger, level: int, message: str, **context: Any) -> None:
    """Emit a structured JSON log entry with contextual fields."""
    payload = {
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "context": context,
    }
    logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))
