"""
Configuration for MetaTag Genie.

All values come from the environment and are read once at import time.
"""
import logging
import os

from .utils import env_bool

logger = logging.getLogger(__name__)


def _env_raw(*names: str, default: str | None = None) -> str | None:
    for name in names:
        if not name:
            continue
        val = os.getenv(name)
        if val is not None and str(val).strip() != "":
            return str(val).strip()
    return default


def _env_int(default: int, *names: str, min_value: int | None = None, max_value: int | None = None) -> int:
    raw = _env_raw(*names)
    if raw is None:
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid integer for %s=%r, using default=%s", names[0] if names else "<unknown>", raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("Value too small for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, min_value)
        value = min_value
    if max_value is not None and value > max_value:
        logger.warning("Value too large for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, max_value)
        value = max_value
    return value


def _env_float(default: float, *names: str, min_value: float | None = None, max_value: float | None = None) -> float:
    raw = _env_raw(*names)
    if raw is None:
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid float for %s=%r, using default=%s", names[0] if names else "<unknown>", raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("Value too small for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, min_value)
        value = min_value
    if max_value is not None and value > max_value:
        logger.warning("Value too large for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, max_value)
        value = max_value
    return value


def _env_bool(default: bool, *names: str) -> bool:
    for name in names:
        if name and name in os.environ:
            return env_bool(name, default)
    return default


# ExifTool
EXIFTOOL_BIN = _env_raw("METATAG_EXIFTOOL_PATH", "METATAG_EXIFTOOL_BIN", default="exiftool")
EXIFTOOL_MIN_VERSION = str(_env_raw("METATAG_EXIFTOOL_MIN_VERSION", default="") or "").strip()
EXIFTOOL_TRUSTED_DIRS = str(_env_raw("METATAG_EXIFTOOL_TRUSTED_DIRS", default="") or "")
DEFAULT_EXIFTOOL_TIMEOUT_MS = 5000
EXIFTOOL_TIMEOUT_MS = _env_int(
    DEFAULT_EXIFTOOL_TIMEOUT_MS, "METATAG_EXIFTOOL_TIMEOUT_MS", min_value=100, max_value=600_000
)
# Upper bound for one stay_open response, guards the pipe reader buffer
EXIFTOOL_MAX_OUTPUT_BYTES = _env_int(
    16 * 1024 * 1024, "METATAG_EXIFTOOL_MAX_OUTPUT_BYTES", min_value=64 * 1024, max_value=256 * 1024 * 1024
)

# Read/write permission precondition before writing.
CHECK_FILE_PERMISSIONS = _env_bool(True, "METATAG_CHECK_PERMISSIONS")

# Lifecycle
SHUTDOWN_TIMEOUT_S = _env_float(5.0, "METATAG_SHUTDOWN_TIMEOUT", min_value=0.1, max_value=60.0)

# Logging
LOG_LEVEL = str(_env_raw("METATAG_LOG_LEVEL", default="info") or "info").strip().lower()

# Request limits
MAX_KEYWORD_ENTRIES = 50
MAX_KEYWORD_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 10_000
MAX_LOCATION_LENGTH = 1_000
