"""
ExifTool detection helpers.
Cached detection to avoid repeated subprocess calls.
"""
import re
import shutil
import subprocess
from typing import Any, Dict, Optional, Tuple

from metatag_backend.config import EXIFTOOL_BIN, EXIFTOOL_MIN_VERSION
from metatag_backend.shared import get_logger

logger = get_logger(__name__)

# None = not checked, True/False = result
_EXIFTOOL_AVAILABLE: Optional[bool] = None
_EXIFTOOL_VERSION: Optional[str] = None


def parse_tool_version(value: Optional[str]) -> Tuple[int, ...]:
    if not value:
        return ()
    out: list[int] = []
    for part in re.findall(r"\d+", value):
        try:
            out.append(int(part))
        except ValueError:
            continue
    return tuple(out)


def version_satisfies_minimum(actual: Optional[str], minimum: str) -> bool:
    if not minimum:
        return True
    minimum_parts = parse_tool_version(minimum)
    if not minimum_parts:
        return True
    actual_parts = parse_tool_version(actual or "")
    if not actual_parts:
        return False
    length = max(len(actual_parts), len(minimum_parts))
    padded_actual = list(actual_parts) + [0] * (length - len(actual_parts))
    padded_minimum = list(minimum_parts) + [0] * (length - len(minimum_parts))
    return tuple(padded_actual) >= tuple(padded_minimum)


def _run_command(cmd: list[str]) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        cmd,
        capture_output=True,
        text=True,
        timeout=2,
        check=False,
    )


def has_exiftool(bin_name: Optional[str] = None, min_version: Optional[str] = None) -> bool:
    """Check if ExifTool is available and recent enough."""
    global _EXIFTOOL_AVAILABLE, _EXIFTOOL_VERSION
    if _EXIFTOOL_AVAILABLE is not None:
        return _EXIFTOOL_AVAILABLE

    exiftool_bin = bin_name or EXIFTOOL_BIN or "exiftool"
    minimum = EXIFTOOL_MIN_VERSION if min_version is None else min_version
    if shutil.which(exiftool_bin) is None:
        logger.debug("ExifTool binary not found in PATH: %s", exiftool_bin)
    try:
        result = _run_command([exiftool_bin, "-ver"])
    except (FileNotFoundError, PermissionError, subprocess.TimeoutExpired) as exc:
        logger.warning("ExifTool detection failed: %s", exc)
        _EXIFTOOL_AVAILABLE = False
        return False

    if result.returncode != 0:
        logger.warning("ExifTool not found or failed to start: %s", result.stderr.strip())
        _EXIFTOOL_AVAILABLE = False
        return False

    version = result.stdout.strip()
    _EXIFTOOL_VERSION = version
    if not version_satisfies_minimum(version, minimum):
        logger.warning("ExifTool version %s does not meet minimum required %s", version or "<unknown>", minimum)
        _EXIFTOOL_AVAILABLE = False
        return False

    logger.info("ExifTool detected: version %s", version)
    _EXIFTOOL_AVAILABLE = True
    return True


def get_tool_status() -> Dict[str, Any]:
    """
    Returns: {"exiftool": bool, "versions": {"exiftool": str | null}}
    """
    return {
        "exiftool": has_exiftool(),
        "versions": {"exiftool": _EXIFTOOL_VERSION},
    }


def reset_tool_cache() -> None:
    """Reset tool detection cache (for testing or manual refresh)."""
    global _EXIFTOOL_AVAILABLE, _EXIFTOOL_VERSION
    _EXIFTOOL_AVAILABLE = None
    _EXIFTOOL_VERSION = None
