"""
Time utilities for performance measurement.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager


def now() -> float:
    """Monotonic clock in seconds (float)."""
    return time.monotonic()

@contextmanager
def timer(label: str, logger: logging.Logger) -> Iterator[None]:
    """
    Context manager for timing operations.

    Usage:
        with timer("exiftool write", logger):
            await exiftool.write(path, fields)
    """
    start = now()
    try:
        yield
    finally:
        elapsed = now() - start
        logger.debug(f"{label} took {elapsed:.3f}s")
