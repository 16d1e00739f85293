"""
Graceful shutdown on SIGINT/SIGTERM.

The first signal sets the shutdown event; later signals are logged and ignored.
Each cleanup step gets its own bounded wait, and a step that fails or times out
never stops the remaining steps.
"""
from __future__ import annotations

import asyncio
import signal
from collections.abc import Awaitable, Callable, Iterable
from typing import Optional

from .config import SHUTDOWN_TIMEOUT_S
from .shared import get_logger

logger = get_logger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)

ShutdownStep = tuple[str, Callable[[], Awaitable[object]]]


class GracefulShutdown:
    def __init__(self, timeout_s: Optional[float] = None):
        self.timeout_s = float(timeout_s) if timeout_s is not None else float(SHUTDOWN_TIMEOUT_S)
        self.event = asyncio.Event()
        self.signal_name: Optional[str] = None
        self._installed: list[signal.Signals] = []

    @property
    def requested(self) -> bool:
        return self.event.is_set()

    def install(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.request, sig.name)
            except (NotImplementedError, RuntimeError, ValueError) as exc:
                # Windows event loops have no add_signal_handler.
                logger.debug("Signal handler for %s not installed: %s", sig.name, exc)
                continue
            self._installed.append(sig)
        if self._installed:
            logger.info("Graceful shutdown listening for %s", ", ".join(s.name for s in self._installed))

    def uninstall(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in self._installed:
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError, ValueError):
                continue
        self._installed = []

    def request(self, signal_name: str = "shutdown") -> None:
        if self.event.is_set():
            logger.info("Shutdown already in progress, ignoring %s", signal_name)
            return
        self.signal_name = signal_name
        logger.info("Received %s, shutting down MetaTag Genie server...", signal_name)
        self.event.set()

    async def wait(self) -> None:
        await self.event.wait()

    async def run_steps(self, steps: Iterable[ShutdownStep]) -> bool:
        """
        Run cleanup steps in order.

        Returns:
            True when every step finished in time without raising
        """
        clean = True
        for name, step in steps:
            logger.info("Shutdown: %s...", name)
            try:
                await asyncio.wait_for(step(), timeout=self.timeout_s)
            except asyncio.TimeoutError:
                logger.warning("Shutdown step '%s' timed out after %.1fs, continuing", name, self.timeout_s)
                clean = False
                continue
            except Exception as exc:
                logger.error("Shutdown step '%s' failed: %s", name, exc)
                clean = False
                continue
            logger.info("Shutdown: %s done", name)
        return clean
