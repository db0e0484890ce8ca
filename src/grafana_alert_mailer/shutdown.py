"""Graceful shutdown handler for the webhook server.

Traps SIGTERM and SIGINT, exposes an awaitable shutdown event and runs
registered cleanup callbacks (such as stopping the HTTP server) within a
bounded time on exit.

Usage:
    ```python
    async def main():
        async with GracefulShutdown() as shutdown:
            server = AlertServer(handler)
            shutdown.register_cleanup(server.stop)
            await server.start(port=8080)
            await shutdown.wait()
    ```
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from collections.abc import Callable
from contextlib import suppress
from typing import Any

logger = logging.getLogger(__name__)

# Default shutdown timeout in seconds
DEFAULT_SHUTDOWN_TIMEOUT = 30.0

# Signals to trap for graceful shutdown
SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class GracefulShutdown:
    """Signal-driven shutdown coordination for an asyncio server.

    The first signal sets the shutdown event; a second one forces exit.
    """

    def __init__(self, timeout: float = DEFAULT_SHUTDOWN_TIMEOUT) -> None:
        """Initialize the shutdown handler.

        Args:
            timeout: Maximum time in seconds allowed for cleanup callbacks.
        """
        self._timeout = timeout
        self._shutdown_event: asyncio.Event | None = None
        self._shutdown_requested = False
        self._force_exit_requested = False
        self._cleanup_callbacks: list[Callable[[], Any]] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._installed: list[signal.Signals] = []

    @property
    def timeout(self) -> float:
        """Shutdown timeout in seconds."""
        return self._timeout

    @property
    def is_shutdown_requested(self) -> bool:
        """Check if shutdown has been requested."""
        return self._shutdown_requested

    @property
    def is_force_exit_requested(self) -> bool:
        """Check if force exit has been requested (second signal received)."""
        return self._force_exit_requested

    def register_cleanup(self, callback: Callable[[], Any]) -> None:
        """Register a cleanup callback (sync or async) to run on exit."""
        self._cleanup_callbacks.append(callback)

    def request_shutdown(self) -> None:
        """Request shutdown from application code."""
        if not self._shutdown_requested:
            self._shutdown_requested = True
            logger.info("Shutdown requested programmatically")
            if self._shutdown_event:
                self._shutdown_event.set()

    async def wait(self) -> None:
        """Block until a shutdown signal arrives or request_shutdown() is called."""
        if self._shutdown_event is None:
            self._shutdown_event = asyncio.Event()
            if self._shutdown_requested:
                self._shutdown_event.set()

        await self._shutdown_event.wait()

    def install_signal_handlers(self) -> None:
        """Install event loop handlers for SIGTERM and SIGINT."""
        self._loop = asyncio.get_running_loop()
        if self._shutdown_event is None:
            self._shutdown_event = asyncio.Event()

        for sig in SHUTDOWN_SIGNALS:
            try:
                self._loop.add_signal_handler(sig, self._handle_signal, sig)
                self._installed.append(sig)
            except (NotImplementedError, ValueError, OSError) as e:
                logger.warning("Could not install handler for %s: %s", sig.name, e)

        logger.debug("Signal handlers installed for %s", [s.name for s in self._installed])

    def remove_signal_handlers(self) -> None:
        """Remove the handlers installed by install_signal_handlers()."""
        if self._loop is None:
            return

        for sig in self._installed:
            with suppress(ValueError, OSError):
                self._loop.remove_signal_handler(sig)
        self._installed.clear()

    def _handle_signal(self, sig: signal.Signals) -> None:
        if self._shutdown_requested:
            self._force_exit_requested = True
            logger.warning("Received %s again - forcing exit!", sig.name)
            sys.exit(128 + sig.value)

        self._shutdown_requested = True
        logger.info("Received %s - initiating graceful shutdown...", sig.name)
        if self._shutdown_event:
            self._shutdown_event.set()

    async def _run_callback(self, callback: Callable[[], Any]) -> None:
        result = callback()
        if asyncio.iscoroutine(result):
            await result

    async def run_cleanup_callbacks(self) -> None:
        """Run registered callbacks in order, each bounded by the timeout."""
        for callback in self._cleanup_callbacks:
            try:
                await asyncio.wait_for(self._run_callback(callback), timeout=self._timeout)
            except TimeoutError:
                logger.error("Cleanup callback timed out after %.1fs", self._timeout)
            except Exception as e:
                logger.error("Cleanup callback failed: %s", e)

    async def __aenter__(self) -> GracefulShutdown:
        """Install signal handlers."""
        self.install_signal_handlers()
        return self

    async def __aexit__(self, *_args: Any) -> None:
        """Remove signal handlers and run cleanup."""
        self.remove_signal_handlers()
        await self.run_cleanup_callbacks()
