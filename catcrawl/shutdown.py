"""Graceful shutdown for crawl runs.

The first SIGINT/SIGTERM asks the fetch engine to stop dispatching new
requests; pages already in flight are finished and partial results are
still exported. A second signal exits immediately.
"""

import signal
import sys
import threading
from typing import Optional

from catcrawl.logging_config import get_logger

__all__ = [
    "ShutdownHandler",
    "get_shutdown_handler",
    "shutdown_requested",
    "request_shutdown",
]

logger = get_logger("shutdown")


class ShutdownHandler:
    """Process-wide shutdown flag driven by signals.

    Usage:
        handler = get_shutdown_handler().install()
        try:
            while not handler.shutdown_requested:
                ...
        finally:
            handler.uninstall()
    """

    _instance: Optional["ShutdownHandler"] = None
    _lock = threading.Lock()

    def __init__(self) -> None:
        self._shutdown_requested = threading.Event()
        self._original_handlers = {}
        self._installed = False

    @classmethod
    def get_instance(cls) -> "ShutdownHandler":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def install(self) -> "ShutdownHandler":
        """Install SIGINT/SIGTERM handlers (main thread only)."""
        if self._installed:
            return self
        for signum in (signal.SIGINT, signal.SIGTERM):
            self._original_handlers[signum] = signal.getsignal(signum)
            signal.signal(signum, self._handle_signal)
        self._installed = True
        return self

    def uninstall(self) -> None:
        if not self._installed:
            return
        for signum, handler in self._original_handlers.items():
            if handler is not None:
                signal.signal(signum, handler)
        self._original_handlers.clear()
        self._installed = False

    def _handle_signal(self, signum: int, frame) -> None:
        signal_name = signal.Signals(signum).name
        logger.warning(
            f"Received {signal_name}, finishing in-flight requests "
            "(press Ctrl+C again to force quit)"
        )
        self._shutdown_requested.set()
        signal.signal(signum, self._force_exit)

    def _force_exit(self, signum: int, frame) -> None:
        logger.error("Force quitting")
        sys.exit(1)

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown_requested.is_set()

    def request(self) -> None:
        """Request shutdown programmatically."""
        self._shutdown_requested.set()

    def reset(self) -> None:
        """Clear the shutdown flag (for tests or reuse)."""
        self._shutdown_requested.clear()


def get_shutdown_handler() -> ShutdownHandler:
    return ShutdownHandler.get_instance()


def shutdown_requested() -> bool:
    return get_shutdown_handler().shutdown_requested


def request_shutdown() -> None:
    get_shutdown_handler().request()
