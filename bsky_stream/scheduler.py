"""Cancellable periodic background task.

Used for both the session refresh and the search polling loops. Each task
owns a daemon thread and a stop event, so ``stop()`` deterministically halts
future ticks before the caller tears down any shared state.
"""

import threading
import time
from typing import Callable

from bsky_stream.logger import setup_logger

logger = setup_logger()


class PeriodicTask:
    """Run a callable at a fixed rate on a background thread."""

    def __init__(
        self,
        name: str,
        fn: Callable[[], None],
        period: float,
        initial_delay: float = 0.0,
    ):
        """Initialize a periodic task.

        Args:
            name: Thread name, used in log messages
            fn: Callable invoked on every tick
            period: Seconds between the start of consecutive ticks
            initial_delay: Seconds to wait before the first tick
        """
        if period <= 0:
            raise ValueError("period must be positive")
        self.name = name
        self.fn = fn
        self.period = period
        self.initial_delay = max(initial_delay, 0.0)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """Start the background thread. Calling start twice is a no-op."""
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.debug(f"Started {self.name} (period: {self.period}s)")

    def stop(self, timeout: float | None = None):
        """Stop the task and wait for the current tick to finish.

        Args:
            timeout: Maximum seconds to wait for the thread to exit
        """
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None
        logger.debug(f"Stopped {self.name}")

    def _run(self):
        next_run = time.monotonic() + self.initial_delay
        while not self._stop_event.wait(max(next_run - time.monotonic(), 0)):
            try:
                self.fn()
            except Exception as e:
                logger.exception(f"Error in {self.name}: {e}")
            next_run += self.period
            # A tick that overran its slot does not trigger a burst of catch-up ticks
            now = time.monotonic()
            if next_run < now:
                next_run = now
