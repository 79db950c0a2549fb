"""Owned, cancellable fixed-delay ticker for the reconciliation sweep."""

from __future__ import annotations

import threading
from collections.abc import Callable

import structlog

logger = structlog.get_logger()


class SweepScheduler:
    """Runs *callback* after *initial_delay*, then every *interval* seconds.

    The delay is measured from the end of one run to the start of the
    next, so runs never overlap. cancel() stops future runs without
    waiting; stop() also waits for an in-flight run to finish.
    """

    def __init__(
        self,
        callback: Callable[[], object],
        *,
        initial_delay: float,
        interval: float,
        name: str = "citeindex-sweep",
    ) -> None:
        self._callback = callback
        self._initial_delay = initial_delay
        self._interval = interval
        self._name = name
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the background thread. Idempotent."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name=self._name, daemon=True)
        self._thread.start()
        logger.debug("sweep_scheduled", initial_delay=self._initial_delay, interval=self._interval)

    def cancel(self) -> None:
        self._stop_event.set()

    def stop(self, timeout: float | None = None) -> None:
        """Cancel and wait for the thread. Safe to call from the sweep itself."""
        self.cancel()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        self._thread = None

    def _loop(self) -> None:
        # Event.wait() returns True once cancelled
        if self._stop_event.wait(timeout=self._initial_delay):
            return
        while True:
            try:
                self._callback()
            except Exception as e:
                logger.error("sweep_failed", error=str(e), exc_info=True)
            if self._stop_event.wait(timeout=self._interval):
                return
