"""Periodic idle timer."""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class IdleTimer:
    """
    Calls a callback every ``interval`` seconds on a daemon thread.

    start() and cancel() are idempotent, and cancel() is safe on a timer
    that never started. Cancelling does not wait for an in-flight tick.
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[], None],
        name: str = "mdlive-idle",
    ):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.interval = interval
        self.callback = callback
        self.name = name

        self._thread: Optional[threading.Thread] = None
        self._stopped: Optional[threading.Event] = None

    @property
    def active(self) -> bool:
        """Whether the timer is armed."""
        return self._stopped is not None and not self._stopped.is_set()

    def start(self):
        """Arm the timer."""
        if self.active:
            return

        # Each run gets its own event so a stale thread can never be revived
        self._stopped = threading.Event()
        self._thread = threading.Thread(
            target=self._run, args=(self._stopped,), name=self.name, daemon=True
        )
        self._thread.start()

    def cancel(self):
        """Disarm the timer."""
        if self._stopped is not None:
            self._stopped.set()
        self._stopped = None
        self._thread = None

    def _run(self, stopped: threading.Event):
        while not stopped.wait(self.interval):
            try:
                self.callback()
            except Exception:
                logger.exception("Idle timer callback failed")
