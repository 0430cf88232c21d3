# spinner/services/scheduling.py
"""Cancellable background timers shared by the slideshow and the refreshers."""
import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class RepeatingTask:
    """
    Calls `action` every `interval_seconds` on a daemon thread until cancelled.

    The first call happens after one interval unless `run_immediately` is set.
    An exception from `action` is logged and the task keeps running.
    """

    def __init__(self, interval_seconds: float, action: Callable[[], None], name: str = 'repeating-task',
                 run_immediately: bool = False):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.interval_seconds = interval_seconds
        self.name = name
        self._action = action
        self._run_immediately = run_immediately
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> 'RepeatingTask':
        self._thread.start()
        return self

    def _tick(self) -> None:
        try:
            self._action()
        except Exception:
            logger.error(f"Task '{self.name}' failed", exc_info=True)

    def _run(self) -> None:
        if self._run_immediately and not self._stopped.is_set():
            self._tick()
        while not self._stopped.wait(self.interval_seconds):
            self._tick()

    def cancel(self) -> None:
        self._stopped.set()

    @property
    def cancelled(self) -> bool:
        return self._stopped.is_set()

    def join(self, timeout: float = None) -> None:
        self._thread.join(timeout)
