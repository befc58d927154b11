"""
ContinuationScheduler - Single-shot, coalescing timer for the next batch chunk.
"""

import logging
import threading
from typing import Callable, Optional


class ContinuationScheduler:
    """
    Runs ``callback`` once after a delay unless a run is already pending.

    Scheduling while a continuation is pending is a no-op, so repeated
    triggers never stack up duplicate runs.
    """

    def __init__(
        self,
        callback: Callable[[], object],
        logger: Optional[logging.Logger] = None
    ):
        self._callback = callback
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self.logger = logger or logging.getLogger(__name__)

    def is_scheduled(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self, delay: float) -> bool:
        """
        Arrange for the callback to run in ``delay`` seconds.

        Returns:
            True if a new continuation was scheduled, False if one was pending
        """
        with self._lock:
            if self._timer is not None:
                return False
            timer = threading.Timer(delay, self._fire)
            timer.daemon = True
            timer.name = 'webpgen-continuation'
            self._timer = timer
            timer.start()
        self.logger.debug(f"Next chunk scheduled in {delay:.1f}s")
        return True

    def cancel(self) -> None:
        with self._lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            self.logger.debug("Pending chunk cancelled")

    def _fire(self) -> None:
        with self._lock:
            if self._timer is None or self._timer is not threading.current_thread():
                return
            self._timer = None
        try:
            self._callback()
        except Exception:
            self.logger.exception("Scheduled chunk failed")


class InlineScheduler:
    """
    Records continuation requests for a foreground loop to act on.

    Follows the same coalescing contract as ContinuationScheduler but never
    starts a thread; the owner calls :meth:`take` and runs the callback itself.
    """

    def __init__(self, callback: Callable[[], object], logger: Optional[logging.Logger] = None):
        self.callback = callback
        self._pending: Optional[float] = None
        self.logger = logger or logging.getLogger(__name__)

    def is_scheduled(self) -> bool:
        return self._pending is not None

    def schedule(self, delay: float) -> bool:
        if self._pending is not None:
            return False
        self._pending = delay
        return True

    def cancel(self) -> None:
        self._pending = None

    def take(self) -> Optional[float]:
        """Pop the pending delay, or None if nothing is scheduled."""
        delay, self._pending = self._pending, None
        return delay
