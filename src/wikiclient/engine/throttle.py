"""
Process-wide write throttle.
"""

import logging
import threading
import time
from typing import Callable, Union


logger = logging.getLogger(__name__)


class WriteThrottle:
    """
    Minimum-interval gate for write operations.

    Every caller sharing the throttle is serialised: the lock is held for
    the whole wait, so no two throttled calls can start within ``interval``
    seconds of each other regardless of how many threads are writing.
    """

    def __init__(self, interval: Union[float, Callable[[], float]] = 10.0):
        """
        Initialize the throttle.

        Args:
            interval: Seconds between throttled calls, or a callable
                returning it (read on every call, e.g. from the session)
        """
        self._interval = interval
        self._lock = threading.Lock()
        self._last_start = None

    @property
    def interval(self) -> float:
        if callable(self._interval):
            return self._interval()
        return self._interval

    def throttle(self) -> float:
        """
        Block until the interval since the previous throttled call has passed.

        Returns:
            The monotonic time at which this call was allowed to start
        """
        with self._lock:
            interval = self.interval
            if self._last_start is not None and interval > 0:
                remaining = interval - (time.monotonic() - self._last_start)
                if remaining > 0:
                    logger.debug(f"Write throttle: waiting {remaining:.2f}s")
                    time.sleep(remaining)
            self._last_start = time.monotonic()
            return self._last_start
