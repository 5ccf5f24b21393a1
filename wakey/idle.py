"""Idle tracking — wall-clock time since the last observed user input."""

import threading
import time
from typing import Callable

import wakey.config as config


class IdleTracker:
    """Remembers when the user was last seen doing something.

    Fed either from input-idle readings reported by the window probe or,
    at minimum, from every new window the sampler observes.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._last_activity = clock()

    def record_activity(self) -> None:
        with self._lock:
            self._last_activity = self._clock()

    def observe_input_idle(self, seconds: float) -> None:
        """Align the last-activity time with an OS reading of input idle seconds."""
        with self._lock:
            seen = self._clock() - max(seconds, 0.0)
            if seen > self._last_activity:
                self._last_activity = seen

    def idle_duration(self) -> float:
        with self._lock:
            return max(0.0, self._clock() - self._last_activity)

    def is_idle(self, threshold: float | None = None) -> bool:
        limit = config.IDLE_THRESHOLD if threshold is None else threshold
        return self.idle_duration() > limit
