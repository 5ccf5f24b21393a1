"""In-process event fan-out for the notification layer.

Publishers never wait on subscribers: a handler that raises is logged and
the remaining handlers still run.
"""

import logging
import threading
from collections import defaultdict
from typing import Any, Callable

log = logging.getLogger(__name__)

DISTRACTION_DETECTED = "distraction_detected"
SESSION_STARTED = "session_started"
SESSION_ENDED = "session_ended"
IDLE_CHANGED = "idle_changed"
TRACKING_STATUS = "tracking_status"

Handler = Callable[[str, dict[str, Any]], None]

ALL = "*"


class EventBus:
    def __init__(self):
        self._lock = threading.Lock()
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, event: str, handler: Handler) -> None:
        """Register ``handler`` for ``event`` (or ``"*"`` for every event)."""
        with self._lock:
            self._handlers[event].append(handler)

    def unsubscribe(self, event: str, handler: Handler) -> bool:
        with self._lock:
            handlers = self._handlers.get(event, [])
            if handler in handlers:
                handlers.remove(handler)
                return True
        return False

    def emit(self, event: str, payload: dict[str, Any] | None = None) -> None:
        with self._lock:
            handlers = list(self._handlers.get(event, ())) + list(self._handlers.get(ALL, ()))
        data = payload or {}
        for handler in handlers:
            try:
                handler(event, data)
            except Exception:
                log.exception("handler for %s failed", event)
