"""Window probe interface and the bounded-time call used by the sampler."""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from wakey.errors import ProbeFailure
from wakey.models import WindowInfo

log = logging.getLogger(__name__)


class WindowProbe(Protocol):
    """Platform capability that reports the current foreground window."""

    def probe(self) -> WindowInfo | None:
        """Return the foreground window, or None when there is none."""


class TimedProbeCall:
    """Runs ``probe.probe()`` on a helper thread, waiting at most ``timeout`` seconds.

    A call that hangs is abandoned (its daemon thread is left to finish on
    its own) so the caller's next tick is not blocked by it. While that
    thread is still running no new one is started, so a probe that always
    hangs costs one thread, not one per tick.
    Raises ProbeFailure on timeout, on a still-running earlier call, or on
    any exception from the probe.
    """

    def __init__(self, timeout: float):
        self.timeout = timeout
        self._worker: threading.Thread | None = None

    @property
    def busy(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def __call__(self, probe: WindowProbe) -> WindowInfo | None:
        if self.busy:
            raise ProbeFailure("previous window probe call has not returned yet")

        result: list[WindowInfo | None] = []
        error: list[BaseException] = []

        def _target() -> None:
            try:
                result.append(probe.probe())
            except Exception as e:
                error.append(e)

        worker = threading.Thread(target=_target, name="wakey-probe", daemon=True)
        self._worker = worker
        worker.start()
        worker.join(self.timeout)
        if worker.is_alive():
            raise ProbeFailure(f"window probe did not return within {self.timeout:.1f}s")
        self._worker = None
        if error:
            raise ProbeFailure(f"window probe failed: {error[0]}") from error[0]
        return result[0] if result else None
