"""Activity sampler — polls the window probe and emits ActivityChange events.

One background thread per sampler, woken by a timer rather than a busy
loop. Each tick calls the probe with a timeout, compares the result with
the previous window, and hands an ActivityChange to the on_change callback:

- a different process name than the last seen app is a context switch
- a new title or URL in the same app opens a new sample but is not a switch
- no window on two consecutive ticks emits nothing
- an unchanged window emits only when a heartbeat was requested
"""

import logging
import threading
import time
from typing import Callable

import wakey.config as config
from wakey.categorizer import Categorizer, DistractionPolicy, RuleCategorizer
from wakey.errors import ProbeFailure
from wakey.idle import IdleTracker
from wakey.models import ActivityChange, ActivitySample, WindowInfo
from wakey.probes.base import TimedProbeCall, WindowProbe

log = logging.getLogger(__name__)

ChangeCallback = Callable[[ActivityChange], None]


def fan_out(*handlers: ChangeCallback) -> ChangeCallback:
    """Combine subscribers into one callback; a failing subscriber does not stop the others."""

    def _dispatch(change: ActivityChange) -> None:
        for handler in handlers:
            try:
                handler(change)
            except Exception:
                log.exception("subscriber %s failed on activity change",
                              getattr(handler, "__qualname__", handler))

    return _dispatch


class ActivitySampler:
    name = "sampler"

    def __init__(
        self,
        probe: WindowProbe,
        categorizer: Categorizer | None = None,
        distractions: DistractionPolicy | None = None,
        idle: IdleTracker | None = None,
        probe_timeout: float | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.probe = probe
        self.categorizer = categorizer or RuleCategorizer()
        self.distractions = distractions or DistractionPolicy()
        self.idle = idle
        self.probe_timeout = probe_timeout or config.PROBE_TIMEOUT
        self._probe_call = TimedProbeCall(self.probe_timeout)
        self.interval = config.SAMPLE_INTERVAL
        self.probe_failures = 0
        self._clock = clock
        self._on_change: ChangeCallback | None = None
        self.heartbeat = False
        self._previous: ActivitySample | None = None
        self._last_app: str | None = None
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._lifecycle_lock = threading.Lock()
        self._tick_lock = threading.Lock()

    # ── lifecycle ───────────────────────────────────────────────────────

    def start(self, on_change: ChangeCallback, interval: float | None = None,
              heartbeat: bool = False) -> None:
        """Start polling in a background thread. No-op if already running."""
        with self._lifecycle_lock:
            if self._thread and self._thread.is_alive():
                return
            self._on_change = on_change
            self.heartbeat = heartbeat
            if interval is not None:
                self.interval = interval
            # One token per loop; stop() sets the token of the loop it detaches.
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run_loop, args=(self._stop_event,),
                name=f"wakey-{self.name}", daemon=True,
            )
            self._thread.start()
        log.info("[%s] started (interval=%.1fs, heartbeat=%s)",
                 self.name, self.interval, heartbeat)

    def stop(self) -> None:
        """Stop polling. Once this returns no further on_change call will happen.

        When called from inside on_change it can only signal; the current
        tick finishes and the loop exits.
        """
        with self._lifecycle_lock:
            self._stop_event.set()
            thread, self._thread = self._thread, None
        if thread is None:
            return
        if thread is not threading.current_thread():
            thread.join()
        log.info("[%s] stopped", self.name)

    def is_tracking(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive() and not self._stop_event.is_set()

    @property
    def current(self) -> ActivitySample | None:
        """Snapshot of the window seen on the last tick, if any."""
        return self._previous

    # ── ticks ───────────────────────────────────────────────────────────

    def tick(self) -> ActivityChange | None:
        """Run one sampling cycle and dispatch the resulting change, if any.

        Safe to call from several threads: changes reach on_change in the
        order they were detected.
        """
        with self._tick_lock:
            window = self._probe_once()
            change = self._compare(window, self._clock())
            if change is not None and self._on_change is not None:
                self._on_change(change)
        return change

    def _probe_once(self) -> WindowInfo | None:
        try:
            window = self._probe_call(self.probe)
        except ProbeFailure as e:
            self.probe_failures += 1
            log.warning("[%s] %s — treating as no active window", self.name, e)
            return None
        if window is not None and not window.process_name:
            return None
        return window

    def _compare(self, window: WindowInfo | None, now: float) -> ActivityChange | None:
        prev = self._previous

        if window is None:
            if prev is None:
                return None
            self._previous = None
            return ActivityChange(
                previous=prev, current=None, is_context_switch=False,
                app_changed=True, title_changed=prev.window_title is not None,
                timestamp=now,
            )

        if self.idle is not None and window.input_idle_s is not None:
            self.idle.observe_input_idle(window.input_idle_s)

        app_changed = prev is None or prev.app_name != window.process_name
        title_changed = prev is None or prev.window_title != window.title
        url_changed = prev is None or prev.url != window.url

        if not (app_changed or title_changed or url_changed):
            if not self.heartbeat:
                return None
            return ActivityChange(
                previous=prev, current=prev, is_context_switch=False,
                app_changed=False, title_changed=False, timestamp=now,
            )

        current = self._snapshot(window, now)
        is_switch = self._last_app is not None and window.process_name != self._last_app
        self._last_app = window.process_name
        self._previous = current
        if self.idle is not None and window.input_idle_s is None:
            self.idle.record_activity()

        return ActivityChange(
            previous=prev, current=current, is_context_switch=is_switch,
            app_changed=app_changed, title_changed=title_changed, timestamp=now,
        )

    def _snapshot(self, window: WindowInfo, now: float) -> ActivitySample:
        try:
            category = self.categorizer.categorize(window.process_name, window.title, window.url)
        except Exception:
            log.exception("[%s] categorizer failed for %r", self.name, window.process_name)
            category = config.DEFAULT_CATEGORY
        category = category or config.DEFAULT_CATEGORY
        return ActivitySample(
            app_name=window.process_name,
            window_title=window.title,
            url=window.url,
            category=category,
            is_distraction=self.distractions.is_distraction(
                window.process_name, category, window.url
            ),
            created_at=now,
        )

    # ── internal ────────────────────────────────────────────────────────

    def _run_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            try:
                self.tick()
            except Exception:
                log.exception("[%s] tick error", self.name)
            stop_event.wait(timeout=self.interval)
