"""wakey daemon — main orchestrator.

Opens the database, starts the write queue and the activity sampler, and
fans every ActivityChange out to independent subscribers:

- ActivityRecorder   sample rows (via the write queue)
- FocusSessionManager distraction / context-switch counters
- idle watcher       idle_changed events

Then runs the health heartbeat loop until SIGTERM / SIGINT.
"""

import logging
import os
import signal
import sys
import threading
import time

import wakey.config as config
from wakey import events
from wakey.buffer import WriteQueue
from wakey.categorizer import DistractionPolicy, build_default_categorizer
from wakey.db import Database
from wakey.events import EventBus
from wakey.idle import IdleTracker
from wakey.models import ActivityChange, SessionKind, SessionState
from wakey.probes.base import WindowProbe
from wakey.recorder import ActivityRecorder
from wakey.sampler import ActivitySampler, fan_out
from wakey.session import FocusSessionManager

log = logging.getLogger("wakey")


def _setup_logging() -> None:
    config.DATA_DIR.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(str(config.LOG_PATH)),
            logging.StreamHandler(sys.stderr),
        ],
    )


def _write_pid() -> None:
    config.PID_PATH.write_text(str(os.getpid()))


def _remove_pid() -> None:
    config.PID_PATH.unlink(missing_ok=True)


def _default_probe() -> WindowProbe:
    from wakey.probes.macos import MacWindowProbe
    return MacWindowProbe()


class Tracker:
    """Owns the store, the write queue, the sampler and the session manager.

    Usable on its own (tests, embedding in a UI process); the Daemon adds
    logging, pid file, signals and the heartbeat loop around it.
    """

    def __init__(self, probe: WindowProbe, db: Database | None = None,
                 bus: EventBus | None = None):
        self.db = db or Database()
        self.bus = bus or EventBus()
        self.writer = WriteQueue(self.db, on_status=self._on_store_status)
        self.idle = IdleTracker()
        self.sampler = ActivitySampler(
            probe,
            categorizer=build_default_categorizer(),
            distractions=DistractionPolicy(),
            idle=self.idle,
        )
        self.recorder = ActivityRecorder(self.writer)
        self.sessions = FocusSessionManager(writer=self.writer, bus=self.bus)
        self._was_idle = False
        self._idle_lock = threading.Lock()
        self.dispatch = fan_out(
            self.recorder.on_activity_change,
            self.sessions.on_activity_change,
            self.check_idle,
        )

    def open(self) -> None:
        if not self.db.is_open:
            self.db.open()
        self.writer.start()
        self.sampler.start(
            self.dispatch,
            interval=config.SAMPLE_INTERVAL,
            heartbeat=True,
        )

    def close(self) -> None:
        self.sampler.stop()
        if self.sessions.state is not SessionState.IDLE:
            self.sessions.end()
        self.recorder.close(time.time())
        self.writer.stop()
        self.db.close()

    def start_session(self, kind: SessionKind | str = SessionKind.FOCUS, minutes: int = 25):
        return self.sessions.start(kind, minutes)

    def end_session(self, **kwargs):
        return self.sessions.end(**kwargs)

    def check_idle(self, change: ActivityChange | None = None) -> bool:
        idle = self.idle.is_idle()
        with self._idle_lock:
            changed = idle != self._was_idle
            self._was_idle = idle
        if changed:
            log.info("user is %s", "idle" if idle else "active again")
            self.bus.emit(events.IDLE_CHANGED, {
                "idle": idle,
                "idle_seconds": self.idle.idle_duration(),
            })
        return idle

    def _on_store_status(self, status: str, details: dict) -> None:
        self.bus.emit(events.TRACKING_STATUS, {"status": status, **details})


class Daemon:
    """Main daemon process that owns the tracker and the heartbeat loop."""

    def __init__(self, probe: WindowProbe | None = None, focus_minutes: int | None = None):
        self.tracker = Tracker(probe or _default_probe())
        self.focus_minutes = focus_minutes
        self._running = False

    def start(self) -> None:
        _setup_logging()
        _write_pid()
        log.info("wakey daemon starting (pid=%d)", os.getpid())

        self.tracker.bus.subscribe(events.ALL, self._log_event)
        self.tracker.open()
        self.tracker.db.log_health(time.time(), "startup", f"pid={os.getpid()}")

        if self.focus_minutes:
            self.tracker.start_session(SessionKind.FOCUS, self.focus_minutes)

        self._running = True
        signal.signal(signal.SIGTERM, self._handle_signal)
        signal.signal(signal.SIGINT, self._handle_signal)

        self._run_heartbeat_loop()

    def stop(self) -> None:
        log.info("wakey daemon shutting down")
        self._running = False
        self.tracker.db.log_health(time.time(), "shutdown", "clean")
        self.tracker.close()
        _remove_pid()
        log.info("wakey daemon stopped")

    def _run_heartbeat_loop(self) -> None:
        last_heartbeat = time.time()
        while self._running:
            time.sleep(1)
            self.tracker.check_idle()

            now = time.time()
            if now - last_heartbeat >= config.HEALTH_HEARTBEAT_INTERVAL:
                writer = self.tracker.writer
                details = f"pending={len(writer)} dropped={writer.dropped}"
                try:
                    self.tracker.db.log_health(now, "heartbeat", details)
                except Exception:
                    log.exception("heartbeat write failed")
                last_heartbeat = now

    def _log_event(self, event: str, payload: dict) -> None:
        if event == events.TRACKING_STATUS and payload.get("status") != "ok":
            log.warning("tracking status: %s", payload)
        else:
            log.info("event %s", event)

    def _handle_signal(self, signum, frame) -> None:
        log.info("received signal %d", signum)
        self.stop()
        sys.exit(0)


def main() -> None:
    daemon = Daemon()
    daemon.start()


if __name__ == "__main__":
    main()
