"""Ordered background writer that applies store operations to SQLite.

Every write goes through one FIFO queue and one applier at a time, so a
duration update can never overtake the insert that created its row.
Transient SQLite errors are retried with exponential backoff; when retries
run out the operation stays queued and the queue reports itself degraded.
The queue is bounded and drops its oldest operations on overflow.
"""

import logging
import sqlite3
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable

import wakey.config as config
from wakey.db import Database
from wakey.errors import StoreWriteFailure

log = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_DEGRADED = "degraded"
STATUS_DATA_LOSS_RISK = "data_loss_risk"


@dataclass
class WriteOp:
    """A single store operation destined for the database."""
    label: str
    apply: Callable[[Database], object]


class WriteQueue:
    """Accumulates store operations from tracking threads and applies them in order."""

    def __init__(
        self,
        db: Database,
        max_size: int | None = None,
        on_status: Callable[[str, dict], None] | None = None,
    ):
        self._db = db
        self._max_size = max_size or config.WRITE_QUEUE_MAX
        self._on_status = on_status
        self._lock = threading.Lock()
        self._apply_lock = threading.Lock()
        self._ops: deque[WriteOp] = deque()
        self._wake = threading.Event()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.degraded = False
        self.data_loss_risk = False
        self.dropped = 0

    # ── producer side ───────────────────────────────────────────────────

    def submit(self, op: WriteOp) -> None:
        with self._lock:
            self._ops.append(op)
            overflow = len(self._ops) - self._max_size
            for _ in range(max(overflow, 0)):
                lost = self._ops.popleft()
                self.dropped += 1
                log.warning("write queue full, dropped %s", lost.label)
        if overflow > 0:
            self._mark_data_loss()
        self._wake.set()

    def __len__(self) -> int:
        with self._lock:
            return len(self._ops)

    # ── lifecycle ───────────────────────────────────────────────────────

    def start(self) -> None:
        """Start the background writer thread."""
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop, name="wakey-writer", daemon=True
        )
        self._thread.start()
        log.info("write queue started")

    def stop(self) -> None:
        """Stop the writer thread and apply whatever is still queued."""
        self._stop_event.set()
        self._wake.set()
        if self._thread and self._thread.is_alive():
            self._thread.join()
        self._thread = None
        self.flush()
        log.info("write queue stopped (%d pending)", len(self))

    def flush(self) -> bool:
        """Apply all pending operations now. Returns True if the queue is empty afterwards."""
        with self._apply_lock:
            return self._drain_locked()

    # ── internal ────────────────────────────────────────────────────────

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            self._wake.wait(timeout=config.WRITE_FLUSH_INTERVAL)
            self._wake.clear()
            self.flush()

    def _drain_locked(self) -> bool:
        """Must be called while holding self._apply_lock."""
        while True:
            with self._lock:
                if not self._ops:
                    return True
                op = self._ops.popleft()
            try:
                self._apply_with_retry(op)
            except StoreWriteFailure:
                self._requeue(op)
                self._set_degraded(True)
                return False
            except Exception:
                log.exception("write %s failed, discarding", op.label)
                continue
            if self.degraded:
                self._set_degraded(False)

    def _apply_with_retry(self, op: WriteOp) -> None:
        delay = config.STORE_RETRY_BASE_DELAY
        attempts = max(config.STORE_RETRY_ATTEMPTS, 1)
        for attempt in range(1, attempts + 1):
            try:
                op.apply(self._db)
                return
            except sqlite3.OperationalError as e:
                log.warning(
                    "write %s failed (attempt %d/%d): %s", op.label, attempt, attempts, e
                )
                if attempt < attempts:
                    time.sleep(delay)
                    delay *= 2
        raise StoreWriteFailure(f"{op.label} failed after {attempts} attempts")

    def _requeue(self, op: WriteOp) -> None:
        with self._lock:
            if len(self._ops) >= self._max_size:
                self.dropped += 1
                log.warning("write queue full, dropped %s", op.label)
                lost = True
            else:
                self._ops.appendleft(op)
                lost = False
        if lost:
            self._mark_data_loss()

    def _set_degraded(self, degraded: bool) -> None:
        if degraded == self.degraded:
            return
        self.degraded = degraded
        if degraded:
            log.error("store writes failing, %d operations buffered in memory", len(self))
            self._notify(STATUS_DEGRADED)
        else:
            log.info("store writes recovered")
            self._notify(STATUS_OK)

    def _mark_data_loss(self) -> None:
        first = not self.data_loss_risk
        self.data_loss_risk = True
        if first:
            self._notify(STATUS_DATA_LOSS_RISK)

    def _notify(self, status: str) -> None:
        if self._on_status is None:
            return
        try:
            self._on_status(status, {"pending": len(self), "dropped": self.dropped})
        except Exception:
            log.exception("status callback failed")
