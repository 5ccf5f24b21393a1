"""Activity recorder — turns ActivityChange events into activity rows.

Keeps exactly one open sample: heartbeats extend its duration, a new window
seals it with its final duration and opens the next one. Writes go through
the WriteQueue so they reach SQLite in the order they were decided here.
"""

import logging

from wakey.buffer import WriteOp, WriteQueue
from wakey.models import ActivityChange, ActivitySample

log = logging.getLogger(__name__)


class SampleHandle:
    """The row id of a queued sample, filled in when its insert is applied."""

    def __init__(self, sample: ActivitySample):
        self.sample = sample
        self.id: int | None = None
        self.sealed = False

    def insert(self, db) -> None:
        self.id = db.insert_sample(self.sample)

    def update(self, db, seconds: int) -> None:
        if self.id is None:
            log.debug("sample %s never reached the store, skipping update", self.sample.app_name)
            return
        db.update_sample_duration(self.id, seconds)

    def seal(self, db, seconds: int) -> None:
        if self.id is None:
            # The insert was dropped; store the finished row instead.
            self.id = db.insert_sample(self.sample)
        db.seal_sample(self.id, seconds)


class ActivityRecorder:
    def __init__(self, writer: WriteQueue):
        self.writer = writer
        self._open: SampleHandle | None = None
        self.sealed_count = 0

    @property
    def open_sample(self) -> SampleHandle | None:
        return self._open

    def on_activity_change(self, change: ActivityChange) -> None:
        if not change.window_changed:
            if self._open is not None:
                self._extend(self._open, change.timestamp)
            return
        self._seal_open(change.timestamp)
        if change.current is not None:
            handle = SampleHandle(change.current)
            self._open = handle
            self.writer.submit(WriteOp(label="insert_sample", apply=handle.insert))

    def close(self, now: float) -> None:
        """Seal the open sample, e.g. on shutdown."""
        self._seal_open(now)

    def _elapsed(self, handle: SampleHandle, now: float) -> int:
        return max(0, int(now - handle.sample.created_at))

    def _extend(self, handle: SampleHandle, now: float) -> None:
        seconds = self._elapsed(handle, now)
        self.writer.submit(WriteOp(
            label="update_sample_duration",
            apply=lambda db: handle.update(db, seconds),
        ))

    def _seal_open(self, now: float) -> None:
        handle, self._open = self._open, None
        if handle is None:
            return
        seconds = self._elapsed(handle, now)
        handle.sealed = True
        self.sealed_count += 1
        self.writer.submit(WriteOp(
            label="seal_sample",
            apply=lambda db: handle.seal(db, seconds),
        ))
