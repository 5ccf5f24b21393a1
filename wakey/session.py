"""Focus session manager — start / pause / resume / end state machine.

States: idle → active (↔ paused) → ended, after which the manager is idle
again. All transitions and counter updates run under one lock, so ``end``
always sees every change that was being applied when it was called.

Illegal transitions raise InvalidStateError to the caller and leave the
state untouched. Activity changes arriving while idle are ignored.
"""

import logging
import threading
import time
from dataclasses import replace
from typing import Callable

import wakey.config as config
from wakey import events
from wakey.buffer import WriteOp, WriteQueue
from wakey.errors import InvalidStateError
from wakey.events import EventBus
from wakey.models import ActivityChange, FocusSession, SessionKind, SessionState
from wakey.scoring import ScoringWeights, calculate_focus_quality, clamp_score

log = logging.getLogger(__name__)


class FocusSessionManager:
    def __init__(
        self,
        writer: WriteQueue | None = None,
        bus: EventBus | None = None,
        weights: ScoringWeights | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.writer = writer
        self.bus = bus
        self.weights = weights or ScoringWeights()
        self._clock = clock
        self._lock = threading.RLock()
        self._session: FocusSession | None = None

    # ── state ───────────────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        with self._lock:
            if self._session is None:
                return SessionState.IDLE
            if self._session._paused_at is not None:
                return SessionState.PAUSED
            return SessionState.ACTIVE

    @property
    def current(self) -> FocusSession | None:
        """A copy of the running session, or None when idle."""
        with self._lock:
            return replace(self._session) if self._session else None

    # ── transitions ─────────────────────────────────────────────────────

    def start(self, kind: SessionKind | str = SessionKind.FOCUS,
              planned_minutes: int = 25) -> FocusSession:
        with self._lock:
            if self._session is not None:
                raise InvalidStateError("start", self.state.value)
            session = FocusSession(
                kind=SessionKind(kind),
                planned_duration_minutes=int(planned_minutes),
                started_at=self._clock(),
            )
            self._session = session
            row = replace(session)
            # The row is inserted as it was at start; end() finalizes it later.
            self._submit(WriteOp(
                label="insert_session",
                apply=lambda db: setattr(session, "id", db.insert_session(row)),
            ))
            log.info("[session] %s session started (%d min planned)",
                     session.kind.value, session.planned_duration_minutes)
            snapshot = replace(session)
        self._emit(events.SESSION_STARTED, {"session": snapshot})
        return snapshot

    def pause(self) -> None:
        with self._lock:
            if self.state is not SessionState.ACTIVE:
                raise InvalidStateError("pause", self.state.value)
            self._session._paused_at = self._clock()
            log.info("[session] paused")

    def resume(self) -> None:
        with self._lock:
            if self.state is not SessionState.PAUSED:
                raise InvalidStateError("resume", self.state.value)
            session = self._session
            session.paused_seconds += self._clock() - session._paused_at
            session._paused_at = None
            log.info("[session] resumed")

    def on_activity_change(self, change: ActivityChange) -> None:
        """Count distractions and context switches for the running session."""
        distraction = None
        with self._lock:
            if self.state is not SessionState.ACTIVE:
                return
            session = self._session
            current = change.current
            if (
                session.kind is SessionKind.FOCUS
                and current is not None
                and current.is_distraction
                and change.window_changed
            ):
                session.distractions_count += 1
                distraction = {
                    "app": current.app_name,
                    "title": current.window_title,
                    "category": current.category,
                    "session_id": session.id,
                }
            if change.is_context_switch:
                session.context_switches += 1
        if distraction:
            log.info("[session] distraction: %s", distraction["app"])
            self._emit(events.DISTRACTION_DETECTED, distraction)

    def end(
        self,
        user_quality: int | None = None,
        breaks_taken: int = 0,
        breaks_recommended: int = 0,
        focus_minutes: float | None = None,
    ) -> FocusSession:
        """Finish the running session, score it once, and queue the final write.

        ``user_quality`` overrides the computed score (clamped to 0–100).
        ``focus_minutes`` defaults to the unpaused time since start.
        """
        with self._lock:
            if self._session is None:
                raise InvalidStateError("end", SessionState.IDLE.value)
            session = self._session
            now = self._clock()
            if session._paused_at is not None:
                session.paused_seconds += now - session._paused_at
                session._paused_at = None
            session.ended_at = now
            minutes = session.focus_minutes(now) if focus_minutes is None else focus_minutes
            session.quality_score = self._score(
                session, minutes, user_quality, breaks_taken, breaks_recommended
            )
            self._session = None
            self._submit(WriteOp(label="finalize_session", apply=lambda db: _persist_end(db, session)))
            log.info(
                "[session] %s session ended: score=%d distractions=%d switches=%d",
                session.kind.value, session.quality_score,
                session.distractions_count, session.context_switches,
            )
            snapshot = replace(session)
        self._emit(events.SESSION_ENDED, {"session": snapshot})
        return snapshot

    # ── internal ────────────────────────────────────────────────────────

    def _score(self, session: FocusSession, minutes: float, user_quality: int | None,
               breaks_taken: int, breaks_recommended: int) -> int:
        if user_quality is not None:
            return clamp_score(user_quality)
        if session.kind is not SessionKind.FOCUS:
            return config.NEUTRAL_QUALITY_SCORE
        return calculate_focus_quality(
            distractions=session.distractions_count,
            context_switches=session.context_switches,
            focus_minutes=minutes,
            breaks_taken=breaks_taken,
            breaks_recommended=breaks_recommended,
            weights=self.weights,
        )

    def _submit(self, op: WriteOp) -> None:
        if self.writer is not None:
            self.writer.submit(op)

    def _emit(self, event: str, payload: dict) -> None:
        if self.bus is not None:
            self.bus.emit(event, payload)


def _persist_end(db, session: FocusSession) -> None:
    # The insert may have been dropped while the store was unavailable;
    # write the finished row in one go then.
    if session.id is None:
        session.id = db.insert_session(session)
        return
    db.finalize_session(
        session.id, session.quality_score,
        session.distractions_count, session.context_switches, session.ended_at,
    )
