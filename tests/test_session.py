"""Tests for wakey.session — FocusSessionManager."""

import logging
from datetime import datetime

import pytest

from wakey import events
from wakey.buffer import WriteQueue
from wakey.db import Database
from wakey.errors import InvalidStateError
from wakey.events import EventBus
from wakey.models import ActivityChange, ActivitySample, SessionKind, SessionState
from wakey.session import FocusSessionManager

T0 = datetime(2026, 3, 10, 9, 0).timestamp()


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def sample(app, ts, distraction=False, category=None):
    return ActivitySample(
        app_name=app, window_title=f"{app} window", url=None,
        category=category, created_at=ts, is_distraction=distraction,
    )


def switch(prev, cur, ts):
    return ActivityChange(
        previous=prev, current=cur,
        is_context_switch=prev is not None and prev.app_name != cur.app_name,
        app_changed=True, title_changed=True, timestamp=ts,
    )


def heartbeat(cur, ts):
    return ActivityChange(
        previous=cur, current=cur, is_context_switch=False,
        app_changed=False, title_changed=False, timestamp=ts,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db(tmp_path):
    d = Database(path=tmp_path / "test.db")
    d.open()
    yield d
    d.close()


class TestTransitions:
    def test_starts_idle(self):
        assert FocusSessionManager().state is SessionState.IDLE
        assert FocusSessionManager().current is None

    def test_start_then_end(self, clock):
        m = FocusSessionManager(clock=clock)
        started = m.start(SessionKind.FOCUS, 25)
        assert m.state is SessionState.ACTIVE
        assert started.started_at == T0
        clock.advance(60)
        ended = m.end()
        assert m.state is SessionState.IDLE
        assert ended.ended_at == T0 + 60
        assert ended.quality_score is not None

    def test_start_accepts_kind_string(self, clock):
        m = FocusSessionManager(clock=clock)
        assert m.start("meeting", 30).kind is SessionKind.MEETING

    def test_double_start_raises(self, clock):
        m = FocusSessionManager(clock=clock)
        m.start()
        with pytest.raises(InvalidStateError, match="cannot start while session manager is active"):
            m.start()
        assert m.state is SessionState.ACTIVE

    def test_end_without_session_raises_and_stays_idle(self):
        m = FocusSessionManager()
        with pytest.raises(InvalidStateError) as exc:
            m.end()
        assert exc.value.action == "end"
        assert m.state is SessionState.IDLE

    def test_pause_and_resume(self, clock):
        m = FocusSessionManager(clock=clock)
        m.start()
        clock.advance(600)
        m.pause()
        assert m.state is SessionState.PAUSED
        clock.advance(600)
        m.resume()
        assert m.state is SessionState.ACTIVE
        clock.advance(900)
        ended = m.end()
        assert ended.paused_seconds == 600
        assert ended.focus_minutes(clock()) == 25.0

    def test_end_while_paused_closes_the_pause(self, clock):
        m = FocusSessionManager(clock=clock)
        m.start()
        clock.advance(300)
        m.pause()
        clock.advance(300)
        ended = m.end()
        assert ended.paused_seconds == 300
        assert ended.focus_minutes(clock()) == 5.0

    def test_illegal_pause_resume(self, clock):
        m = FocusSessionManager(clock=clock)
        with pytest.raises(InvalidStateError):
            m.pause()
        m.start()
        with pytest.raises(InvalidStateError):
            m.resume()
        m.pause()
        with pytest.raises(InvalidStateError):
            m.pause()

    def test_current_is_a_copy(self, clock):
        m = FocusSessionManager(clock=clock)
        m.start()
        m.current.distractions_count = 99
        assert m.current.distractions_count == 0


class TestCounting:
    def test_reference_session_scores_95(self, clock):
        m = FocusSessionManager(clock=clock)
        code = sample("Code", T0)
        m.start(SessionKind.FOCUS, 25)

        clock.advance(300)
        yt = sample("YouTube", clock(), distraction=True, category="Entertainment")
        m.on_activity_change(switch(code, yt, clock()))
        m.on_activity_change(heartbeat(yt, clock() + 5))
        clock.advance(60)
        back = sample("Code", clock())
        m.on_activity_change(switch(yt, back, clock()))

        clock.advance(1500 - 360)
        ended = m.end(breaks_taken=1, breaks_recommended=1)
        assert ended.distractions_count == 1
        assert ended.context_switches == 2
        assert ended.quality_score == 95

    def test_changes_while_idle_are_ignored(self, clock):
        m = FocusSessionManager(clock=clock)
        yt = sample("YouTube", T0, distraction=True)
        m.on_activity_change(switch(sample("Code", T0), yt, T0))
        m.start()
        assert m.current.distractions_count == 0
        assert m.current.context_switches == 0

    def test_changes_while_paused_are_ignored(self, clock):
        m = FocusSessionManager(clock=clock)
        m.start()
        m.pause()
        m.on_activity_change(switch(sample("Code", T0), sample("Slack", T0), T0))
        m.resume()
        assert m.current.context_switches == 0

    def test_heartbeats_on_a_distraction_count_once(self, clock):
        m = FocusSessionManager(clock=clock)
        m.start()
        yt = sample("YouTube", T0, distraction=True)
        m.on_activity_change(switch(None, yt, T0))
        for i in range(5):
            m.on_activity_change(heartbeat(yt, T0 + 5 * i))
        assert m.current.distractions_count == 1
        assert m.current.context_switches == 0

    def test_break_sessions_count_switches_not_distractions(self, clock):
        m = FocusSessionManager(clock=clock)
        m.start(SessionKind.BREAK, 5)
        yt = sample("YouTube", T0, distraction=True)
        m.on_activity_change(switch(sample("Code", T0), yt, T0))
        assert m.current.distractions_count == 0
        assert m.current.context_switches == 1


class TestScoring:
    def test_user_quality_overrides_and_clamps(self, clock):
        m = FocusSessionManager(clock=clock)
        m.start()
        assert m.end(user_quality=140).quality_score == 100
        m.start()
        assert m.end(user_quality=-4).quality_score == 0
        m.start()
        assert m.end(user_quality=72).quality_score == 72

    def test_break_session_gets_neutral_score(self, clock):
        m = FocusSessionManager(clock=clock)
        m.start(SessionKind.BREAK, 5)
        clock.advance(300)
        assert m.end().quality_score == 50

    def test_explicit_focus_minutes(self, clock):
        m = FocusSessionManager(clock=clock)
        m.start()
        assert m.end(focus_minutes=60, breaks_taken=1, breaks_recommended=1).quality_score == 100


class TestPersistenceAndEvents:
    def test_session_row_written_and_finalized(self, db, clock):
        writer = WriteQueue(db)
        m = FocusSessionManager(writer=writer, clock=clock)
        m.start(SessionKind.FOCUS, 25)
        clock.advance(25 * 60)
        m.end(user_quality=80)
        assert writer.flush()

        (row,) = db.query_today_sessions(now=T0)
        assert row.kind is SessionKind.FOCUS
        assert row.planned_duration_minutes == 25
        assert row.quality_score == 80
        assert row.ended_at == T0 + 25 * 60

    def test_end_before_insert_is_applied_finalizes_once(self, db, clock, caplog):
        writer = WriteQueue(db)
        m = FocusSessionManager(writer=writer, clock=clock)
        m.start(SessionKind.FOCUS, 25)
        clock.advance(600)
        m.end(user_quality=70)
        with caplog.at_level(logging.WARNING, logger="wakey.db"):
            assert writer.flush()

        assert "already finalized" not in caplog.text
        (row,) = db.query_today_sessions(now=T0)
        assert row.quality_score == 70
        assert row.ended_at == T0 + 600
        assert not db.finalize_session(row.id, 10, 0, 0)
        assert db.get_session(row.id).quality_score == 70

    def test_start_row_visible_before_end(self, db, clock):
        writer = WriteQueue(db)
        m = FocusSessionManager(writer=writer, clock=clock)
        m.start(SessionKind.MEETING, 30)
        writer.flush()
        (row,) = db.query_today_sessions(now=T0)
        assert row.ended_at is None
        assert row.quality_score is None

    def test_events_emitted(self, clock):
        bus = EventBus()
        seen = []
        bus.subscribe(events.ALL, lambda name, data: seen.append((name, data)))
        m = FocusSessionManager(bus=bus, clock=clock)
        m.start()
        m.on_activity_change(switch(None, sample("YouTube", T0, distraction=True), T0))
        m.end()
        assert [name for name, _ in seen] == [
            events.SESSION_STARTED, events.DISTRACTION_DETECTED, events.SESSION_ENDED,
        ]
        assert seen[1][1]["app"] == "YouTube"
        assert seen[2][1]["session"].quality_score is not None

    def test_failing_subscriber_does_not_break_end(self, clock):
        bus = EventBus()

        def boom(name, data):
            raise RuntimeError("ui gone")

        bus.subscribe(events.SESSION_ENDED, boom)
        m = FocusSessionManager(bus=bus, clock=clock)
        m.start()
        m.end()
        assert m.state is SessionState.IDLE
