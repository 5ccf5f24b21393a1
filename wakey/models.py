"""Plain data types shared by the sampler, session manager and store."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


class SessionKind(str, enum.Enum):
    FOCUS = "focus"
    BREAK = "break"
    MEETING = "meeting"


class SessionState(str, enum.Enum):
    IDLE = "idle"
    ACTIVE = "active"
    PAUSED = "paused"


@dataclass(frozen=True)
class WindowInfo:
    """What a window probe reports about the foreground window."""
    process_name: str
    title: str | None = None
    url: str | None = None
    input_idle_s: float | None = None  # seconds since last keyboard/mouse input, if known


@dataclass(frozen=True)
class ActivitySample:
    """One observation of the foreground window.

    Snapshots handed around in ActivityChange events are immutable; the
    stored row's duration is tracked by the recorder that opened it.
    """
    app_name: str
    window_title: str | None
    url: str | None
    category: str | None
    created_at: float
    is_distraction: bool = False
    duration_seconds: int = 0
    id: int | None = None


@dataclass(frozen=True)
class ActivityChange:
    """Emitted by the sampler once per tick that has something to report."""
    previous: ActivitySample | None
    current: ActivitySample | None
    is_context_switch: bool
    app_changed: bool
    title_changed: bool
    timestamp: float

    @property
    def window_changed(self) -> bool:
        """True when this change supersedes the previous window (opens a new sample)."""
        if self.previous is None or self.current is None:
            return self.previous is not self.current
        return (
            self.app_changed
            or self.title_changed
            or self.previous.url != self.current.url
        )


@dataclass
class FocusSession:
    kind: SessionKind
    planned_duration_minutes: int
    started_at: float
    id: int | None = None
    quality_score: int | None = None
    distractions_count: int = 0
    context_switches: int = 0
    ended_at: float | None = None
    paused_seconds: float = 0.0
    _paused_at: float | None = field(default=None, repr=False)

    @property
    def is_active(self) -> bool:
        return self.ended_at is None

    def focus_minutes(self, now: float) -> float:
        """Minutes of unpaused time between start and ``now`` (or end)."""
        end = self.ended_at if self.ended_at is not None else now
        paused = self.paused_seconds
        if self._paused_at is not None:
            paused += end - self._paused_at
        return max(0.0, (end - self.started_at - paused) / 60)
