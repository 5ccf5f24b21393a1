"""Read-only projections over the store for the UI and export layers.

Everything here is computed on demand from the database; nothing is cached.
"""

import time
from dataclasses import dataclass, field

from wakey.db import Database
from wakey.models import ActivitySample, FocusSession


@dataclass
class DailySummary:
    focus_minutes: int
    sessions_completed: int
    distractions: int
    top_apps: list[tuple[str, int]] = field(default_factory=list)  # (app, minutes)
    average_quality: int | None = None


def daily_summary(db: Database, now: float | None = None, top: int = 5) -> DailySummary:
    sessions = db.query_today_sessions(now)
    finished = [s for s in sessions if not s.is_active]
    scores = [s.quality_score for s in finished if s.quality_score is not None]
    return DailySummary(
        focus_minutes=db.today_focus_minutes(now),
        sessions_completed=len(finished),
        distractions=db.today_distraction_count(now),
        top_apps=[(app, seconds // 60) for app, seconds in db.top_apps(top, now)],
        average_quality=round(sum(scores) / len(scores)) if scores else None,
    )


def session_samples(db: Database, session: FocusSession,
                    now: float | None = None) -> list[ActivitySample]:
    """Samples whose created_at falls inside the session, newest first.

    A session still running extends to ``now``.
    """
    end = session.ended_at
    if end is None:
        end = time.time() if now is None else now
    return db.samples_between(session.started_at, end)


def fmt_duration(seconds: float) -> str:
    h, rem = divmod(int(seconds), 3600)
    m, s = divmod(rem, 60)
    if h:
        return f"{h}h {m:02d}m"
    return f"{m}m {s:02d}s"
