"""SQLite activity store — schema, connection, sample and session writes, today queries.

Production hardening:
- Thread-safe via a dedicated lock (SQLite check_same_thread=False is not enough)
- WAL journal so a UI process can read while the tracker writes
- Sealed samples are never updated again (guarded in SQL, not just by callers)
- Session scores are written once (finalize only touches rows without a score)
- Local-day boundaries computed in local time, not UTC
"""

import logging
import sqlite3
import threading
import time
from datetime import datetime, timedelta
from datetime import time as dt_time
from pathlib import Path

import wakey.config as config
from wakey.models import ActivitySample, FocusSession, SessionKind

log = logging.getLogger(__name__)

SCHEMA_VERSION = 1

_VALID_TABLES = frozenset({
    "activities", "focus_sessions", "daemon_health",
})

_SCHEMA = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
INSERT OR IGNORE INTO schema_meta (key, value) VALUES ('version', '1');

CREATE TABLE IF NOT EXISTS activities (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    app_name TEXT NOT NULL,
    window_title TEXT,
    url TEXT,
    category TEXT,
    duration_seconds INTEGER NOT NULL DEFAULT 0,
    is_distraction INTEGER NOT NULL DEFAULT 0,
    sealed INTEGER NOT NULL DEFAULT 0,
    created_at REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_activities_created_at ON activities(created_at);
CREATE INDEX IF NOT EXISTS idx_activities_app_name ON activities(app_name);

CREATE TABLE IF NOT EXISTS focus_sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    type TEXT NOT NULL CHECK(type IN ('focus', 'break', 'meeting')) DEFAULT 'focus',
    duration_minutes INTEGER,
    quality_score INTEGER,
    distractions_count INTEGER NOT NULL DEFAULT 0,
    context_switches INTEGER NOT NULL DEFAULT 0,
    started_at REAL NOT NULL,
    ended_at REAL
);
CREATE INDEX IF NOT EXISTS idx_focus_sessions_started_at ON focus_sessions(started_at);

CREATE TABLE IF NOT EXISTS daemon_health (
    id INTEGER PRIMARY KEY,
    timestamp REAL NOT NULL,
    event_type TEXT,
    details TEXT
);
CREATE INDEX IF NOT EXISTS idx_health_ts ON daemon_health(timestamp);
"""

_SAMPLE_COLS = (
    "id, app_name, window_title, url, category, "
    "duration_seconds, is_distraction, created_at"
)
_SESSION_COLS = (
    "id, type, duration_minutes, quality_score, distractions_count, "
    "context_switches, started_at, ended_at"
)


def local_day_bounds(now: float | None = None) -> tuple[float, float]:
    """Return [start, end) epoch seconds of the local calendar day containing ``now``.

    Uses the local timezone, and the next midnight is computed from the date
    rather than ``start + 86400`` so DST transition days stay correct.
    """
    ts = time.time() if now is None else now
    day = datetime.fromtimestamp(ts).date()
    start = datetime.combine(day, dt_time.min)
    end = datetime.combine(day + timedelta(days=1), dt_time.min)
    return start.timestamp(), end.timestamp()


def _row_to_sample(row: tuple) -> ActivitySample:
    return ActivitySample(
        id=row[0],
        app_name=row[1],
        window_title=row[2],
        url=row[3],
        category=row[4],
        duration_seconds=row[5],
        is_distraction=bool(row[6]),
        created_at=row[7],
    )


def _row_to_session(row: tuple) -> FocusSession:
    return FocusSession(
        id=row[0],
        kind=SessionKind(row[1]),
        planned_duration_minutes=row[2],
        quality_score=row[3],
        distractions_count=row[4],
        context_switches=row[5],
        started_at=row[6],
        ended_at=row[7],
    )


class Database:
    """Thread-safe SQLite store for activity samples and focus sessions.

    Usage:
        db = Database()
        db.open()
        ...
        db.close()

    Or as a context manager:
        with Database() as db:
            ...
    """

    def __init__(self, path: Path | None = None):
        self.path = path or config.DB_PATH
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ── lifecycle ───────────────────────────────────────────────────────

    def open(self) -> None:
        """Open the database, apply pragmas, and ensure schema exists."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(
            str(self.path),
            check_same_thread=False,
            timeout=10.0,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._conn.executescript(_SCHEMA)
        self._conn.commit()
        log.info("database opened at %s (schema v%d)", self.path, SCHEMA_VERSION)

    def close(self) -> None:
        """Close the database connection safely."""
        with self._lock:
            if self._conn:
                try:
                    self._conn.execute("PRAGMA optimize")
                    self._conn.close()
                except sqlite3.Error:
                    log.exception("error during database close")
                finally:
                    self._conn = None
                    log.info("database closed")

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def _ensure_conn(self) -> sqlite3.Connection:
        """Return the active connection, raising if closed."""
        if self._conn is None:
            raise RuntimeError("database is not open — call .open() first")
        return self._conn

    def _write(self, sql: str, params: tuple) -> sqlite3.Cursor:
        conn = self._ensure_conn()
        with self._lock:
            with conn:
                return conn.execute(sql, params)

    def _read(self, sql: str, params: tuple = ()) -> list[tuple]:
        conn = self._ensure_conn()
        with self._lock:
            return conn.execute(sql, params).fetchall()

    # ── activity samples ────────────────────────────────────────────────

    def insert_sample(self, sample: ActivitySample) -> int:
        """Append a new activity row and return its id. Past rows are never touched."""
        cur = self._write(
            """INSERT INTO activities
               (app_name, window_title, url, category,
                duration_seconds, is_distraction, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                sample.app_name, sample.window_title, sample.url, sample.category,
                int(sample.duration_seconds), int(sample.is_distraction),
                sample.created_at,
            ),
        )
        return cur.lastrowid

    def update_sample_duration(self, sample_id: int, seconds: int) -> bool:
        """Overwrite the duration of an open sample.

        Idempotent. Returns False if the row does not exist or is sealed.
        """
        cur = self._write(
            "UPDATE activities SET duration_seconds = ? WHERE id = ? AND sealed = 0",
            (int(seconds), sample_id),
        )
        if cur.rowcount == 0:
            log.warning("duration update ignored for sealed or missing sample %s", sample_id)
            return False
        return True

    def seal_sample(self, sample_id: int, seconds: int) -> bool:
        """Write the final duration of a superseded sample and mark it immutable."""
        cur = self._write(
            "UPDATE activities SET duration_seconds = ?, sealed = 1 "
            "WHERE id = ? AND sealed = 0",
            (int(seconds), sample_id),
        )
        return cur.rowcount > 0

    def get_sample(self, sample_id: int) -> ActivitySample | None:
        rows = self._read(
            f"SELECT {_SAMPLE_COLS} FROM activities WHERE id = ?", (sample_id,)
        )
        return _row_to_sample(rows[0]) if rows else None

    def query_today(self, now: float | None = None) -> list[ActivitySample]:
        """Samples created during the local day containing ``now``, newest first."""
        start, end = local_day_bounds(now)
        return self.samples_between(start, end)

    def samples_between(self, start: float, end: float) -> list[ActivitySample]:
        """Samples with ``start <= created_at < end``, newest first."""
        rows = self._read(
            f"""SELECT {_SAMPLE_COLS} FROM activities
                WHERE created_at >= ? AND created_at < ?
                ORDER BY created_at DESC, id DESC""",
            (start, end),
        )
        return [_row_to_sample(r) for r in rows]

    # ── focus sessions ──────────────────────────────────────────────────

    def insert_session(self, session: FocusSession) -> int:
        cur = self._write(
            """INSERT INTO focus_sessions
               (type, duration_minutes, quality_score, distractions_count,
                context_switches, started_at, ended_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                SessionKind(session.kind).value, session.planned_duration_minutes,
                session.quality_score, session.distractions_count,
                session.context_switches, session.started_at, session.ended_at,
            ),
        )
        return cur.lastrowid

    def finalize_session(
        self,
        session_id: int,
        score: int,
        distractions: int,
        switches: int,
        ended_at: float | None = None,
    ) -> bool:
        """Record the end of a session. A session that already has a score is left as is."""
        cur = self._write(
            """UPDATE focus_sessions
               SET ended_at = ?, quality_score = ?,
                   distractions_count = ?, context_switches = ?
               WHERE id = ? AND quality_score IS NULL""",
            (
                time.time() if ended_at is None else ended_at,
                int(score), int(distractions), int(switches), session_id,
            ),
        )
        if cur.rowcount == 0:
            log.warning("session %s already finalized or missing", session_id)
            return False
        return True

    def get_session(self, session_id: int) -> FocusSession | None:
        rows = self._read(
            f"SELECT {_SESSION_COLS} FROM focus_sessions WHERE id = ?", (session_id,)
        )
        return _row_to_session(rows[0]) if rows else None

    def query_today_sessions(self, now: float | None = None) -> list[FocusSession]:
        """Sessions started during the local day containing ``now``, newest first."""
        start, end = local_day_bounds(now)
        rows = self._read(
            f"""SELECT {_SESSION_COLS} FROM focus_sessions
                WHERE started_at >= ? AND started_at < ?
                ORDER BY started_at DESC, id DESC""",
            (start, end),
        )
        return [_row_to_session(r) for r in rows]

    # ── aggregates ──────────────────────────────────────────────────────

    def today_focus_minutes(self, now: float | None = None) -> int:
        """Whole minutes spent today in windows not flagged as distractions."""
        start, end = local_day_bounds(now)
        rows = self._read(
            """SELECT COALESCE(SUM(duration_seconds), 0) FROM activities
               WHERE created_at >= ? AND created_at < ? AND is_distraction = 0""",
            (start, end),
        )
        return int(rows[0][0]) // 60

    def today_distraction_count(self, now: float | None = None) -> int:
        start, end = local_day_bounds(now)
        rows = self._read(
            """SELECT COUNT(*) FROM activities
               WHERE created_at >= ? AND created_at < ? AND is_distraction = 1""",
            (start, end),
        )
        return rows[0][0]

    def top_apps(self, limit: int = 5, now: float | None = None) -> list[tuple[str, int]]:
        """Today's apps by total time, as ``(app_name, seconds)`` pairs."""
        start, end = local_day_bounds(now)
        rows = self._read(
            """SELECT app_name, SUM(duration_seconds) AS total FROM activities
               WHERE created_at >= ? AND created_at < ?
               GROUP BY app_name
               ORDER BY total DESC, app_name
               LIMIT ?""",
            (start, end, limit),
        )
        return [(r[0], int(r[1])) for r in rows]

    # ── health ──────────────────────────────────────────────────────────

    def log_health(self, ts: float, event_type: str, details: str = "") -> None:
        """Record a daemon health event."""
        self._write(
            "INSERT INTO daemon_health (timestamp, event_type, details) VALUES (?, ?, ?)",
            (ts, event_type, details),
        )

    # ── reads (for verification / debugging) ────────────────────────────

    def count(self, table: str) -> int:
        """Return the row count for a table."""
        if table not in _VALID_TABLES:
            raise ValueError(f"unknown table: {table!r}")
        return self._read(f"SELECT COUNT(*) FROM {table}")[0][0]
