"""wakey CLI — run the tracker, stop it, and inspect today's data."""

import argparse
import os
import signal
import sqlite3
import time
from datetime import datetime

import wakey.config as config
from wakey.db import Database
from wakey.stats import daily_summary, fmt_duration


def _pid() -> int | None:
    if config.PID_PATH.exists():
        try:
            return int(config.PID_PATH.read_text().strip())
        except ValueError:
            pass
    return None


def _is_running() -> bool:
    pid = _pid()
    if pid is None:
        return False
    try:
        os.kill(pid, 0)
    except OSError:
        return False
    return True


def _fmt_clock(ts: float | None) -> str:
    return datetime.fromtimestamp(ts).strftime("%H:%M") if ts else "--:--"


def _open_db() -> Database | None:
    if not config.DB_PATH.exists():
        print("Database not created yet. Run: wakey run")
        return None
    db = Database(config.DB_PATH)
    db.open()
    return db


# ── Subcommands ──────────────────────────────────────────────────────────


def cmd_run(args: argparse.Namespace) -> None:
    if _is_running():
        print(f"wakey is already running (pid {_pid()})")
        return
    from wakey.daemon import Daemon
    Daemon(focus_minutes=args.focus).start()


def cmd_stop(args: argparse.Namespace) -> None:
    if not _is_running():
        print("wakey is not running")
        return
    os.kill(_pid(), signal.SIGTERM)
    for _ in range(20):
        if not _is_running():
            print("wakey stopped")
            return
        time.sleep(0.25)
    print("wakey did not stop yet — check: wakey logs")


def cmd_status(args: argparse.Namespace) -> None:
    running = _is_running()
    pid = _pid()

    print("\n  wakey status")
    print("  ──────────────────\n")
    print(f"  Tracker      {'running' if running else 'stopped'}" +
          (f" (pid {pid})" if running and pid else ""))
    print(f"  Data dir     {config.DATA_DIR}")

    if config.DB_PATH.exists():
        size_mb = config.DB_PATH.stat().st_size / (1024 * 1024)
        print(f"  Database     {size_mb:.1f} MB")
        try:
            with Database(config.DB_PATH) as db:
                print(f"  Samples      {db.count('activities'):,}")
                print(f"  Sessions     {db.count('focus_sessions'):,}")
        except sqlite3.Error:
            pass
    else:
        print("  Database     not created yet")

    print()


def cmd_today(args: argparse.Namespace) -> None:
    db = _open_db()
    if db is None:
        return
    try:
        summary = daily_summary(db, top=args.top)
        samples = db.query_today()
    finally:
        db.close()

    print(f"\n  Today ({datetime.now():%Y-%m-%d})")
    print("  ──────────────────\n")
    print(f"  Focus time        {fmt_duration(summary.focus_minutes * 60)}")
    print(f"  Sessions done     {summary.sessions_completed}")
    print(f"  Distractions      {summary.distractions}")
    if summary.average_quality is not None:
        print(f"  Avg quality       {summary.average_quality}")
    if summary.top_apps:
        print("\n  Top apps")
        for app, minutes in summary.top_apps:
            print(f"    {app:<28} {minutes:>4}m")
    if args.samples and samples:
        print("\n  Recent windows")
        for s in samples[: args.samples]:
            flag = "!" if s.is_distraction else " "
            print(f"  {flag} {_fmt_clock(s.created_at)}  {s.app_name:<20} "
                  f"{s.category or '':<14} {fmt_duration(s.duration_seconds)}")
    print()


def cmd_sessions(args: argparse.Namespace) -> None:
    db = _open_db()
    if db is None:
        return
    try:
        sessions = db.query_today_sessions()
    finally:
        db.close()

    if not sessions:
        print("No sessions today.")
        return
    for s in sessions:
        score = "active" if s.ended_at is None else f"score {s.quality_score}"
        print(f"  {_fmt_clock(s.started_at)}-{_fmt_clock(s.ended_at)}  "
              f"{s.kind.value:<8} {s.planned_duration_minutes:>3}m planned  "
              f"{score:<10} distractions={s.distractions_count} "
              f"switches={s.context_switches}")


def cmd_logs(args: argparse.Namespace) -> None:
    if not config.LOG_PATH.exists():
        print(f"No log file found at {config.LOG_PATH}")
        return
    lines = config.LOG_PATH.read_text().splitlines()
    for line in lines[-args.lines:]:
        print(line)


# ── Main ─────────────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wakey",
        description="activity and focus tracker",
    )
    sub = parser.add_subparsers(dest="command")

    p_run = sub.add_parser("run", help="run the tracker in the foreground")
    p_run.add_argument("--focus", type=int, metavar="MINUTES",
                       help="start a focus session of this length right away")

    sub.add_parser("stop", help="stop a running tracker")
    sub.add_parser("status", help="show tracker status and stats")

    p_today = sub.add_parser("today", help="summarise today's activity")
    p_today.add_argument("--top", type=int, default=5,
                         help="number of top apps to show (default: 5)")
    p_today.add_argument("--samples", type=int, default=0, metavar="N",
                         help="also list the N most recent windows")

    sub.add_parser("sessions", help="list today's focus sessions")

    p_logs = sub.add_parser("logs", help="show recent log output")
    p_logs.add_argument("-n", "--lines", type=int, default=30,
                        help="number of lines to show (default: 30)")
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    commands = {
        "run": cmd_run,
        "stop": cmd_stop,
        "status": cmd_status,
        "today": cmd_today,
        "sessions": cmd_sessions,
        "logs": cmd_logs,
    }

    if args.command in commands:
        commands[args.command](args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
