"""Tests for wakey.cli — read-only subcommands."""

import os
from datetime import datetime

import pytest

import wakey.config as cfg
from wakey.cli import build_parser, main
from wakey.db import Database
from wakey.models import ActivitySample, FocusSession, SessionKind


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(cfg, "DATA_DIR", tmp_path)
    monkeypatch.setattr(cfg, "DB_PATH", tmp_path / "wakey.db")
    monkeypatch.setattr(cfg, "LOG_PATH", tmp_path / "wakey.log")
    monkeypatch.setattr(cfg, "PID_PATH", tmp_path / "wakey.pid")
    return tmp_path


@pytest.fixture
def populated(data_dir):
    now = datetime.now().timestamp()
    with Database(path=cfg.DB_PATH) as db:
        sid = db.insert_sample(ActivitySample(
            app_name="Code", window_title="main.py", url=None,
            category="Development", created_at=now - 600,
        ))
        db.seal_sample(sid, 540)
        session_id = db.insert_session(FocusSession(
            kind=SessionKind.FOCUS, planned_duration_minutes=25, started_at=now - 600,
        ))
        db.finalize_session(session_id, 88, 0, 1, now - 60)
    return data_dir


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args(["today"])
        assert args.top == 5
        assert args.samples == 0

    def test_run_focus(self):
        assert build_parser().parse_args(["run", "--focus", "25"]).focus == 25


class TestCommands:
    def test_no_command_prints_help(self, capsys):
        main([])
        assert "usage" in capsys.readouterr().out

    def test_today_without_database(self, data_dir, capsys):
        main(["today"])
        assert "not created yet" in capsys.readouterr().out

    def test_today(self, populated, capsys):
        main(["today", "--samples", "5"])
        out = capsys.readouterr().out
        assert "Focus time        9m 00s" in out
        assert "Sessions done     1" in out
        assert "Avg quality       88" in out
        assert "Code" in out

    def test_sessions(self, populated, capsys):
        main(["sessions"])
        out = capsys.readouterr().out
        assert "score 88" in out
        assert "switches=1" in out

    def test_status_stopped(self, populated, capsys):
        main(["status"])
        out = capsys.readouterr().out
        assert "stopped" in out
        assert "Samples      1" in out

    def test_status_running(self, data_dir, capsys):
        cfg.PID_PATH.write_text(str(os.getpid()))
        main(["status"])
        assert f"running (pid {os.getpid()})" in capsys.readouterr().out

    def test_stop_when_not_running(self, data_dir, capsys):
        main(["stop"])
        assert "not running" in capsys.readouterr().out

    def test_logs_tail(self, data_dir, capsys):
        cfg.LOG_PATH.write_text("\n".join(f"line {i}" for i in range(50)))
        main(["logs", "-n", "3"])
        assert capsys.readouterr().out.splitlines() == ["line 47", "line 48", "line 49"]
