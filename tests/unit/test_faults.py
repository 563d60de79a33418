# tests/unit/test_faults.py

from __future__ import annotations
import asyncio
import logging
import sys
import threading
from pathlib import Path

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

import flashrelay.faults as faults  # type: ignore


def test_install_sets_hooks(monkeypatch):
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    monkeypatch.setattr(threading, "excepthook", threading.excepthook)
    faults.install_fault_handlers()
    assert sys.excepthook is faults._log_uncaught
    assert threading.excepthook is faults._log_thread_exception


def test_uncaught_main_thread_exception_is_critical(caplog):
    caplog.set_level(logging.ERROR, logger="flashrelay.faults")
    try:
        raise RuntimeError("boom")
    except RuntimeError as e:
        faults._log_uncaught(type(e), e, e.__traceback__)
    assert caplog.records[-1].levelno == logging.CRITICAL
    assert "boom" in caplog.records[-1].getMessage()


def test_thread_exception_is_logged_and_thread_continues(monkeypatch, caplog):
    caplog.set_level(logging.ERROR, logger="flashrelay.faults")
    monkeypatch.setattr(threading, "excepthook", faults._log_thread_exception)

    def worker():
        raise ValueError("worker failed")

    t = threading.Thread(target=worker, name="w1")
    t.start()
    t.join()
    assert any("thread w1" in r.getMessage() for r in caplog.records)


def test_loop_handler_logs_unhandled_task_errors(caplog):
    caplog.set_level(logging.ERROR, logger="flashrelay.faults")
    loop = asyncio.new_event_loop()
    try:
        faults.install_loop_handler(loop)
        loop.call_exception_handler({"message": "Task exception was never retrieved", "exception": OSError("gone")})
    finally:
        loop.close()
    assert any("UNHANDLED REJECTION" in r.getMessage() for r in caplog.records)
