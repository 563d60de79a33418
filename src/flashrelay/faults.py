"""
Process-level fault boundaries.

Policy per fault class:
- uncaught exception in the main thread: log at CRITICAL, then the
  interpreter exits as usual
- uncaught exception in a worker thread: log, keep serving
- unhandled asyncio task/callback exception: log, keep serving
"""
from __future__ import annotations
import asyncio
import logging
import sys
import threading

logger = logging.getLogger("flashrelay.faults")


def _log_uncaught(exc_type, exc, tb) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc, tb)
        return
    logger.critical("UNCAUGHT EXCEPTION: %s", exc, exc_info=(exc_type, exc, tb))


def _log_thread_exception(args: threading.ExceptHookArgs) -> None:
    if args.exc_type is SystemExit:
        return
    name = args.thread.name if args.thread else "?"
    logger.error(
        "UNCAUGHT EXCEPTION in thread %s: %s", name, args.exc_value,
        exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
    )


def _log_loop_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    exc = context.get("exception")
    message = context.get("message", "unhandled exception in event loop")
    if exc is not None:
        logger.error("UNHANDLED REJECTION: %s", message, exc_info=exc)
    else:
        logger.error("UNHANDLED REJECTION: %s", message)


def install_fault_handlers() -> None:
    sys.excepthook = _log_uncaught
    threading.excepthook = _log_thread_exception


def install_loop_handler(loop: asyncio.AbstractEventLoop) -> None:
    loop.set_exception_handler(_log_loop_exception)
