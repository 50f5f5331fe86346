"""Logging utilities for the SupportDesk client."""

from __future__ import annotations

import functools
import inspect
import logging
import os
import platform
import sys
import threading
import time
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Optional

from .config import CONFIG_DIR_NAME, get_user_config_dir

LOG_FILENAME = "supportdesk.log"
REDACTED = "<redacted>"

_EXCEPTION_HOOK_INSTALLED = False
_HOOK_LOCK = threading.Lock()


def setup_logging(
    app_name: str = CONFIG_DIR_NAME,
    *,
    level: int = logging.INFO,
    log_filename: Optional[str] = None,
) -> logging.Logger:
    """Attach console and file handlers to the root logger.

    Loggers created with ``logging.getLogger(__name__)`` throughout the
    package inherit both handlers. Calling this twice is harmless: once the
    root logger has handlers the existing configuration is kept.
    """

    root_logger = logging.getLogger()
    if root_logger.handlers:
        return logging.getLogger(app_name)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    log_path = get_user_config_dir(app_name) / (log_filename or LOG_FILENAME)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=[console_handler, file_handler])

    logger = logging.getLogger(app_name)
    logger.log_path = log_path  # type: ignore[attr-defined]
    logger.info(
        "Logging initialised",
        extra={"log_path": str(log_path), "level": logging.getLevelName(level)},
    )
    logger.debug(
        "Runtime environment",
        extra={
            "python": platform.python_version(),
            "platform": platform.platform(),
            "cwd": os.getcwd(),
        },
    )
    return logger


def get_log_file_path(logger: logging.Logger) -> Optional[Path]:
    """Return the log file used by ``logger`` or the root logger."""

    log_path = getattr(logger, "log_path", None)
    if isinstance(log_path, Path):
        return log_path
    for candidate in (logger, logging.getLogger()):
        for handler in candidate.handlers:
            filename = getattr(handler, "baseFilename", None)
            if filename:
                return Path(filename)
    return None


def install_exception_hook(logger: logging.Logger) -> None:
    """Log unhandled exceptions from the main thread and worker threads."""

    global _EXCEPTION_HOOK_INSTALLED
    with _HOOK_LOCK:
        if _EXCEPTION_HOOK_INSTALLED:
            return
        _EXCEPTION_HOOK_INSTALLED = True

    default_hook = sys.excepthook
    default_thread_hook = threading.excepthook

    def handle_exception(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            default_hook(exc_type, exc_value, exc_traceback)
            return
        logger.critical(
            "Unhandled exception", exc_info=(exc_type, exc_value, exc_traceback)
        )
        _show_crash_message(logger, exc_value)
        default_hook(exc_type, exc_value, exc_traceback)

    def handle_thread_exception(args):
        if issubclass(args.exc_type, KeyboardInterrupt):
            default_thread_hook(args)
            return
        thread_name = args.thread.name if args.thread is not None else "<unknown>"
        logger.critical(
            "Unhandled exception in thread %s",
            thread_name,
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
        )
        default_thread_hook(args)

    sys.excepthook = handle_exception
    threading.excepthook = handle_thread_exception


def _show_crash_message(logger: logging.Logger, exc: BaseException | None) -> None:
    """Tell the user where the log lives when a Qt application is running."""

    try:
        from PyQt6.QtWidgets import QApplication, QMessageBox
    except ImportError as error:  # pragma: no cover - headless environment
        logger.error("Unable to import PyQt6 for crash dialog: %s", error)
        return

    if QApplication.instance() is None:
        return
    if threading.current_thread() is not threading.main_thread():
        return
    log_path = get_log_file_path(logger)
    details = f"{exc}" if exc is not None else "Unknown error"
    if log_path is not None:
        details += f"\n\nSee the log for details:\n{log_path}"
    QMessageBox.critical(None, "SupportDesk error", details)


def _safe_repr(value: Any, *, max_length: int = 200) -> str:
    try:
        result = repr(value)
    except Exception:
        result = object.__repr__(value)
    if len(result) > max_length:
        return result[: max_length - 1] + "…"
    return result


def _format_arguments(
    signature: inspect.Signature,
    redact: frozenset[str],
    *args: Any,
    **kwargs: Any,
) -> str:
    try:
        bound = signature.bind_partial(*args, **kwargs)
    except TypeError:
        return "unavailable"
    arguments = []
    for name, value in bound.arguments.items():
        if name in {"self", "cls"}:
            continue
        shown = REDACTED if name in redact else _safe_repr(value)
        arguments.append(f"{name}={shown}")
    return ", ".join(arguments)


def log_call(
    _func: Optional[Any] = None,
    *,
    logger: logging.Logger | str | None = None,
    level: int = logging.DEBUG,
    redact: Iterable[str] = (),
    include_result: bool = False,
    exc_level: int = logging.WARNING,
) -> Any:
    """Decorator that logs entry, exit and failures of ``_func``.

    Arguments named in ``redact`` are logged as ``<redacted>`` so message
    bodies and credentials stay out of the log file::

        @log_call(logger=logger, redact=("text",))
        def send_message(self, text, session_id=None):
            ...
    """

    hidden = frozenset(redact)

    def decorator(func: Any) -> Any:
        signature = inspect.signature(func)
        identifier = getattr(func, "__qualname__", getattr(func, "__name__", "<call>"))

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if isinstance(logger, logging.Logger):
                resolved = logger
            else:
                resolved = logging.getLogger(logger or func.__module__)
            if resolved.isEnabledFor(level):
                arguments = _format_arguments(signature, hidden, *args, **kwargs)
                resolved.log(level, "Calling %s(%s)", identifier, arguments)
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                resolved.log(
                    exc_level,
                    "%s failed after %.3fs: %s",
                    identifier,
                    time.perf_counter() - start,
                    exc,
                )
                raise
            elapsed = time.perf_counter() - start
            if include_result:
                resolved.log(
                    level, "%s returned %s (%.3fs)", identifier, _safe_repr(result), elapsed
                )
            else:
                resolved.log(level, "%s completed in %.3fs", identifier, elapsed)
            return result

        return wrapper

    if callable(_func):
        return decorator(_func)
    return decorator


__all__ = [
    "get_log_file_path",
    "install_exception_hook",
    "log_call",
    "setup_logging",
]
