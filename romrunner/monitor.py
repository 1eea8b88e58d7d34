"""Logging setup for the ROM runner."""

from __future__ import annotations

import logging
import sys
import traceback
from datetime import date
from pathlib import Path
from typing import Optional

APP_LOGGER = "romrunner"

_HOOKS_INSTALLED = False


def _default_log_path() -> Path:
    from .shared_config import LOGS_DIR

    base = Path(LOGS_DIR)
    base.mkdir(parents=True, exist_ok=True)
    return base / f"runtime-{date.today().isoformat()}.log"


def setup_runtime_monitor(
    app_name: str = APP_LOGGER,
    *,
    log_file: Optional[str] = None,
    file_enabled: bool = False,
    verbose: bool = False,
) -> logging.Logger:
    """
    Configure the application logger.

    Diagnostics go to stderr tagged INFO/WARN/ERROR. When file logging is on,
    the same records are appended to `log_file` (or a dated file under the
    app log directory). Calling this again replaces the handlers.
    """
    global _HOOKS_INSTALLED
    logger = logging.getLogger(app_name)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logging.addLevelName(logging.WARNING, "WARN")

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    logger.addHandler(stream_handler)

    if log_file or file_enabled:
        log_path = Path(log_file) if log_file else _default_log_path()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(
            fmt="%(asctime)s | %(levelname)s | %(threadName)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        logger.addHandler(file_handler)
        logger.debug("Log file: %s", log_path)

    if not _HOOKS_INSTALLED:
        _install_exception_hooks(logger)
        _HOOKS_INSTALLED = True

    return logger


def _install_exception_hooks(logger: logging.Logger) -> None:
    def _sys_hook(exc_type, exc_value, exc_tb):
        if exc_type and issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_tb)
            return
        logger.critical("Unhandled exception", exc_info=(exc_type, exc_value, exc_tb))
        stream = getattr(sys, "__stderr__", None) or sys.stderr
        if stream is not None:
            traceback.print_exception(exc_type, exc_value, exc_tb, file=stream)

    sys.excepthook = _sys_hook


def monitor_action(action: str, *, logger: Optional[logging.Logger] = None) -> None:
    """Emit a pipeline stage event."""
    (logger or logging.getLogger(APP_LOGGER)).info(action)
