"""Root logger setup for the vtp CLI and server."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING

from vtp.logging.context import JobContextFilter
from vtp.logging.handlers import JSONFormatter

if TYPE_CHECKING:
    from vtp.config.models import LoggingConfig

TEXT_FORMAT = "%(asctime)s - %(job_tag)s%(name)s - %(levelname)s - %(message)s"
TEXT_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"

# Per-request access lines are noise next to job logs unless debugging
_CHATTY_LOGGERS = ("aiohttp.access",)


def _formatter(log_format: str) -> logging.Formatter:
    if log_format.lower() == "json":
        return JSONFormatter()
    return logging.Formatter(TEXT_FORMAT, datefmt=TEXT_DATEFMT)


def _open_log_file(config: LoggingConfig) -> logging.Handler | None:
    """Rotating handler for config.file, or None if it cannot be opened."""
    if config.file is None:
        return None
    path = config.file.expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return RotatingFileHandler(
            path,
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
    except OSError as e:
        print(f"vtp: cannot open log file {path} ({e}); using stderr", file=sys.stderr)
        return None


def configure_logging(config: LoggingConfig) -> None:
    """Replace the root logger's handlers according to config.

    Logs go to the rotating file when one is configured, and to stderr when
    include_stderr is set or the file could not be opened. Every handler
    carries the job context filter, so text lines get the job tag and JSON
    lines get video_id and slot.
    """
    level = logging.getLevelName(config.level.upper())
    formatter = _formatter(config.format)
    job_filter = JobContextFilter()

    handlers: list[logging.Handler] = []
    file_handler = _open_log_file(config)
    if file_handler is not None:
        handlers.append(file_handler)
    if config.include_stderr or file_handler is None:
        handlers.append(logging.StreamHandler(sys.stderr))

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(job_filter)
        root.addHandler(handler)

    access_level = logging.DEBUG if level == logging.DEBUG else logging.WARNING
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(access_level)
