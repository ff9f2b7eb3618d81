"""Logging for the tabstash command line.

Records go to a rotating ``tabstash.log``. Status lines are already printed to
stdout, so the console handler only shows problems and never repeats an action
outcome. Outcomes are still written to the ``tabstash.status`` logger, which
leaves a history in the log file of what was saved, opened and removed.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from pathlib import Path

from ..events import EventBus, StatusReported
from ..models import StatusLevel

__all__ = ["STATUS_LOGGER_NAME", "setup_logging", "get_log_path", "log_status", "attach_status_log"]

STATUS_LOGGER_NAME = "tabstash.status"
_DEFAULT_LOG_DIR = Path.home() / ".tabstash" / "logs"
_LOG_FILE_NAME = "tabstash.log"
_FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_CONSOLE_FORMAT = "tabstash: %(levelname)s: %(message)s"
_QUIET_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore")
_STATUS_LOG_LEVELS = {
    StatusLevel.INFO: logging.INFO,
    StatusLevel.SUCCESS: logging.INFO,
    StatusLevel.WARNING: logging.WARNING,
    StatusLevel.ERROR: logging.ERROR,
}


class _TabstashFileHandler(logging.handlers.RotatingFileHandler):
    """Marks the file handler installed by :func:`setup_logging`."""


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Install the rotating log file and the stderr console handler on the root logger.

    Calling it again returns the active log file unless ``force`` is set.
    ``TABSTASH_LOG_DIR`` overrides the default ``~/.tabstash/logs``.
    """

    current = _installed_handler()
    if current is not None and not force:
        return Path(current.baseFilename)

    target_dir = Path(log_dir or os.environ.get("TABSTASH_LOG_DIR") or _DEFAULT_LOG_DIR).expanduser()
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / _LOG_FILE_NAME

    file_handler = _TabstashFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handlers: list[logging.Handler] = [file_handler]

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(max(level, logging.WARNING))
        console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
        console_handler.addFilter(_not_status_record)
        handlers.append(console_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    return log_path


def get_log_path() -> Path | None:
    """Return the log file installed by :func:`setup_logging`, if any."""

    handler = _installed_handler()
    return Path(handler.baseFilename) if handler is not None else None


def log_status(event: StatusReported) -> None:
    """Record an action outcome at the logging level matching its status."""

    logging.getLogger(STATUS_LOGGER_NAME).log(
        _STATUS_LOG_LEVELS[event.status.level],
        "%s: %s",
        event.action,
        event.status.message,
    )


def attach_status_log(bus: EventBus) -> EventBus:
    """Subscribe :func:`log_status` to ``bus`` and return the bus."""

    bus.subscribe(StatusReported, log_status)
    return bus


def _installed_handler() -> _TabstashFileHandler | None:
    for handler in logging.getLogger().handlers:
        if isinstance(handler, _TabstashFileHandler):
            return handler
    return None


def _not_status_record(record: logging.LogRecord) -> bool:
    return not record.name.startswith(STATUS_LOGGER_NAME)
