"""Structured logging configuration for the server.

This module provides a structured logging setup using Python's standard
logging module: JSON lines for the persistent file sinks and a compact
single-line format for the console.

Sinks are fixed for the lifetime of the process:

- ``error.log``: error records only
- ``combined.log``: every record at or above the configured level
- console (stdout)

A file sink that cannot be opened or written drops the record and warns
on stderr once; it never raises into request handling.
"""

import json
import logging
import logging.config
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from bastion.app.core.config import Settings

ERROR_LOG_FILENAME = "error.log"
COMBINED_LOG_FILENAME = "combined.log"

# Attributes every LogRecord carries; anything else was passed via extra=
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime"}


def format_timestamp(created: float) -> str:
    """Render a record creation time as ISO-8601 UTC with milliseconds."""
    moment = datetime.fromtimestamp(created, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _record_extra(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Each record becomes one JSON object per line::

        {"level": "info", "message": "...", "timestamp": "2026-01-01T00:00:00.000Z"}

    Fields passed through ``extra=`` are nested under ``"extra"`` and
    exception tracebacks under ``"exception"``.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON string representation of the log record
        """
        record.message = record.getMessage()

        log_data: Dict[str, Any] = {
            "level": record.levelname.lower(),
            "message": record.message,
            "timestamp": format_timestamp(record.created),
        }

        extra = _record_extra(record)
        if extra:
            log_data["extra"] = extra

        if record.exc_info and record.exc_info != (None, None, None):
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Single-line console format: ``info: message {"timestamp": ...}``."""

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        meta: Dict[str, Any] = {"timestamp": format_timestamp(record.created)}
        meta.update(_record_extra(record))
        line = f"{record.levelname.lower()}: {record.message} {json.dumps(meta, default=str, ensure_ascii=False)}"
        if record.exc_info and record.exc_info != (None, None, None):
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class SafeFileHandler(logging.FileHandler):
    """Append-only file sink that drops records it cannot write.

    The first failure is reported on stderr; later ones are only counted
    in ``dropped`` until the sink writes successfully again.
    """

    def __init__(self, filename: str, mode: str = "a", encoding: Optional[str] = "utf-8", delay: bool = True):
        super().__init__(filename, mode=mode, encoding=encoding, delay=delay)
        self.dropped = 0
        self._failing = False

    def emit(self, record: logging.LogRecord) -> None:
        dropped_before = self.dropped
        # FileHandler opens a delayed stream outside its own try block
        try:
            super().emit(record)
        except Exception:
            self.handleError(record)
            return
        if self.dropped == dropped_before:
            self._failing = False

    def handleError(self, record: logging.LogRecord) -> None:
        self.dropped += 1
        if self._failing:
            return
        self._failing = True
        _, exc, _ = sys.exc_info()
        try:
            sys.stderr.write(
                f"[logging] sink {self.baseFilename} unavailable, dropping records: {exc}\n"
            )
        except Exception:
            pass


def ensure_log_directory(log_dir: str) -> Path:
    """Create the log directory if it does not exist yet.

    Safe to call repeatedly.
    """
    path = Path(log_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_logging_config(settings: Settings) -> Dict[str, Any]:
    """Get logging configuration dictionary.

    Returns:
        Logging configuration dict compatible with logging.config.dictConfig
    """
    log_level = settings.log_level.upper()
    log_dir = Path(settings.log_dir)

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "bastion.app.core.logging.JSONFormatter",
            },
            "console": {
                "()": "bastion.app.core.logging.ConsoleFormatter",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "console",
                "stream": sys.stdout,
            },
            "combined_file": {
                "class": "bastion.app.core.logging.SafeFileHandler",
                "level": log_level,
                "formatter": "json",
                "filename": str(log_dir / COMBINED_LOG_FILENAME),
            },
            "error_file": {
                "class": "bastion.app.core.logging.SafeFileHandler",
                "level": "ERROR",
                "formatter": "json",
                "filename": str(log_dir / ERROR_LOG_FILENAME),
            },
        },
        "loggers": {
            settings.logger_name: {
                "level": log_level,
                "handlers": ["console", "combined_file", "error_file"],
                "propagate": False,
            },
            "uvicorn": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False,
            },
            "uvicorn.access": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }


def setup_logging(settings: Settings) -> logging.Logger:
    """Configure the sinks and return the application logger.

    The log directory is created first so the file sinks can open lazily.
    Calling this again replaces the previous handlers.
    """
    ensure_log_directory(settings.log_dir)
    logging.config.dictConfig(get_logging_config(settings))
    return logging.getLogger(settings.logger_name)


def get_logger(name: str = "bastion") -> logging.Logger:
    """Get a logger instance with the specified name.

    Args:
        name: Logger name, defaults to "bastion"

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
