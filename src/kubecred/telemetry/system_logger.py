"""System logger for operational events.

This module provides a singleton system logger for the progress and debug
events emitted while acquiring a token set (cache hits, refresh attempts,
grant flow dispatch, authorization URLs shown to the user).

Logging strategy:
- Console (stderr): operational messages, INFO and above by default.
  stdout is reserved for the ExecCredential document read by kubectl.
- File (optional, JSONL): WARNING and above, added via
  configure_system_logger_file() when the config names a log file.

Messages are dicts with an "event" key and a human-readable "message".
"""

from __future__ import annotations

__all__ = [
    "ConsoleFormatter",
    "ISO8601Formatter",
    "configure_system_logger_file",
    "configure_verbosity",
    "get_system_logger",
]

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from kubecred.constants import APP_NAME


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output.

    Extracts 'message' or 'event' field from dict messages for cleaner stderr output.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for human-readable console output.

        Args:
            record: The log record to format.

        Returns:
            str: Formatted log message with level prefix.
        """
        if isinstance(record.msg, dict):
            msg = record.msg.get("message") or record.msg.get("event", "")
            return f"{record.levelname}: {msg}"
        return f"{record.levelname}: {record.getMessage()}"


class ISO8601Formatter(logging.Formatter):
    """Formatter with ISO 8601 timestamps (UTC) for JSONL output.

    Format: YYYY-MM-DDTHH:MM:SS.sssZ
    Example: 2025-12-04T10:48:37.123Z
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = (
            datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z")
        )

        if isinstance(record.msg, dict):
            log_data = record.msg
        else:
            log_data = {"message": record.getMessage()}

        log_entry = {"time": timestamp, "level": record.levelname, **log_data}
        return json.dumps(log_entry, default=str)


# Module-level singleton logger
_system_logger: logging.Logger | None = None
_file_handler_configured: bool = False


def get_system_logger() -> logging.Logger:
    """Get the singleton system logger instance.

    Creates the logger on first call with stderr handler only.

    Returns:
        logging.Logger: Configured system logger instance.

    Example:
        >>> from kubecred.telemetry import get_system_logger
        >>> logger = get_system_logger()
        >>> logger.debug({"event": "refresh_started", "message": "..."})
    """
    global _system_logger

    if _system_logger is not None:
        return _system_logger

    _system_logger = logging.getLogger(f"{APP_NAME}.system")
    _system_logger.setLevel(logging.INFO)
    _system_logger.propagate = False

    # Close and remove any existing handlers to avoid duplicates and resource leaks
    for handler in _system_logger.handlers:
        handler.close()
    _system_logger.handlers.clear()

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.DEBUG)
    stderr_handler.setFormatter(ConsoleFormatter())
    _system_logger.addHandler(stderr_handler)

    return _system_logger


def configure_verbosity(verbosity: int) -> None:
    """Set the console log level from a verbosity count.

    Args:
        verbosity: 0 shows progress messages, 1 or more adds debug events.
    """
    logger = get_system_logger()
    logger.setLevel(logging.DEBUG if verbosity > 0 else logging.INFO)


def configure_system_logger_file(log_path: Path) -> None:
    """Add a JSONL file handler to the system logger.

    The file handler logs WARNING, ERROR, CRITICAL only. Calling this more
    than once has no effect.

    Args:
        log_path: Path to the log file.
    """
    global _file_handler_configured

    if _file_handler_configured:
        return

    logger = get_system_logger()

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        if sys.platform != "win32":
            try:
                log_path.parent.chmod(0o700)
            except OSError:
                pass  # Permission changes might fail on some systems
    except OSError:
        pass  # stderr still works without the file

    file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    file_handler.setLevel(logging.WARNING)
    file_handler.setFormatter(ISO8601Formatter())
    logger.addHandler(file_handler)

    _file_handler_configured = True
