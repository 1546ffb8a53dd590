"""Logging for kubecred."""

from kubecred.telemetry.system_logger import (
    ConsoleFormatter,
    ISO8601Formatter,
    configure_system_logger_file,
    configure_verbosity,
    get_system_logger,
)

__all__ = [
    "ConsoleFormatter",
    "ISO8601Formatter",
    "configure_system_logger_file",
    "configure_verbosity",
    "get_system_logger",
]
