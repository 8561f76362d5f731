"""Logging configuration using structlog.

Console output uses short, aligned level names so a session can be
followed line by line:
    12:30:45 INF state changed from=Idle to=Circling
    12:30:46 DBG area selected rect=(0, 0, 100, 100)
    12:30:47 WRN recognition failed reason=IMAGE_TOO_SMALL
    12:30:48 ERR illegal transition from=Idle to=Capturing
"""

import logging
import sys
from datetime import datetime
from typing import TextIO

import structlog

LEVEL_NAMES = {
    "debug": "DBG",
    "info": "INF",
    "warning": "WRN",
    "error": "ERR",
    "critical": "CRT",
}

_debug_enabled = False


def _level_to_3letter(logger, method_name, event_dict):
    """Convert log level to 3-letter abbreviation."""
    level = event_dict.get("level", method_name)
    event_dict["level"] = LEVEL_NAMES.get(level, level.upper()[:3])
    return event_dict


def _format_timestamp(logger, method_name, event_dict):
    """Add timestamp in HH:MM:SS format."""
    event_dict["timestamp"] = datetime.now().strftime("%H:%M:%S")
    return event_dict


def _render_kv_pairs(logger, method_name, event_dict):
    """Render event dict as 'timestamp LEVEL [logger] message key=value ...'."""
    timestamp = event_dict.pop("timestamp", "")
    level = event_dict.pop("level", "???")
    event = event_dict.pop("event", "")
    name = event_dict.pop("logger_name", None)
    exc_info = event_dict.pop("exc_info", None)

    kv_parts = []
    for key, value in event_dict.items():
        if key.startswith("_"):
            continue
        if isinstance(value, str) and " " in value:
            kv_parts.append(f'{key}="{value}"')
        else:
            kv_parts.append(f"{key}={value}")

    prefix = f"{timestamp} {level}"
    if name:
        prefix = f"{prefix} [{name}]"
    line = f"{prefix} {event}"
    if kv_parts:
        line = f"{line} {' '.join(kv_parts)}"
    if isinstance(exc_info, BaseException):
        line = f"{line} err={type(exc_info).__name__}: {exc_info}"
    return line


def configure(level: str = "INFO", debug: bool = False, stream: TextIO | None = None) -> None:
    """Configure structlog for console output.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        debug: If True, sets level to DEBUG.
        stream: Output stream, stderr by default so stdout stays free for results.
    """
    global _debug_enabled
    if debug:
        level = "DEBUG"
    _debug_enabled = level.upper() == "DEBUG"

    processors = [
        structlog.stdlib.add_log_level,
        _format_timestamp,
        _level_to_3letter,
        _render_kv_pairs,
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.upper(), logging.INFO)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a logger instance.

    Args:
        name: Optional logger name, rendered in brackets before the message.

    Returns:
        A structlog BoundLogger instance.
    """
    # Initial values keep the proxy lazy, so configure() still applies to
    # loggers created at import time. "logger" is taken by wrap_logger.
    if name:
        return structlog.get_logger(logger_name=name)
    return structlog.get_logger()


def is_debug_enabled() -> bool:
    """Check if debug logging is enabled."""
    return _debug_enabled
