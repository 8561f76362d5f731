"""Telemetry sink that records lifecycle events in the log."""

from typing import Any

from . import log

logger = log.get_logger("telemetry")


class LoggingTelemetry:
    """Writes every event as a debug log line and counts events by name."""

    def __init__(self):
        self.counts: dict[str, int] = {}

    def log_event(self, name: str, **params: Any) -> None:
        self.counts[name] = self.counts.get(name, 0) + 1
        logger.debug(name, **params)
