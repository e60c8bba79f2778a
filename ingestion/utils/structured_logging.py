"""Structured logging for backfill runs."""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO


class StructuredLogger:
    """
    JSON-structured logger for run-level backfill events.

    Outputs one JSON object per line:
    {
        "time": "2025-01-13T14:00:00.000000Z",
        "level": "INFO",
        "message": "job_completed",
        "job": "agg1d",
        "batches": 3,
        "records": 27411
    }
    """

    def __init__(self, name: str, level: int = logging.INFO, stream: Optional[TextIO] = None):
        """Initialize structured logger."""
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

        # get_logger() may be called repeatedly for the same name
        if not any(getattr(h, '_structured', False) for h in self.logger.handlers):
            handler = logging.StreamHandler(stream or sys.stdout)
            handler.setLevel(level)
            handler.setFormatter(logging.Formatter('%(message)s'))
            handler._structured = True
            self.logger.addHandler(handler)
        self.logger.propagate = False

    def _log(self, level: str, message: str, **kwargs: Any) -> None:
        """Log structured message."""
        log_entry = {
            'time': datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%fZ'),
            'level': level,
            'message': message
        }

        log_entry.update(kwargs)

        json_str = json.dumps(log_entry, default=str)

        if level == 'ERROR':
            self.logger.error(json_str)
        elif level == 'WARN':
            self.logger.warning(json_str)
        elif level == 'DEBUG':
            self.logger.debug(json_str)
        else:
            self.logger.info(json_str)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log('INFO', message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log('ERROR', message, **kwargs)

    def warn(self, message: str, **kwargs: Any) -> None:
        self._log('WARN', message, **kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log('DEBUG', message, **kwargs)

    def bind(self, **kwargs: Any) -> 'BoundLogger':
        """Return a bound logger with context."""
        return BoundLogger(self, kwargs)


class BoundLogger:
    """Logger with bound context variables."""

    def __init__(self, logger: StructuredLogger, context: Dict[str, Any]):
        self.logger = logger
        self.context = context

    def bind(self, **kwargs: Any) -> 'BoundLogger':
        return BoundLogger(self.logger, {**self.context, **kwargs})

    def info(self, message: str, **kwargs: Any) -> None:
        self.logger.info(message, **{**self.context, **kwargs})

    def error(self, message: str, **kwargs: Any) -> None:
        self.logger.error(message, **{**self.context, **kwargs})

    def warn(self, message: str, **kwargs: Any) -> None:
        self.logger.warn(message, **{**self.context, **kwargs})

    def debug(self, message: str, **kwargs: Any) -> None:
        self.logger.debug(message, **{**self.context, **kwargs})


def get_logger(name: str, level: int = logging.INFO, stream: Optional[TextIO] = None) -> StructuredLogger:
    """
    Get or create structured logger.

    Args:
        name: Logger name
        level: Log level
        stream: Output stream (stdout by default)

    Returns:
        StructuredLogger instance
    """
    return StructuredLogger(name, level, stream)
