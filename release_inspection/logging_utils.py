"""Structured logging utilities for release inspection.

This module provides a structured logger that outputs JSON-formatted logs
for production environments and human-readable logs for development.
Every entry is an event name plus keyword fields, e.g.::

    logger.info("image_pulled", pull_spec=spec, duration_s=1.2)
"""
import os
import sys
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional


LEVELS = {'DEBUG': 0, 'INFO': 1, 'WARN': 2, 'ERROR': 3}


class StructuredLogger:
    """Structured logger that outputs JSON in production, readable text in dev."""

    def __init__(self, level: str = 'INFO', fields: Optional[Dict[str, Any]] = None, parent: Optional['StructuredLogger'] = None):
        """Initialize logger.

        Args:
            level: Minimum log level (DEBUG, INFO, WARN, ERROR)
            fields: Fixed fields added to every entry
            parent: Logger whose level this logger follows (set by bind())
        """
        self.level = _normalize_level(level)
        self.fields: Dict[str, Any] = dict(fields or {})
        self._parent = parent

    def _min_level(self) -> str:
        if self._parent is not None:
            return self._parent._min_level()
        return self.level

    def _should_log(self, level: str) -> bool:
        """Check if message at given level should be logged."""
        level_num = LEVELS.get(level.upper(), 1)
        min_level_num = LEVELS.get(self._min_level(), 1)
        return level_num >= min_level_num

    def set_level(self, level: str) -> None:
        self.level = _normalize_level(level)

    def bind(self, **fields) -> 'StructuredLogger':
        """Return a child logger that adds `fields` to every entry."""
        return StructuredLogger(fields={**self.fields, **fields}, parent=self)

    def _log(self, level: str, message: str, **kwargs) -> None:
        """Internal logging method.

        Args:
            level: Log level (DEBUG, INFO, WARN, ERROR)
            message: Event name
            **kwargs: Additional structured fields
        """
        if not self._should_log(level):
            return

        fields = {**self.fields, **kwargs}
        entry = {
            'ts': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': level.upper(),
            'msg': message,
            **fields
        }

        # Output to stderr for WARN/ERROR, stdout for DEBUG/INFO
        output_stream = sys.stderr if level.upper() in ('WARN', 'ERROR') else sys.stdout

        if output_stream.isatty():
            level_color = {
                'DEBUG': '\033[36m',  # Cyan
                'INFO': '\033[32m',   # Green
                'WARN': '\033[33m',   # Yellow
                'ERROR': '\033[31m',  # Red
            }.get(level.upper(), '')
            reset = '\033[0m'

            parts = [f"{level_color}[{level.upper()}]{reset} {message}"]
            if fields:
                kv_parts = []
                for k, v in fields.items():
                    if isinstance(v, (dict, list)):
                        v = json.dumps(v, default=str)[:100]  # Truncate long values
                    kv_parts.append(f"{k}={v}")
                if kv_parts:
                    parts.append(" | " + " ".join(kv_parts))

            print(" ".join(parts), file=output_stream)
        else:
            # JSON format for production (parseable by log aggregators)
            print(json.dumps(entry, default=str), file=output_stream)

    def debug(self, message: str, **kwargs) -> None:
        """Log debug message."""
        self._log('DEBUG', message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        """Log info message."""
        self._log('INFO', message, **kwargs)

    def warn(self, message: str, **kwargs) -> None:
        """Log warning message."""
        self._log('WARN', message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        """Log error message."""
        self._log('ERROR', message, **kwargs)


def _normalize_level(level: str) -> str:
    level = (level or 'INFO').strip().upper()
    if level == 'WARNING':
        level = 'WARN'
    return level if level in LEVELS else 'INFO'


# Global logger instance
# Log level can be set via LOG_LEVEL environment variable
_log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
logger = StructuredLogger(level=_log_level)
