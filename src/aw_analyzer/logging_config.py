"""Structured logging configuration for the range analyzer.

This module provides:
- Namespace-based loggers (awa.<namespace>) shared by the HTTP server,
  the one-shot CLI and the window scheduler
- Plain text or JSON-lines console output (AWA_LOG_FORMAT=text|json)
- Runtime log level adjustment
"""

import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


# Log namespaces for filtering
NAMESPACES = {
    'api': 'API Routes',
    'analysis': 'Range Analysis',
    'scheduler': 'Window Scheduler',
    'events': 'ActivityWatch Events',
    'git': 'Git Operations',
    'llm': 'Generation Service',
    'calendar': 'Google Calendar',
}

LOGGER_PREFIX = 'awa'

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class LogEntry:
    """One log line in JSON output."""
    timestamp: str
    level: str
    namespace: str
    message: str

    def to_dict(self) -> dict:
        return {
            'timestamp': self.timestamp,
            'level': self.level,
            'namespace': self.namespace,
            'message': self.message,
        }


def namespace_of(logger_name: str) -> str:
    """Namespace of an awa.<namespace> logger ('general' for any other logger)."""
    prefix = f'{LOGGER_PREFIX}.'
    if logger_name.startswith(prefix):
        return logger_name[len(prefix):].split('.', 1)[0] or 'general'
    return 'general'


class JsonLineFormatter(logging.Formatter):
    """Render records as single-line JSON objects, for log shippers tailing the scheduler."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        entry = LogEntry(
            timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            level=record.levelname,
            namespace=namespace_of(record.name),
            message=message,
        )
        return json.dumps(entry.to_dict(), ensure_ascii=False)


def _get_log_level_from_env() -> int:
    """Get log level from environment variable."""
    env_level = os.environ.get('AWA_LOG_LEVEL', 'INFO').upper()
    return getattr(logging, env_level, logging.INFO)


def _build_formatter(log_format: Optional[str]) -> logging.Formatter:
    if log_format is not None:
        return logging.Formatter(log_format)
    if os.environ.get('AWA_LOG_FORMAT', 'text').strip().lower() == 'json':
        return JsonLineFormatter()
    return logging.Formatter(TEXT_FORMAT)


def setup_logging(
    level: Optional[int] = None,
    log_format: Optional[str] = None,
) -> None:
    """
    Configure console logging for the application.

    Args:
        level: Logging level (default: from AWA_LOG_LEVEL env var or INFO)
        log_format: Custom format string (default: AWA_LOG_FORMAT, text
                    'timestamp - name - level - message' or json lines)
    """
    log_level = level if level is not None else _get_log_level_from_env()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(_build_formatter(log_format))
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    for noisy in ("uvicorn.access", "httpx", "httpcore", "google.auth"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    for namespace in NAMESPACES:
        logging.getLogger(f'{LOGGER_PREFIX}.{namespace}').setLevel(log_level)


def set_log_level(level: str | int):
    """
    Set log level at runtime.

    Args:
        level: Level name ('DEBUG', 'INFO', etc.) or logging constant
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    logging.getLogger().setLevel(level)
    for namespace in NAMESPACES:
        logging.getLogger(f'{LOGGER_PREFIX}.{namespace}').setLevel(level)
    for handler in logging.getLogger().handlers:
        handler.setLevel(level)


def get_logger(name: str, namespace: Optional[str] = None) -> logging.Logger:
    """
    Get a logger for a module.

    Args:
        name: Logger name (typically __name__)
        namespace: Optional namespace (analysis, scheduler, git, ...)

    Returns:
        awa.<namespace> when the namespace is known, else the module logger
    """
    if namespace and namespace in NAMESPACES:
        return logging.getLogger(f'{LOGGER_PREFIX}.{namespace}')
    return logging.getLogger(name)
