"""Structured Logger with JSON Formatting.

Provides structured logging with JSON output for machine-readable logs and
a correlation-ID context variable that ties log lines to a request.
"""

import contextvars
import json
import logging
import os
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import uuid4

# Async-safe, propagates through awaited calls and spawned tasks
correlation_id: contextvars.ContextVar[str] = contextvars.ContextVar(
    'request_id', default='no-request-id'
)

# Context fields copied from the log record when present
CONTEXT_FIELDS = (
    'user_id',
    'user_role',
    'client_id',
    'session_id',
    'event_name',
    'event_key',
    'outcome',
    'backend',
    'duration_ms',
    'endpoint',
    'status_code',
)

SENSITIVE_KEYS = ('token', 'password', 'api_key', 'apikey', 'authorization')


def get_correlation_id() -> str:
    """Return the current request's correlation ID ('no-request-id' if unset)."""
    return correlation_id.get()


def set_correlation_id(request_id: str) -> None:
    """Set the correlation ID for the current context."""
    correlation_id.set(request_id)


def generate_correlation_id() -> str:
    """Generate a new correlation ID, set it in context and return it."""
    request_id = str(uuid4())
    set_correlation_id(request_id)
    return request_id


def _strip_sensitive(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if k.lower() not in SENSITIVE_KEYS}


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON-formatted log string
        """
        log_data = {
            'timestamp': datetime.utcnow().isoformat() + 'Z',
            'level': record.levelname,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'request_id': get_correlation_id(),
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'message': str(record.exc_info[1]) if record.exc_info[1] else None,
            }

        return json.dumps(log_data, default=str)


class StructuredLogger:
    """Structured logger with JSON formatting.

    Usage:
        logger = StructuredLogger(__name__)
        logger.info("Event inserted", event_name="page_view", session_id=sid)
        logger.error("Insert failed", exc_info=True, event_name="filter_used")
    """

    def __init__(self, name: str):
        """Initialize structured logger.

        Args:
            name: Logger name (typically module name)
        """
        self.logger = logging.getLogger(name)

        log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
        self.logger.setLevel(getattr(logging, log_level, logging.INFO))

        # Only attach our handler once per named logger
        if not any(isinstance(h.formatter, JSONFormatter) for h in self.logger.handlers):
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter())
            self.logger.addHandler(handler)

    def info(self, message: str, **extra: Any) -> None:
        """Log INFO level message.

        Args:
            message: Log message
            **extra: Additional context (event_name, session_id, etc.)
        """
        self.logger.info(message, extra=_strip_sensitive(extra))

    def warning(self, message: str, exc_info: bool = False, **extra: Any) -> None:
        """Log WARNING level message.

        Args:
            message: Log message
            exc_info: Include exception traceback
            **extra: Additional context
        """
        self.logger.warning(message, exc_info=exc_info, extra=_strip_sensitive(extra))

    def error(self, message: str, exc_info: bool = False, **extra: Any) -> None:
        """Log ERROR level message.

        Args:
            message: Log message
            exc_info: Include exception traceback
            **extra: Additional context
        """
        self.logger.error(message, exc_info=exc_info, extra=_strip_sensitive(extra))

    def debug(self, message: str, **extra: Any) -> None:
        self.logger.debug(message, extra=_strip_sensitive(extra))


def log_request(
    endpoint: str, method: str, status_code: int, duration_ms: float, user_id: str | None = None
) -> None:
    """Log API request with performance metrics.

    Args:
        endpoint: API endpoint path
        method: HTTP method
        status_code: HTTP status code
        duration_ms: Request duration in milliseconds
        user_id: Optional user identifier
    """
    log_data = {
        'timestamp': datetime.utcnow().isoformat() + 'Z',
        'level': 'INFO',
        'message': f'{method} {endpoint}',
        'request_id': get_correlation_id(),
        'endpoint': endpoint,
        'method': method,
        'status_code': status_code,
        'duration_ms': duration_ms,
    }

    if user_id:
        log_data['user_id'] = user_id

    print(json.dumps(log_data))


def log_event(event: str, level: str = 'INFO', context: Optional[Dict[str, Any]] = None) -> None:
    """Event-based logging without creating a logger instance.

    Sensitive keys (tokens, api keys) are dropped from the context.

    Example:
        log_event("analytics.store_selected", context={"backend": "rest"})
    """
    log_entry = {
        'timestamp': datetime.utcnow().isoformat() + 'Z',
        'level': level.upper(),
        'event': event,
        'correlation_id': get_correlation_id(),
        **_strip_sensitive(context or {}),
    }

    print(json.dumps(log_entry, default=str))
