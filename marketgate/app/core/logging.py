"""Structured logging configuration for the gateway.

Uses the standard logging module, configured through ``dictConfig``, with an
optional JSON formatter for log aggregation. Request-scoped fields such as the
request id and client id are pulled from a context variable so every log line
emitted while serving a request carries them.
"""

import json
import logging
import logging.config
import sys
import traceback
from contextvars import ContextVar
from datetime import datetime
from typing import Any, Dict, Optional

from marketgate.app.core.config import settings

# Request-scoped log context, set by the request id middleware and the proxy route
_log_context: ContextVar[Dict[str, Any]] = ContextVar("marketgate_log_context", default={})

_RESERVED_ATTRS = frozenset((
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "message",
    "asctime", "timestamp", "logger", "level", "source", "taskName",
))


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Emits one JSON object per record with the standard fields, any populated
    context fields, and remaining ``extra=`` values nested under ``extra``.
    """

    CONTEXT_FIELDS = [
        "request_id",       # X-Request-ID of the inbound request
        "client_id",        # Rate limit identity (forwarded IP or "default")
        "endpoint",         # Upstream path fragment requested
        "upstream_status",  # HTTP status returned by CoinGlass
        "status_code",      # HTTP status returned to the caller
        "duration_ms",
    ]

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()

        log_data: Dict[str, Any] = {
            "timestamp": datetime.now().astimezone().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
            "source": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        for field in self.CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key in self.CONTEXT_FIELDS:
                continue
            log_data.setdefault("extra", {})[key] = value

        if record.exc_info and record.exc_info != (None, None, None):
            log_data["exception"] = traceback.format_exception(*record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ContextFilter(logging.Filter):
    """Stamp request context fields onto every record.

    Values passed explicitly through ``extra=`` win over the ambient context.
    """

    CONTEXT_DEFAULTS = {field: None for field in JSONFormatter.CONTEXT_FIELDS}

    def filter(self, record: logging.LogRecord) -> bool:
        ambient = _log_context.get()
        for field, default in self.CONTEXT_DEFAULTS.items():
            if not hasattr(record, field):
                setattr(record, field, ambient.get(field, default))
        return True


def bind_log_context(**fields: Any) -> None:
    """Merge fields into the log context of the current request."""
    merged = dict(_log_context.get())
    merged.update({k: v for k, v in fields.items() if v is not None})
    _log_context.set(merged)


def clear_log_context() -> None:
    _log_context.set({})


def get_logging_config() -> Dict[str, Any]:
    """Build a ``logging.config.dictConfig`` compatible dictionary."""
    log_format = settings.log_format.lower()
    log_level = settings.log_level.upper()

    formatters: Dict[str, Dict[str, Any]] = {
        "standard": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        },
        "structured": {
            "format": (
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
                " - request_id=%(request_id)s - client_id=%(client_id)s - endpoint=%(endpoint)s"
            )
        },
    }

    if log_format == "json":
        formatters["json"] = {"()": "marketgate.app.core.logging.JSONFormatter"}
        default_formatter = "json"
    else:
        default_formatter = "structured" if log_format == "structured" else "standard"

    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": default_formatter,
            "stream": sys.stdout,
            "filters": ["context"],
        },
    }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "filters": {
            "context": {"()": "marketgate.app.core.logging.ContextFilter"},
        },
        "handlers": handlers,
        "loggers": {
            "marketgate": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False,
            },
            "uvicorn": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False,
            },
        },
        "root": {
            "level": log_level,
            "handlers": ["console"],
        },
    }


def setup_logging() -> None:
    """Configure logging for the application."""
    logging.config.dictConfig(get_logging_config())

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str = "marketgate") -> logging.Logger:
    return logging.getLogger(name)


def get_log_context(
    request_id: Optional[str] = None,
    client_id: Optional[str] = None,
    endpoint: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Create a dictionary for the ``extra=`` parameter of logging calls.

    Example:
        >>> logger.warning(
        ...     "Upstream error",
        ...     extra=get_log_context(endpoint="/api/futures/coins-markets", upstream_status=502),
        ... )
    """
    context = {
        "request_id": request_id,
        "client_id": client_id,
        "endpoint": endpoint,
    }
    context.update(extra)
    return {k: v for k, v in context.items() if v is not None}
