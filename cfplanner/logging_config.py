"""
Central logging configuration for the planner service.

Provides:
- JSON lines in production, a compact human format in development
- Request correlation: request_id and the learner handle are taken from
  context vars set by RequestIdMiddleware and stamped on every record

Usage:
    from cfplanner.logging_config import get_logger
    logger = get_logger(__name__)
    logger.info("Verified solve", extra={"problem_id": pid, "state": "confirmed"})
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
handle_var: ContextVar[Optional[str]] = ContextVar("handle", default=None)

_CONTEXT_VARS: Dict[str, ContextVar] = {
    "request_id": request_id_var,
    "handle": handle_var,
}

# Everything a bare LogRecord carries; the rest came in through extra=
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
    *_CONTEXT_VARS,
}

_NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore")


class ContextFilter(logging.Filter):
    """Copy the request context onto the record ('-' outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        for name, var in _CONTEXT_VARS.items():
            if getattr(record, name, None) is None:
                setattr(record, name, var.get() or "-")
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in _CONTEXT_VARS:
            value = getattr(record, name, "-")
            if value != "-":
                payload[name] = value
        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or value is None:
                continue
            payload[key] = value if _is_json_safe(value) else str(value)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def _is_json_safe(value: Any) -> bool:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return False
    return True


def configure_logging(
    *,
    log_level: str = "INFO",
    environment: str = "development",
    debug: bool = False,
) -> None:
    """
    Configure the root logger once per process.

    Args:
        log_level: Logging level name; unknown names fall back to INFO
        environment: 'production' switches to JSON lines
        debug: Force DEBUG regardless of log_level
    """
    level = logging.DEBUG if debug else getattr(logging, log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.addFilter(ContextFilter())
    if environment == "production":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)-5s [%(name)s] req=%(request_id)s cf=%(handle)s %(message)s",
                datefmt="%H:%M:%S",
            )
        )

    root = logging.getLogger()
    root.setLevel(level)
    # Reload-safe: replace rather than stack handlers
    root.handlers[:] = [handler]

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
