"""
Logging Configuration

Structured logging setup with JSON output for production.
"""
import logging
import sys
from contextvars import ContextVar
from typing import Any, Dict, Optional
import json
from datetime import datetime

# Set per request by RequestIdMiddleware
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class RequestContextFilter(logging.Filter):
    """Copy the current request id onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        request_id = request_id_var.get()
        if request_id is not None and not hasattr(record, "request_id"):
            record.request_id = request_id
        return True


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    Makes logs machine-readable for log aggregation systems.
    """

    EXTRA_FIELDS = ("user_id", "company_id", "target_user_id", "request_id", "event_type")

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for field in self.EXTRA_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = "INFO", json_format: bool = False) -> None:
    """
    Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format for structured logging

    NOTE: Call this once at application startup.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter())

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)

    root_logger.addHandler(handler)

    # Reduce noise from noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)


def log_security_event(event_type: str, details: Dict[str, Any], logger: logging.Logger) -> None:
    """
    Log security-related events.

    Event types:
    - membership_denied: Caller lacked the membership or role for an action
    - last_owner_guard: Attempt to demote or remove the only Owner
    - missing_caller: Request arrived without a caller identity
    """
    log_data = {
        "security_event": True,
        "event_type": event_type,
        **details
    }

    logger.warning(f"SECURITY EVENT: {event_type}", extra=log_data)
