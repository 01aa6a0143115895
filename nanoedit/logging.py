"""
nanoedit/logging.py - Structured JSON logging with request and task context
"""

import logging
import json
import sys
from datetime import datetime
from typing import Any, Dict, Optional

# Promoted to top-level keys so log search can follow a single edit job
CONTEXT_FIELDS = ("request_id", "user_id", "task_id", "external_task_id")


class JSONFormatter(logging.Formatter):
    """Format logs as JSON with request and task context"""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Request, user and task ids when the caller bound them
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value

        # Free-form fields passed as extra={"extra": {...}}
        if hasattr(record, "extra") and isinstance(record.extra, dict):
            log_data.update(record.extra)

        # Add exception info
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(level: int = logging.INFO):
    """Configure structured logging"""

    # Root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers
    root_logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)

    # Uvicorn access lines duplicate the request logger; httpx logs every
    # provider poll
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return root_logger


class RequestLogger:
    """Helper to log with request context, optionally bound to a task"""

    def __init__(
        self,
        logger: logging.Logger,
        request_id: Optional[str],
        user_id: Optional[str] = None,
        **context: Any,
    ):
        self.logger = logger
        self.request_id = request_id
        self.user_id = user_id
        self.context = {
            k: v for k, v in context.items() if k in CONTEXT_FIELDS
        }

    def bind(self, **context: Any) -> "RequestLogger":
        """Same request, plus task ids for every following line"""
        return RequestLogger(
            self.logger,
            self.request_id,
            self.user_id,
            **{**self.context, **context},
        )

    def _log(self, level: int, message: str, **kwargs):
        extra: Dict[str, Any] = {"request_id": self.request_id}
        if self.user_id:
            extra["user_id"] = self.user_id
        extra.update(self.context)

        # Task ids given per call are promoted like bound ones
        for field in ("task_id", "external_task_id"):
            if field in kwargs:
                extra[field] = kwargs.pop(field)
        if kwargs:
            extra["extra"] = kwargs

        self.logger.log(level, message, extra=extra)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log(logging.ERROR, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, **kwargs)
