"""Structured JSON logging for transfer operations."""

import json
import logging
import os
import sys
import traceback
from datetime import datetime, timezone

SERVICE_NAME = "s3-file-manager"


class JSONFormatter(logging.Formatter):
    """Formats log records as single-line JSON documents."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": os.environ.get("SERVICE_NAME", SERVICE_NAME),
            "thread": record.threadName,
        }

        # Merge extra structured fields
        if hasattr(record, "extra_data") and isinstance(record.extra_data, dict):
            log_entry.update(record.extra_data)

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "stacktrace": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_entry, default=str)


def get_logger(name: str) -> logging.Logger:
    """Create a structured JSON logger."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
        logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())
        logger.propagate = False
    return logger


def log_with_context(logger, level: int, message: str, **kwargs) -> None:
    """Log a message with structured context data.

    Injected loggers outside the ``logging`` module get the context
    as a trailing dict argument on the matching level method.
    """
    if isinstance(logger, (logging.Logger, logging.LoggerAdapter)):
        logger.log(level, message, extra={"extra_data": kwargs})
        return
    getattr(logger, logging.getLevelName(level).lower())(message, kwargs)


def is_valid_logger(candidate) -> bool:
    """Check that an injected logger exposes info, warning and error."""
    if candidate is None:
        return False
    if all(
        callable(getattr(candidate, method, None))
        for method in ("info", "warning", "error")
    ):
        return True
    get_logger(__name__).error(
        "Invalid logger provided (type: %s); it must have info, warning and "
        "error methods. Using the default JSON logger instead.",
        type(candidate).__name__,
    )
    return False
