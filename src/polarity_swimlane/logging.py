"""Structured logging configuration for the Swimlane integration.

Provides JSON-formatted logs for production and human-readable
logs for development.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .config import get_settings

# Attributes present on every LogRecord; anything else came in via ``extra``
_RESERVED_ATTRS = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_data[key] = value

        if record.funcName:
            log_data["function"] = record.funcName
        if record.lineno:
            log_data["line"] = record.lineno

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable log formatter for development."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def setup_logging() -> None:
    """Configure logging based on settings."""
    settings = get_settings()

    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)

    log_format = settings.log_format or ("text" if settings.is_development else "json")
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logger = get_logger(__name__)
    logger.debug(
        "Logging initialized",
        extra={
            "environment": settings.environment,
            "log_level": settings.log_level,
            "log_format": log_format,
        },
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


class LoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds context to all log messages."""

    def process(
        self, msg: str, kwargs: dict[str, Any]
    ) -> tuple[str, dict[str, Any]]:
        """Process the logging message and add extra context."""
        extra = kwargs.get("extra", {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


def get_context_logger(name: str, **context: Any) -> LoggerAdapter:
    """Get a logger with additional context.

    Args:
        name: Logger name
        **context: Context fields to add to all log messages

    Returns:
        Logger adapter with context

    Usage:
        logger = get_context_logger(__name__, instance="https://swimlane.local")
        logger.info("Caching applications")  # Includes instance
    """
    return LoggerAdapter(get_logger(name), context)


# =========================
# Convenience functions
# =========================


def log_cache_refresh(
    instance: str,
    app_count: int,
    field_count: int,
    duration_seconds: float,
    success: bool,
    error: str | None = None,
) -> None:
    """Log the outcome of an application directory rebuild."""
    logger = get_logger("polarity_swimlane.directory")
    level = logging.INFO if success else logging.ERROR
    logger.log(
        level,
        f"Application cache refresh {'completed' if success else 'failed'} for {instance}",
        extra={
            "instance": instance,
            "app_count": app_count,
            "field_count": field_count,
            "duration_seconds": duration_seconds,
            "success": success,
            "error": error,
            "event": "cache_refresh",
        },
    )


def log_api_request(
    method: str,
    url: str,
    status_code: int | None,
    duration_ms: float,
    attempt: int = 0,
) -> None:
    """Log an outbound API request.

    Args:
        method: HTTP method
        url: Request URL
        status_code: Response status code (None on transport failure)
        duration_ms: Request duration in milliseconds
        attempt: Zero-based attempt number within one logical call
    """
    logger = get_logger("polarity_swimlane.http")
    logger.debug(
        f"{method} {url} - {status_code}",
        extra={
            "method": method,
            "url": url,
            "status_code": status_code,
            "duration_ms": duration_ms,
            "attempt": attempt,
            "event": "api_request",
        },
    )


def log_lookup_complete(
    entity_count: int,
    hit_count: int,
    error_count: int,
    duration_seconds: float,
) -> None:
    """Log the completion of a lookup batch."""
    logger = get_logger("polarity_swimlane.lookup")
    logger.info(
        f"Lookup complete: {hit_count}/{entity_count} entities matched",
        extra={
            "entity_count": entity_count,
            "hit_count": hit_count,
            "error_count": error_count,
            "duration_seconds": duration_seconds,
            "event": "lookup_complete",
        },
    )
