"""
Structured logging configuration with correlation IDs.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import uuid4

from rich.console import Console
from rich.logging import RichHandler

from backend.src.core.config import settings

# Context variable for request correlation ID
request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Attributes every LogRecord carries; anything else came in through ``extra=``
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime", "taskName"}

_NOISY_LOGGERS = (
    "uvicorn",
    "httpx",
    "httpcore",
    "urllib3",
    "sqlalchemy.engine",
    "firebase_admin",
    "google",
)


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Collect the fields passed through ``extra=`` on a log call."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured logging in JSON format."""

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as structured JSON.

        Args:
            record: Log record to format

        Returns:
            JSON-formatted log string
        """
        log_data: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_ctx.get()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = _extra_fields(record)
        log_data.update(extra)

        log_data.update(
            {
                "module": record.module,
                "function": record.funcName,
                "line": record.lineno,
            }
        )

        if settings.LOG_FORMAT == "json":
            return json.dumps(log_data, default=str)

        # Text format for development
        request_id_str = f" [{request_id}]" if request_id else ""
        context = " ".join(f"{key}={value}" for key, value in extra.items())
        line = (
            f"{log_data['timestamp']} - {record.levelname:8} - "
            f"{record.name}{request_id_str} - {record.getMessage()}"
        )
        if context:
            line = f"{line} | {context}"
        if "exception" in log_data:
            line = f"{line}\n{log_data['exception']}"
        return line


class ConsoleFormatter(logging.Formatter):
    """Message plus ``extra=`` context; level and time are drawn by the handler."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        context = " ".join(f"{key}={value}" for key, value in _extra_fields(record).items())
        return f"{message} | {context}" if context else message


def _install_handler(handler: logging.Handler) -> None:
    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)

    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logging() -> None:
    """Configure application logging."""
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(StructuredFormatter())
    _install_handler(console_handler)


def setup_console_logging(console: Console) -> None:
    """
    Route log records through a Rich console.

    Records then print above any ``Live`` display on that console instead of
    being written into it.

    Args:
        console: Console the terminal client renders to
    """
    handler = RichHandler(console=console, show_path=False, rich_tracebacks=True)
    handler.setFormatter(ConsoleFormatter())
    _install_handler(handler)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set correlation ID for current request context.

    Args:
        request_id: Request ID to set, or None to generate new one

    Returns:
        The request ID that was set
    """
    if request_id is None:
        request_id = str(uuid4())
    request_id_ctx.set(request_id)
    return request_id


def get_request_id() -> Optional[str]:
    """Get correlation ID for current request context."""
    return request_id_ctx.get()


def clear_request_id() -> None:
    """Clear correlation ID from current request context."""
    request_id_ctx.set(None)


# Initialize logging on module import
setup_logging()
