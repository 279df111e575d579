"""
Structured logging configuration.
JSON lines in production, one per record, carrying the request id of the
HTTP request that produced them plus any engine context passed via `extra`.
"""
import json
import logging
import sys
from contextvars import ContextVar
from typing import Optional

# Set by the request middleware, read by RequestContextFilter
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Engine context attached through `extra={...}`
CONTEXT_FIELDS = ("request_id", "user_id", "strategy", "elapsed_ms")


class RequestContextFilter(logging.Filter):
    """Stamp every record with the current request id."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get()
        return True


class JsonFormatter(logging.Formatter):
    """Format log records as JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value

        return json.dumps(payload, default=str)


def configure_logging(debug: bool = False) -> None:
    """Configure root logger: JSON in production, readable lines in debug."""
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter())

    if debug:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(request_id)s | %(name)s | %(message)s"
        )
    else:
        formatter = JsonFormatter()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)

    # Reduce noise
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").handlers = [handler]
