"""Logging setup for the QuoteFlow API.

Every record carries the request ID and, when known, the owner making the
request. Lifecycle code passes document fields (document_id, trigger, ...)
through ``extra=`` and they appear as top-level keys in JSON output.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from .request_id import get_owner_id, get_request_id

# Attributes lifted from log records into the JSON payload
EXTRA_FIELDS = (
    "owner_id",
    "document_id",
    "document_number",
    "template_id",
    "trigger",
    "attempt",
    "method",
    "path",
    "status_code",
    "duration_ms",
)


class RequestIDFilter(logging.Filter):
    """Stamp records with the current request ID and owner."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        if not hasattr(record, "owner_id"):
            owner_id = get_owner_id()
            if owner_id:
                record.owner_id = owner_id
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line; numbers stay numbers, other extras become strings."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "request_id": getattr(record, "request_id", "no-request-id"),
            "logger": record.name,
            "function": record.funcName,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["error"] = str(record.exc_info[1])
            log_data["traceback"] = self.formatException(record.exc_info)

        for name in EXTRA_FIELDS:
            if hasattr(record, name):
                value = getattr(record, name)
                log_data[name] = value if isinstance(value, (int, float)) else str(value)

        return json.dumps(log_data)


def configure_logging(level: str = "INFO", json_format: bool = True) -> None:
    """Install the single stdout handler used by the API process.

    Args:
        level: LOG_LEVEL setting (DEBUG, INFO, WARNING, ERROR)
        json_format: LOG_JSON setting; plain text is easier to read locally
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s'
        )

    handler.setFormatter(formatter)
    handler.addFilter(RequestIDFilter())
    root_logger.addHandler(handler)

    # Per-request lines come from RequestIDMiddleware; SQL echo and PDF font
    # lookups are too chatty at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("reportlab").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
