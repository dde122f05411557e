"""Logging setup: JSON lines in deployments, plain text locally.

Every record is stamped with the request context (correlation id and acting
reviewer). Structured values passed through ``extra=`` are copied into the
JSON payload when their key is listed in EXTRA_FIELDS.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from .context import current_request_id, current_reviewer_id

EXTRA_FIELDS = (
    "submission_id",
    "attachment_id",
    "reviewer_id",
    "status_code",
    "duration_ms",
    "method",
    "path",
)

TEXT_FORMAT = "%(asctime)s %(levelname)-7s [%(request_id)s] %(name)s: %(message)s"

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "botocore", "boto3", "s3transfer", "multipart")


class RequestContextFilter(logging.Filter):
    """Attach request_id and, unless the call passed one, reviewer_id."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = current_request_id()
        if not hasattr(record, "reviewer_id"):
            reviewer_id = current_reviewer_id()
            if reviewer_id is not None:
                record.reviewer_id = reviewer_id
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", None),
            "message": record.getMessage(),
        }
        for key in EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value if isinstance(value, (int, float)) else str(value)

        if record.exc_info:
            payload["error"] = repr(record.exc_info[1])
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def configure_logging(level: str = "INFO", json_format: bool = True) -> None:
    """Install a single stdout handler on the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        json_format: JSON lines if True, TEXT_FORMAT otherwise
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(TEXT_FORMAT))
    handler.addFilter(RequestContextFilter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
