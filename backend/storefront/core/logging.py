"""Storefront Logging Configuration."""

import json
import logging
import re
import sys
from typing import Literal

DEV_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Compact JWS serialization: three base64url segments, header starting with '{"'
TOKEN_PATTERN = re.compile(r"eyJ[\w-]+\.[\w-]+\.[\w-]*")
BEARER_PATTERN = re.compile(r"(Bearer\s+)\S+", re.IGNORECASE)
REDACTED = "[REDACTED]"

# Extra attributes copied into structured records when a caller sets them
CONTEXT_FIELDS = ("principal", "identity", "failed_attempts")


def redact(message: str) -> str:
    """Mask session tokens and bearer credentials inside a log message."""
    message = BEARER_PATTERN.sub(rf"\1{REDACTED}", message)
    return TOKEN_PATTERN.sub(REDACTED, message)


class TokenRedactionFilter(logging.Filter):
    """Rewrites records so session tokens never reach a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter.

    Records are serialized with json.dumps() so quotes and newlines inside
    messages cannot break the output line.
    """

    def __init__(self):
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = redact(self.formatException(record.exc_info))
        return json.dumps(log_entry, default=str)


def setup_logging(
    level: str = "INFO",
    format_type: Literal["structured", "dev"] = "dev",
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: 'structured' for one JSON object per line, 'dev' for readable text
    """
    handler = logging.StreamHandler(sys.stdout)
    if format_type == "structured":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(DEV_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler.addFilter(TokenRedactionFilter())

    logging.root.handlers = [handler]
    logging.root.setLevel(getattr(logging, level.upper()))

    for logger_name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.DEBUG if level.upper() == "DEBUG" else logging.WARNING
    )

    logging.getLogger("storefront").info(
        f"Logging configured: level={level}, format={format_type}"
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the storefront prefix."""
    return logging.getLogger(f"storefront.{name}")
