"""
Structured logging configuration.

JSON lines in production (or LOG_FORMAT=json), "key=value" text otherwise.
Structured context is passed as extra={"extra_fields": {...}}. Keys that
could carry credentials (tokens, cookies, passwords) are masked before any
record is written, so a careless call site cannot leak a session.
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional
from core.config import settings

REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset({
    "access_token",
    "authorization",
    "cookie",
    "password",
    "password_hash",
    "secret",
    "session",
    "token",
})


def redact(fields: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Copy of fields with credential-bearing keys masked."""
    if not fields:
        return {}
    return {
        key: (REDACTED if key.lower() in SENSITIVE_KEYS else value)
        for key, value in fields.items()
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "environment": settings.ENVIRONMENT,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data.update(redact(getattr(record, "extra_fields", None)))
        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable line with extra_fields appended as key=value pairs."""

    def __init__(self):
        super().__init__("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = redact(getattr(record, "extra_fields", None))
        if fields:
            line += " | " + " ".join(f"{k}={v}" for k, v in fields.items())
        return line


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> logging.Logger:
    """
    Configure the root logger once for the process.

    level/fmt default to LOG_LEVEL / LOG_FORMAT; production always logs JSON.
    """
    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)
    use_json = (fmt or settings.LOG_FORMAT) == "json" or settings.is_production

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(JSONFormatter() if use_json else TextFormatter())
    root_logger.addHandler(console_handler)

    # SQL echo is controlled by DEBUG on the engine, not by the root level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("multipart").setLevel(logging.WARNING)

    return root_logger
