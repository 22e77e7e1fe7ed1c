"""Transaction Tracker Logging Configuration.

Session events are logged with ``extra=session_event(...)`` so the structured
formatter can emit ``event``, ``user_id``, ``token_hash`` and counts as
separate fields instead of leaving them buried in the message text.
"""

import json
import logging
import sys
from typing import Any, Literal
from uuid import UUID

LOGGER_PREFIX = "tracker"

# Hash prefix length used whenever a token hash appears in a log line
TOKEN_HASH_LOG_CHARS = 12

# Attributes every LogRecord carries; anything else came in through ``extra``
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime"}

_QUIET_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def session_event(
    event: str,
    *,
    user_id: UUID | str | None = None,
    token_hash: str | None = None,
    **fields: Any,
) -> dict[str, Any]:
    """Build the ``extra`` mapping for a session audit log call.

    Token hashes are cut to a short prefix; full hashes never reach the logs.
    """
    extra: dict[str, Any] = {"event": event}
    if user_id is not None:
        extra["user_id"] = str(user_id)
    if token_hash is not None:
        extra["token_hash"] = token_hash[:TOKEN_HASH_LOG_CHARS]
    extra.update(fields)
    return extra


def record_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Fields attached to a record through ``extra``."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_ATTRS and not key.startswith("_")
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per log line, extra fields included at the top level."""

    def __init__(self):
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record_fields(record).items():
            log_entry.setdefault(key, value)
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


class DevFormatter(logging.Formatter):
    """Readable single-line format with extra fields appended as key=value."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = record_fields(record)
        if fields:
            line += " | " + " ".join(f"{k}={v}" for k, v in sorted(fields.items()))
        return line


def setup_logging(
    level: str = "INFO",
    format_type: Literal["structured", "dev"] = "dev",
) -> None:
    """
    Configure root logging for the API process and the maintenance scripts.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: 'structured' for JSON lines, 'dev' for readable output
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if format_type == "structured" else DevFormatter())
    logging.root.handlers = [handler]
    logging.root.setLevel(numeric_level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    # SQL echo only when debugging
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    )

    logging.getLogger(LOGGER_PREFIX).info(
        "Logging configured",
        extra={"event": "logging_configured", "level_name": level.upper(), "format": format_type},
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the tracker prefix."""
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")
