"""
Structured Logging Configuration Module

One JSON object per log line for ledger operations, or plain text lines
when configured that way.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional


TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Record attributes log_action may set; absent ones are left out of the line
CONTEXT_FIELDS = ("correlation_id", "user_id", "action", "resource", "details")


class JSONFormatter(logging.Formatter):
    """Render a record and its ledger context as a JSON line"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry["extra" if field == "details" else field] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO", logger_name: str = "pawn_ledger",
                  log_format: str = "json", log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the application logger.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        logger_name: Logger to configure; child loggers inherit its handler
        log_format: "json" for structured lines, "text" for plain lines
        log_file: Append to this file instead of stderr

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()

    handler = logging.FileHandler(log_file) if log_file else logging.StreamHandler()
    handler.setFormatter(logging.Formatter(TEXT_FORMAT) if log_format == "text" else JSONFormatter())

    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False
    return logger


def get_logger(name: str = "pawn_ledger") -> logging.Logger:
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               user_id: Optional[str] = None, action: Optional[str] = None,
               resource: Optional[str] = None, correlation_id: Optional[str] = None,
               extra: Optional[dict] = None) -> None:
    """
    Log a ledger action with its context.

    Args:
        logger: Logger to write to
        level: info, warning, error, ...
        message: Human-readable summary
        user_id: Owner performing the action
        action: Operation name, e.g. create_transaction
        resource: ``kind:id`` of the record acted on
        correlation_id: Request tracing ID
        extra: Structured details such as the balance effect
    """
    context = {
        "user_id": user_id,
        "action": action,
        "resource": resource,
        "correlation_id": correlation_id,
        "details": extra,
    }
    logger.log(
        getattr(logging, level.upper()), message,
        extra={key: value for key, value in context.items() if value}
    )
