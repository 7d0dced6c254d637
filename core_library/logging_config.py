"""
Structured Logging Module

JSON lines (or plain text) for the ``libsys`` logger tree. Operations
report who did what to which account or book through log_action().
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional


ROOT_LOGGER = "libsys"

# Record attributes carried into the JSON line when set
STRUCTURED_FIELDS = ("user_id", "action", "resource", "extra")

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per record; unset structured fields are left out"""

    def format(self, record):
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }
        for name in STRUCTURED_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


def setup_logging(level: str = "WARNING", logger_name: str = ROOT_LOGGER,
                  log_format: str = "json", log_file: Optional[str] = None) -> logging.Logger:
    """
    Attach a single handler to the library logger tree.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        logger_name: Logger to configure
        log_format: "json" for JSONFormatter, anything else for plain text
        log_file: Write to this file instead of stderr

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)

    # Calling this twice must not leave two handlers behind
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()

    handler = (logging.FileHandler(log_file, encoding="utf-8") if log_file
               else logging.StreamHandler())
    handler.setFormatter(JSONFormatter() if log_format == "json"
                         else logging.Formatter(TEXT_FORMAT))

    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False
    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               user_id: Optional[int] = None, action: Optional[str] = None,
               resource: Optional[str] = None, extra: Optional[dict] = None):
    """
    Log an operation with structured context.

    Args:
        logger: Module logger
        level: Level name (info, warning, error, ...)
        message: Human readable summary
        user_id: Account performing the operation
        action: Operation name, e.g. "borrow"
        resource: What was acted on (ISBN, account id, file path)
        extra: Any further key/value detail
    """
    fields = {"user_id": user_id, "action": action or None,
              "resource": resource or None, "extra": extra or None}
    logger.log(getattr(logging, level.upper()), message,
               extra={k: v for k, v in fields.items() if v is not None})
