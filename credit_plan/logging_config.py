"""Logging setup for the command-line and web entry points.

The library modules only create module-level loggers; handlers are installed
here, once, by whichever entry point runs.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

LOGGER_NAMES = ("credit_plan", "credit_plan_web")
TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "loan_id": getattr(record, "loan_id", None),
        }
        log_entry = {k: v for k, v in log_entry.items() if v is not None}
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def setup_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Attach a single stream handler to the package loggers.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ...).
        fmt: ``"json"`` for one JSON object per line, anything else for text.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if fmt == "json" else logging.Formatter(TEXT_FORMAT))
    for name in LOGGER_NAMES:
        logger = logging.getLogger(name)
        # Remove existing handlers to avoid duplicates
        for existing in logger.handlers[:]:
            logger.removeHandler(existing)
        logger.addHandler(handler)
        logger.setLevel(getattr(logging, level.upper(), logging.INFO))
        logger.propagate = False
