"""Logging setup.

Production logs are one JSON object per line; development logs are colored
text. Engine code attaches the player and deck it is working on through
`extra=` or a bound adapter:

    log = bind_logger(logger, user_id="bq_1", deck_id="bio-101")
    log.info("Deck level 1 -> 2")
"""
import logging
import sys
import json
from datetime import datetime
from typing import Any, Dict, Optional
from bloomquest.config import settings

CONTEXT_FIELDS = ("user_id", "deck_id", "card_id", "session_mode", "request_id")

_HANDLER_NAME = "bloomquest"


def _record_context(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        field: getattr(record, field)
        for field in CONTEXT_FIELDS
        if getattr(record, field, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON document per record, with engine context as top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        entry.update(_record_context(record))

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry)


class ColoredFormatter(logging.Formatter):
    """Terminal formatter: colored level name, context appended in brackets."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        color = self.COLORS.get(record.levelname)
        if color:
            line = line.replace(record.levelname, f"{color}{record.levelname}{self.RESET}", 1)

        context = _record_context(record)
        if context:
            line += " [" + " ".join(f"{key}={value}" for key, value in context.items()) + "]"
        return line


class ContextAdapter(logging.LoggerAdapter):
    """Adapter merging bound context into every record's `extra`."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def bind_logger(logger: logging.Logger, **context) -> ContextAdapter:
    """Return `logger` with context fields attached to every record."""
    return ContextAdapter(logger, context)


def setup_logging(log_level: Optional[str] = None) -> None:
    """Configure the root logger once.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL. Defaults to INFO in
                   production and DEBUG elsewhere.
    """
    if log_level is None:
        log_level = "INFO" if settings.is_production else "DEBUG"

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Re-importing the app (tests, reloaders) must not stack handlers
    if any(h.get_name() == _HANDLER_NAME for h in root_logger.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    if settings.is_production:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(ColoredFormatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
    root_logger.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging configured: level={log_level}, environment={settings.ENVIRONMENT}"
    )


def get_logger(name: str) -> logging.Logger:
    """Module logger, e.g. `logger = get_logger(__name__)`."""
    return logging.getLogger(name)
