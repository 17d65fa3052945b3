"""
Structured logging configuration for Scout.

Two output formats, picked by ``SCOUT_LOG_FORMAT``:
- console: human-readable with level colors when attached to a TTY
- json: one object per line, for log shippers

Usage:
    from scout.config.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Classified query", extra={"stage": "classification", "round": 2})
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

LOG_LEVEL = os.getenv("SCOUT_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("SCOUT_LOG_FORMAT", "console")  # "console" or "json"

# Everything a bare LogRecord carries; anything else came in through ``extra``.
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None)))
_RESERVED_ATTRS = _RESERVED_ATTRS | {"message", "asctime", "taskName"}

_NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "urllib3",
    "sentence_transformers",
    "transformers",
    "huggingface_hub",
    "qdrant_client",
    "anthropic",
    "openai",
)


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter: ``HH:MM:SS LEVEL logger message [k=v]``."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:<8}"
        if hasattr(sys.stdout, "isatty") and sys.stdout.isatty():
            level = f"{self.COLORS.get(record.levelname, '')}{level}{self.RESET}"

        line = f"{self.formatTime(record, '%H:%M:%S')} {level} {record.name}: {record.getMessage()}"

        extras = _extra_fields(record)
        if extras:
            line += " [" + ", ".join(f"{k}={v}" for k, v in extras.items()) + "]"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class JSONFormatter(logging.Formatter):
    """Machine-parseable JSON formatter for production."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(_extra_fields(record))

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


# ---------------------------------------------------------------------------
# Logger Factory
# ---------------------------------------------------------------------------

_configured = False


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Install a single stdout handler on the root logger (idempotent)."""
    global _configured
    if _configured:
        return

    level_value = getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level_value)
    handler.setFormatter(JSONFormatter() if (fmt or LOG_FORMAT) == "json" else ConsoleFormatter())

    root = logging.getLogger()
    root.setLevel(level_value)
    root.handlers.clear()
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with consistent configuration.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    configure_logging()
    return logging.getLogger(name)


# ---------------------------------------------------------------------------
# Convenience functions
# ---------------------------------------------------------------------------


def log_banner(
    logger: logging.Logger, title: str, char: str = "=", width: int = 60
) -> None:
    """Log a visual banner, used by the corpus loader script."""
    logger.info(char * width)
    logger.info(title)
    logger.info(char * width)


def log_kv(logger: logging.Logger, key: str, value: Any, indent: int = 2) -> None:
    """Log a key-value pair with consistent formatting."""
    prefix = " " * indent
    if isinstance(value, float):
        logger.info("%s%s: %.4f", prefix, key, value)
    elif isinstance(value, int):
        logger.info("%s%s: %s", prefix, key, f"{value:,}")
    else:
        logger.info("%s%s: %s", prefix, key, value)


__all__ = [
    "ConsoleFormatter",
    "JSONFormatter",
    "get_logger",
    "configure_logging",
    "log_banner",
    "log_kv",
    "LOG_LEVEL",
    "LOG_FORMAT",
]
