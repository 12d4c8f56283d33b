"""
Logging utilities for the faynosync CLI.

Provides console logging with structured fields, an optional JSON formatter,
log level parsing for the ``--log-level`` global flag, and a debug-level
entry/exit decorator.

Features:
    - key=value rendering of ``extra`` fields for console output
    - Structured JSON logging when LOG_FORMAT=json
    - Colorized console output via coloredlogs
    - Entry/exit decorator with timing

Example usage:
    >>> from faynosync.utils.logging import get_logger, setup_logging
    >>>
    >>> setup_logging(level="debug")
    >>> logger = get_logger(__name__)
    >>> logger.info("Upload completed", extra={"files": 2, "app": "demo"})
    INFO Upload completed app=demo files=2
"""

import functools
import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import IO, Any, Callable, Dict, Optional, TypeVar, cast

import coloredlogs

# Type variable for generic decorator typing
F = TypeVar("F", bound=Callable[..., Any])

# Console format mirrors logrus' text formatter without timestamps
LOG_FORMAT = "%(levelname)s %(message)s%(fields)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FORMAT_ENV = "LOG_FORMAT"

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

LEVEL_NAMES: Dict[str, int] = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "panic": logging.CRITICAL,
}

# Attributes every LogRecord carries; anything else came in through ``extra``
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys()
) | {"message", "asctime", "fields"}


def extract_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Return the ``extra`` fields attached to a log record, sorted by key."""
    return {
        key: value
        for key, value in sorted(record.__dict__.items())
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


def _format_value(value: Any) -> str:
    text = str(value)
    if text == "" or any(ch in text for ch in ' ="\n\t'):
        return json.dumps(text)
    return text


class FieldsFilter(logging.Filter):
    """
    Render structured fields into ``record.fields`` for text formatters.

    Always lets the record through; it only decorates it.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        fields = extract_fields(record)
        record.fields = "".join(
            f" {key}={_format_value(value)}" for key, value in fields.items()
        )
        return True


# ============================================================================
# JSON Formatter
# ============================================================================

class JSONFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    Example output:
        {
            "timestamp": "2026-01-04T10:30:15.123456Z",
            "level": "INFO",
            "logger": "faynosync.uploader",
            "message": "Upload completed",
            "fields": {"files": 2, "app": "demo", "uploaded_id": "abc123"}
        }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        fields = extract_fields(record)
        if fields:
            log_data["fields"] = fields

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(log_data, default=str)


def parse_log_level(name: str) -> int:
    """
    Translate a ``--log-level`` value into a logging level.

    Args:
        name: Level name (trace, debug, info, warn, error, fatal, panic)

    Returns:
        Numeric logging level

    Raises:
        ValueError: If the name is not a known level
    """
    level = LEVEL_NAMES.get(name.strip().lower())
    if level is None:
        raise ValueError(f'invalid log level "{name}"')
    return level


def setup_logging(
    level: Any = "info",
    stream: Optional[IO[str]] = None,
    enable_colors: bool = True,
    json_format: Optional[bool] = None,
) -> None:
    """
    Configure global logging settings for the CLI.

    Sets up JSON logging when LOG_FORMAT=json (or ``json_format`` is True),
    colorized text otherwise.

    Args:
        level: Level name accepted by parse_log_level, or a numeric level
        stream: Destination stream (default: sys.stderr)
        enable_colors: Whether to colorize console output when it is a TTY
        json_format: Force JSON output on or off; None reads LOG_FORMAT

    Raises:
        ValueError: If an invalid logging level is provided

    Example:
        >>> setup_logging(level="debug", stream=sys.stdout)
    """
    log_level = level if isinstance(level, int) else parse_log_level(level)
    if json_format is None:
        json_format = os.getenv(LOG_FORMAT_ENV, "text").lower() == "json"
    if stream is None:
        stream = sys.stderr

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()

    if json_format:
        handler = logging.StreamHandler(stream)
        handler.setLevel(log_level)
        handler.setFormatter(JSONFormatter())
        root_logger.addHandler(handler)
    elif enable_colors:
        coloredlogs.install(
            level=log_level,
            fmt=LOG_FORMAT,
            datefmt=LOG_DATE_FORMAT,
            logger=root_logger,
            stream=stream,
        )
    else:
        handler = logging.StreamHandler(stream)
        handler.setLevel(log_level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        root_logger.addHandler(handler)

    for handler in root_logger.handlers:
        handler.addFilter(FieldsFilter())


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_function_call(func: F) -> F:
    """
    Decorator that logs function entry and exit at DEBUG level.

    Exceptions are logged with their type and re-raised unchanged.

    Example:
        >>> @log_function_call
        ... def build_endpoint(server: str) -> str:
        ...     return server.rstrip("/") + "/upload"
    """
    logger = get_logger(func.__module__)

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        logger.debug(
            f"ENTER {func.__name__}",
            extra={"function": func.__name__, "event": "function_entry"},
        )

        start_time = datetime.now()

        try:
            result = func(*args, **kwargs)
        except Exception as error:
            execution_time = (datetime.now() - start_time).total_seconds()
            logger.debug(
                f"ERROR {func.__name__} raised {type(error).__name__}: {error}",
                extra={
                    "function": func.__name__,
                    "event": "function_error",
                    "duration_seconds": round(execution_time, 6),
                },
            )
            raise

        execution_time = (datetime.now() - start_time).total_seconds()
        logger.debug(
            f"EXIT {func.__name__}",
            extra={
                "function": func.__name__,
                "event": "function_exit",
                "duration_seconds": round(execution_time, 6),
            },
        )
        return result

    return cast(F, wrapper)
