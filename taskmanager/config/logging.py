"""
Task Manager - Logging Configuration

Everything logs below the "taskmanager" logger. Records carry the id of
the HTTP request they belong to (if any) and optional structured data in
`extra_data`.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional


ROOT_LOGGER_NAME = "taskmanager"

CONSOLE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
CONSOLE_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Set by the request logging middleware, read by the formatters
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class RequestIdFilter(logging.Filter):
    """Stamp records with the request id of the current context."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = getattr(record, "request_id", None)
        if request_id:
            payload["request_id"] = request_id

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["data"] = extra_data

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Human-readable console lines with an ANSI-coloured level."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        # Colour a copy so other handlers see the plain level name
        colored = logging.makeLogRecord(record.__dict__)
        color = self.LEVEL_COLORS.get(record.levelno)
        if color:
            colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


def _handler(handler: logging.Handler, formatter: logging.Formatter, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    (Re)configure the package logger. Safe to call more than once.

    Args:
        log_level: Level name for the logger and console
        json_logs: JSON console output instead of coloured text
        log_file: Also write JSON lines here, at DEBUG

    Returns:
        The "taskmanager" logger
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()

    console_formatter = (
        JSONFormatter() if json_logs else ColoredFormatter(CONSOLE_FORMAT, datefmt=CONSOLE_DATEFMT)
    )
    logger.addHandler(_handler(logging.StreamHandler(sys.stdout), console_formatter, level))

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.addHandler(_handler(
            logging.FileHandler(log_file, encoding="utf-8"), JSONFormatter(), logging.DEBUG
        ))

    return logger


class LoggerAdapter(logging.LoggerAdapter):
    """Bound context is merged under the record's extra_data."""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = dict(kwargs.get("extra") or {})
        if self.extra:
            extra["extra_data"] = {**self.extra, **extra.get("extra_data", {})}
        kwargs["extra"] = extra
        return msg, kwargs


def get_logger(name: str, **context) -> LoggerAdapter:
    """
    Logger for a component, e.g. get_logger("tasks.service").

    Keyword arguments become structured data on every record it emits.
    """
    return LoggerAdapter(logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}"), context)


def log_api_request(
    logger: logging.LoggerAdapter,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    **extra
):
    """One line per handled HTTP request."""
    data = {
        "method": method,
        "path": path,
        "status_code": status_code,
        "duration_ms": duration_ms,
    }
    data.update(extra)
    logger.info(
        "%s %s -> %d [%.1fms]", method, path, status_code, duration_ms,
        extra={"extra_data": data},
    )


def log_error(
    logger: logging.LoggerAdapter,
    error: Exception,
    context: str = "",
    **extra
):
    """Log an exception with traceback and what was being done."""
    logger.error(
        "Error in %s: %s: %s", context, type(error).__name__, error,
        exc_info=error,
        extra={"extra_data": extra},
    )
