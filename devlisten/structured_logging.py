"""
Structured logging support for devlisten.

Provides JSON-formatted logging when enabled via DEVLISTEN_LOG_FORMAT=json.
The library itself never configures logging; the command line calls
setup_logging().
"""

import json
import logging
import os
import sys
from datetime import datetime
from typing import Any

# LogRecord attributes that are not user-supplied extras
_RECORD_FIELDS = {
    "name",
    "msg",
    "args",
    "created",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "message",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "thread",
    "threadName",
    "taskName",
    "exc_info",
    "exc_text",
    "stack_info",
}


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    Outputs one JSON object per record with these fields:
    - timestamp: ISO 8601 timestamp
    - level: Log level
    - logger: Logger name (devlisten.server, uvicorn.error, ...)
    - message: Log message
    - file / function: Source location
    - exception: Formatted traceback, if any
    - any extra= fields passed to the logger
    """

    def format(self, record: logging.LogRecord) -> str:
        dt = datetime.fromtimestamp(record.created)
        timestamp = dt.strftime("%Y-%m-%dT%H:%M:%S") + f".{int(record.msecs):03d}Z"

        log_entry: dict[str, Any] = {
            "timestamp": timestamp,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.pathname:
            log_entry["file"] = f"{record.filename}:{record.lineno}"

        if record.funcName and record.funcName != "<module>":
            log_entry["function"] = record.funcName

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RECORD_FIELDS and not key.startswith("_"):
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


def _file_handler(log_file: str) -> logging.Handler | None:
    try:
        return logging.FileHandler(log_file)
    except OSError as e:
        print(f"Warning: Could not open log file {log_file}: {e}", file=sys.stderr)
        return None


def configure_structured_logging(level: str = "INFO", log_file: str | None = None, force: bool = True) -> None:
    """
    Configure structured JSON logging on the root logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file
        force: Force reconfiguration of root logger
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        file_handler = _file_handler(log_file)
        if file_handler is not None:
            handlers.append(file_handler)

    for handler in handlers:
        handler.setFormatter(JSONFormatter())

    logging.basicConfig(level=level.upper(), handlers=handlers, force=force)


def is_json_logging_enabled() -> bool:
    """True if DEVLISTEN_LOG_FORMAT=json"""
    return os.getenv("DEVLISTEN_LOG_FORMAT", "text").lower() == "json"


def setup_logging(level: str | None = None, log_file: str | None = None, force: bool = True) -> None:
    """
    Setup logging based on environment variables.

    Environment variables:
    - DEVLISTEN_LOG_FORMAT: "json" or "text" (default: text)
    - DEVLISTEN_LOG_LEVEL: Log level (default: INFO)
    - DEVLISTEN_LOG_FILE: Optional log file path

    Args:
        level: Override log level (uses DEVLISTEN_LOG_LEVEL if None)
        log_file: Override log file (uses DEVLISTEN_LOG_FILE if None)
        force: Force reconfiguration of root logger
    """
    if level is None:
        level = os.getenv("DEVLISTEN_LOG_LEVEL", "INFO")

    if log_file is None:
        log_file = os.getenv("DEVLISTEN_LOG_FILE")

    if is_json_logging_enabled():
        configure_structured_logging(level=level, log_file=log_file, force=force)
        return

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        file_handler = _file_handler(log_file)
        if file_handler is not None:
            handlers.append(file_handler)

    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        handlers=handlers,
        force=force,
    )
