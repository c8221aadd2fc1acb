"""Structured logging for probe-writer.

Log lines are JSON objects (python-json-logger) so delivery transitions,
discards and failures can be parsed alongside the observability records.
`LOG_LEVEL` and `LOG_FORMAT` environment variables set the defaults.
"""

from __future__ import annotations

import logging
import os
import sys

from pythonjsonlogger.json import JsonFormatter

DEFAULT_LOGGER_NAME = "probe-writer"

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


class ProbeJsonFormatter(JsonFormatter):
    """JSON formatter that always carries timestamp, level, logger and call site."""

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["module"] = record.module
        log_record["function"] = record.funcName
        log_record["thread_id"] = record.thread


def setup_logger(
    name: str = DEFAULT_LOGGER_NAME,
    level: str | None = None,
    format_type: str | None = None,
) -> logging.Logger:
    """Configure `name` with a single stdout handler.

    Module loggers from `get_logger` are children of the default logger and
    have no handlers of their own, so configuring it once applies level and
    format to the whole package.

    Args:
        name: Logger name.
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL (default: `LOG_LEVEL` or INFO).
        format_type: "json" or "text" (default: `LOG_FORMAT` or json).
    """
    log_level_str = level or os.getenv("LOG_LEVEL", "INFO")
    log_level = LOG_LEVELS.get(log_level_str.upper(), logging.INFO)
    format_type = format_type or os.getenv("LOG_FORMAT", "json")

    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    if format_type == "json":
        formatter: logging.Formatter = ProbeJsonFormatter(
            fmt="%(timestamp)s %(level)s %(logger)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return the package logger for module `name` (e.g. `delivery.client`)."""
    return logging.getLogger(f"{DEFAULT_LOGGER_NAME}.{name}")
