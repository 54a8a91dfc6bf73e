"""Logging setup driven by the ``logging`` section of a loaded configuration.

The drain engine attaches ``item_id``, ``attempt`` and ``status`` to its
records through ``extra=``; the JSON formatter writes them as fields and the
console formatter colours finish records by status.
"""

from __future__ import annotations

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Mapping

from .errors import ConfigError

LOGGER_NAME = "shutdown_registry"
LOG_FILENAME = "shutdown_registry.log"
DRAIN_FIELDS = ("item_id", "attempt", "status")

_CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
_FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_RESET = "\033[0m"


class ColorFormatter(logging.Formatter):
    """Colours finish records by drain status, everything else by level."""

    STATUS_COLORS = {
        "success": "\033[32m",  # green
        "timed-out": "\033[33m",  # yellow
        "pre-hook-failed": "\033[31m",  # red
        "post-hook-failed": "\033[31m",
    }
    LEVEL_COLORS = {
        "DEBUG": "\033[36m",  # cyan
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",  # magenta
    }

    def __init__(self, fmt: str, *, use_color: bool) -> None:
        super().__init__(fmt)
        self.use_color = use_color and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if not self.use_color:
            return message
        color = self.color_for(record)
        return f"{color}{message}{_RESET}" if color else message

    def color_for(self, record: logging.LogRecord) -> str:
        status = getattr(record, "status", None)
        if status is not None:
            return self.STATUS_COLORS.get(str(status), "")
        return self.LEVEL_COLORS.get(record.levelname, "")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in DRAIN_FIELDS:
            if hasattr(record, field):
                payload[field] = getattr(record, field)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def parse_level(value: object, field: str = "level") -> int:
    """Accept ``"debug"``-style names or numeric levels; ``None`` means INFO."""

    if value is None:
        return logging.INFO
    if isinstance(value, bool):
        raise ConfigError(f"logging.{field} must be a level name, got {value!r}", field=field, value=value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        level = logging.getLevelName(value.upper())
        if isinstance(level, int):
            return level
    raise ConfigError(f"logging.{field} is not a known level: {value!r}", field=field, value=value)


def validate_logging_section(section: Mapping[str, Any]) -> None:
    parse_level(section.get("console_level"), "console_level")
    parse_level(section.get("file_level"), "file_level")
    for flag in ("json_logs", "color"):
        if not isinstance(section.get(flag, False), bool):
            raise ConfigError(f"logging.{flag} must be true or false", field=flag, value=section.get(flag))
    log_dir = section.get("log_dir")
    if log_dir is not None and not isinstance(log_dir, (str, Path)):
        raise ConfigError(f"logging.log_dir must be a path, got {log_dir!r}", field="log_dir", value=log_dir)


def configure_logging(config: Mapping[str, Any]) -> logging.Logger:
    """Set up the package logger from a loaded config (or its ``logging`` section).

    Reconfiguring replaces the handlers installed by a previous call.
    """

    section = config.get("logging", config)
    validate_logging_section(section)
    console_level = parse_level(section.get("console_level"), "console_level")
    file_level = parse_level(section.get("file_level"), "file_level")

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(console_level)
    console.setFormatter(ColorFormatter(_CONSOLE_FORMAT, use_color=bool(section.get("color", True))))
    logger.addHandler(console)
    lowest = console_level

    log_dir = section.get("log_dir")
    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path / LOG_FILENAME,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(file_level)
        if section.get("json_logs"):
            file_handler.setFormatter(JsonFormatter())
        else:
            file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)
        lowest = min(lowest, file_level)

    # Records below every handler's level are dropped before formatting.
    logger.setLevel(lowest)
    return logger


__all__ = [
    "ColorFormatter",
    "DRAIN_FIELDS",
    "JsonFormatter",
    "LOGGER_NAME",
    "configure_logging",
    "parse_level",
    "validate_logging_section",
]
