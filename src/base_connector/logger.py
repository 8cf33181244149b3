"""Connector logger.

Every component receives a `ConnectorLogger` and logs a short human message
together with a structured `meta` dict:

    >>> logger.info("[API] HTTP Request to endpoint", {"url_path": "GET /me 200"})

The meta dict is merged into the JSON fields when JSON logging is enabled, or
appended to the message otherwise.
"""

import logging
import sys
from pathlib import Path
from typing import Any

from base_connector.enums import LogLevelType
from pythonjsonlogger.json import JsonFormatter

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class MetaFormatter(logging.Formatter):
    """Plain text formatter appending the record meta dict, if any."""

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        if meta := getattr(record, "meta", None):
            formatted = f"{formatted} {meta}"
        return formatted


class MetaJsonFormatter(JsonFormatter):
    """JSON formatter merging the record meta dict into the top-level fields."""

    def add_fields(
        self,
        log_data: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_data, record, message_dict)
        log_data.update(log_data.pop("meta", None) or {})


class ConnectorLogger:
    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(self, level: int, message: str, meta: dict[str, Any] | None) -> None:
        self._logger.log(level, message, extra={"meta": meta or {}})

    def debug(self, message: str, meta: dict[str, Any] | None = None) -> None:
        self._log(logging.DEBUG, message, meta)

    def info(self, message: str, meta: dict[str, Any] | None = None) -> None:
        self._log(logging.INFO, message, meta)

    def warning(self, message: str, meta: dict[str, Any] | None = None) -> None:
        self._log(logging.WARNING, message, meta)

    def error(self, message: str, meta: dict[str, Any] | None = None) -> None:
        self._log(logging.ERROR, message, meta)


def setup_logger(
    name: str,
    level: LogLevelType = LogLevelType.INFO,
    json_logging: bool = False,
    log_file: Path | None = None,
) -> ConnectorLogger:
    """
    Configure the named logger with a console handler (and a file handler when
    `log_file` is set) and wrap it into a ConnectorLogger.

    Calling it again for the same name replaces the previous handlers.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level.upper())
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter: logging.Formatter = (
        MetaJsonFormatter(_LOG_FORMAT) if json_logging else MetaFormatter(_LOG_FORMAT)
    )
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return ConnectorLogger(logger)
