"""
Logging setup for dbtools.

Every module logs through ``get_logger(__name__)`` and attaches context with
``extra=`` (table, handler, generated SQL). ``configure_logging`` installs one
root handler with either:

- the console formatter: a single human line, ``extra`` fields appended as
  ``key=value`` pairs;
- the JSON formatter: one object per line, ``extra`` fields promoted to top
  level keys.

``log_sql=True`` turns on DEBUG for the loggers that emit statements
(``SQL_LOGGERS``) without lowering the level of everything else.

Usage:
    from dbtools.utils.logging import configure_logging, get_logger

    configure_logging(level="INFO", log_sql=True)
    log = get_logger(__name__)
    log.debug("list query", extra={"table": "items", "sql": sql})
"""

from __future__ import annotations

import json
import logging
import logging.config
from typing import Any, Dict, Optional

SQL_LOGGERS = ("dbtools.orchestrator", "dbtools.infrastructure.db_factory")

# Attributes every LogRecord carries; anything else came from ``extra=``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime", "extra"}


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    fields = {key: value for key, value in vars(record).items() if key not in _RESERVED_ATTRS}
    # Older call sites pass a single ``extra`` dict attribute.
    legacy = getattr(record, "extra", None)
    if isinstance(legacy, dict):
        fields.update(legacy)
    return fields


def _json_formatter(record: logging.LogRecord) -> str:
    """Render a log record as JSON string."""
    payload: Dict[str, Any] = {
        "level": record.levelname,
        "logger": record.name,
        "message": record.getMessage(),
    }
    payload.update(_extra_fields(record))
    if record.exc_info:
        payload["exc_info"] = logging.Formatter().formatException(record.exc_info)
    if record.stack_info:
        payload["stack_info"] = record.stack_info
    return json.dumps(payload, default=str)


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        return _json_formatter(record)


class ConsoleFormatter(logging.Formatter):
    """Human formatter appending ``extra`` fields; multi-line SQL is folded onto one line."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = _extra_fields(record)
        if not fields:
            return line
        context = " ".join(f"{key}={' '.join(str(value).split())}" for key, value in fields.items())
        head, sep, tail = line.partition("\n")
        return f"{head} | {context}{sep}{tail}"


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    force: bool = True,
    log_sql: bool = False,
) -> None:
    """
    Configure root logging.

    Parameters
    ----------
    level : str
        Logging level name (e.g., "DEBUG", "INFO", "WARNING").
    json_logs : bool
        Emit JSON lines instead of the console format.
    force : bool
        Replace an existing root configuration. With False, a root logger
        that already has handlers is left untouched.
    log_sql : bool
        Log every generated statement (DEBUG on ``SQL_LOGGERS``).
    """
    if not force and logging.getLogger().handlers:
        return

    loggers = {name: {"level": "DEBUG" if log_sql else "NOTSET"} for name in SQL_LOGGERS}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "console": {
                    "()": ConsoleFormatter,
                    "fmt": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
                "json": {"()": JsonFormatter},
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "json" if json_logs else "console",
                    "level": "DEBUG" if log_sql else level,
                }
            },
            "loggers": loggers,
            "root": {"handlers": ["default"], "level": level},
        }
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger with the given name. If name is None, returns the root logger.
    """
    return logging.getLogger(name)


__all__ = ["SQL_LOGGERS", "ConsoleFormatter", "JsonFormatter", "configure_logging", "get_logger"]
