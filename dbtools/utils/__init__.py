"""
Utilities package for dbtools.

Exports shared helpers for logging and other cross-cutting concerns.
Keep this package lightweight and free of query logic.
"""

from dbtools.utils.logging import SQL_LOGGERS, ConsoleFormatter, JsonFormatter, configure_logging, get_logger

__all__ = [
    "SQL_LOGGERS",
    "ConsoleFormatter",
    "JsonFormatter",
    "configure_logging",
    "get_logger",
]
