"""
Exception taxonomy for dbtools.

- ArgumentError: malformed or out-of-range input (bad page, unknown option key,
  unknown sort field, malformed BETWEEN pair, ...).
- LogicError: programmer misuse (empty WHERE clause on a get-by call, missing
  table name).

Unconvertible record sources raise the builtin TypeError.
"""

from __future__ import annotations


class DbToolsError(Exception):
    """Base class for every error raised by dbtools itself."""


class ArgumentError(DbToolsError, ValueError):
    """Raised when a caller-supplied value is malformed or out of range."""


class LogicError(DbToolsError, RuntimeError):
    """Raised when the toolkit is used in a way that can never work."""


__all__ = ["DbToolsError", "ArgumentError", "LogicError"]
