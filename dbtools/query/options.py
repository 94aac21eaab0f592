"""
Options dictionary helpers.

Query options are validated against a per-entity schema of defaults: a key the
schema does not declare is an error, never silently dropped.
"""

from __future__ import annotations

import datetime
import json
import re
from collections.abc import Mapping
from typing import Any, Dict, Optional, Tuple

from dbtools.errors import ArgumentError

# "count" or "offset,count", with an optional space around the comma.
_LIMIT_RE = re.compile(r"^(\d+)(?: ?, ?(\d+))?$")

_DATE_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d")


def merge_options(defaults: Mapping[str, Any], options: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Merge caller ``options`` over ``defaults``.

    Raises
    ------
    ArgumentError
        If ``options`` holds keys absent from ``defaults``; every offending
        key is listed in the message.
    """
    options = options or {}
    unknown = [key for key in options if key not in defaults]
    if unknown:
        raise ArgumentError("Unsupported query options: " + ", ".join(map(str, unknown)))

    merged = dict(defaults)
    merged.update(options)
    return merged


def is_valid_limit(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return value >= 0
    return isinstance(value, str) and _LIMIT_RE.match(value) is not None


def parse_limit(value: Any) -> Tuple[int, int]:
    """Return ``(offset, count)`` for a ``limit`` option."""
    if not is_valid_limit(value):
        raise ArgumentError(f"Invalid limit option ({value!r}), expected 'count' or 'offset,count'")
    if isinstance(value, int):
        return 0, value
    first, second = _LIMIT_RE.match(value).groups()  # type: ignore[union-attr]
    if second is None:
        return 0, int(first)
    return int(first), int(second)


def parse_json(value: Any, default: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """
    Decode a JSON object (or an already decoded mapping) into a dict.

    An empty string, ``None`` and the JSON literal ``null`` decode to an empty
    dict. The result is merged over ``default`` when one is given.
    """
    if isinstance(value, (str, bytes)):
        if not value:
            decoded: Any = {}
        else:
            try:
                decoded = json.loads(value)
            except ValueError as exc:
                raise ArgumentError(f"Invalid JSON: {exc}") from exc
            if decoded is None:
                decoded = {}
            elif isinstance(decoded, list):
                decoded = dict(enumerate(decoded))
            elif not isinstance(decoded, dict):
                raise ArgumentError(
                    f"JSON-encoded array or object expected, JSON-encoded "
                    f"{type(decoded).__name__} provided"
                )
    elif value is None:
        decoded = {}
    elif isinstance(value, Mapping):
        decoded = dict(value)
    elif isinstance(value, (list, tuple)):
        decoded = dict(enumerate(value))
    elif hasattr(value, "__dict__"):
        decoded = dict(vars(value))
    else:
        raise ArgumentError(f"Cannot decode {type(value).__name__} as a JSON object")

    if default is not None:
        merged = dict(default)
        merged.update(decoded)
        return merged
    return decoded


def parse_date(value: Any) -> datetime.datetime:
    """
    Parse ``YYYY-MM-DD`` / ``YYYY-MM-DD HH:MM:SS`` strings, dates and datetimes.
    """
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime(value.year, value.month, value.day)
    if isinstance(value, str) and value:
        for fmt in _DATE_FORMATS:
            try:
                return datetime.datetime.strptime(value, fmt)
            except ValueError:
                continue
    raise ArgumentError(f"Invalid date ({value!r})")


__all__ = ["is_valid_limit", "merge_options", "parse_date", "parse_json", "parse_limit"]
