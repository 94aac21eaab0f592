"""
Loose equality used for modification tracking.

A field loaded as integer ``0`` and later written back as ``"0"`` or ``False``
by a form handler has not really changed. ``loose_equals`` is the one place
where those coercions live:

1. A number or numeric-looking string against another number, numeric
   string, bool or ``None``: compare as numbers (``True`` is 1, ``False`` and
   ``None`` are 0).
2. ``None``/``bool`` against anything else: compare truthiness (``False``,
   ``0``, ``""``, ``"0"``, empty containers and ``None`` are all "empty").
3. Mappings: same keys, loosely-equal values. Sequences: same length,
   loosely-equal items in the same positions.
4. Plain scalars (str, bytes, dates, ...) use ``==``; any other object is only
   equal to itself.
"""

from __future__ import annotations

import datetime
import re
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

_NUMERIC_RE = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")

_SCALAR_TYPES = (str, bytes, datetime.date, datetime.time, datetime.timedelta)
_SEQUENCE_TYPES = (list, tuple)


def is_numeric(value: Any) -> bool:
    """True for ints, floats and Decimals (not bools) and numeric-looking strings."""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float, Decimal)):
        return True
    return isinstance(value, str) and _NUMERIC_RE.match(value) is not None


def _coercible(value: Any) -> bool:
    return value is None or isinstance(value, bool) or is_numeric(value)


def _to_number(value: Any) -> Optional[Decimal]:
    if value is None:
        return Decimal(0)
    if isinstance(value, bool):
        return Decimal(int(value))
    if isinstance(value, float):
        # repr keeps 0.1 == "0.1"
        return Decimal(repr(value))
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None


def is_empty(value: Any) -> bool:
    """Truthiness class used by the boolean rule; ``"0"`` counts as empty."""
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return value == "" or value == "0"
    if isinstance(value, (int, float, Decimal)):
        return value == 0
    if isinstance(value, (Mapping, list, tuple, set, frozenset)):
        return len(value) == 0
    return False


def loose_equals(a: Any, b: Any) -> bool:
    """Compare two field values the way modification tracking does."""
    if a is b:
        return True

    if (is_numeric(a) or is_numeric(b)) and _coercible(a) and _coercible(b):
        left, right = _to_number(a), _to_number(b)
        if left is not None and right is not None:
            return left == right

    if a is None or b is None or isinstance(a, bool) or isinstance(b, bool):
        return is_empty(a) == is_empty(b)

    if isinstance(a, Mapping) and isinstance(b, Mapping):
        return loose_mapping_equals(a, b)

    if isinstance(a, _SEQUENCE_TYPES) and isinstance(b, _SEQUENCE_TYPES):
        return len(a) == len(b) and all(loose_equals(x, y) for x, y in zip(a, b))

    if isinstance(a, (set, frozenset)) and isinstance(b, (set, frozenset)):
        return a == b

    if isinstance(a, _SCALAR_TYPES + (int, float, Decimal)) and isinstance(
        b, _SCALAR_TYPES + (int, float, Decimal)
    ):
        return a == b

    return False


def loose_mapping_equals(a: Mapping[Any, Any], b: Mapping[Any, Any]) -> bool:
    """Setwise comparison: a key present on only one side is a difference."""
    if a.keys() != b.keys():
        return False
    return all(loose_equals(value, b[key]) for key, value in a.items())


__all__ = ["is_empty", "is_numeric", "loose_equals", "loose_mapping_equals"]
